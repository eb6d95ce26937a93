"""Password hashing and password-policy utilities"""
import re
import secrets
import uuid
from typing import List, NamedTuple

import bcrypt

from cmsportal.config import settings

_UPPERCASE = "ABCDEFGHIJKLMNOPQRSTUVWXYZ"
_LOWERCASE = "abcdefghijklmnopqrstuvwxyz"
_DIGITS = "0123456789"
_SPECIAL = "!@#$%^&*()_+-=[]{}|;:,.<>?"
_SPECIAL_RE = re.compile(r"[!@#$%^&*()_+\-=\[\]{};':\"\\|,.<>/?]")


class PasswordStrength(NamedTuple):
    is_valid: bool
    errors: List[str]
    score: int  # 0-6


def hash_password(password: str, rounds: int = None) -> str:
    """Hash a password with bcrypt (salt embedded in the result)"""
    if not password:
        raise ValueError("password_blank")
    salt = bcrypt.gensalt(rounds=rounds or settings.BCRYPT_ROUNDS)
    return bcrypt.hashpw(password.encode("utf-8"), salt).decode("utf-8")


def verify_password(password: str, password_hash: str) -> bool:
    """Constant-time bcrypt comparison; malformed hashes never verify"""
    if not password or not password_hash:
        return False
    try:
        return bcrypt.checkpw(password.encode("utf-8"), password_hash.encode("utf-8"))
    except ValueError:
        return False


def validate_password_strength(password: str, min_length: int = None) -> PasswordStrength:
    """Check every rule and report all of the unmet ones"""
    min_length = min_length or settings.MIN_PASSWORD_LENGTH
    errors: List[str] = []
    score = 0

    if len(password) < min_length:
        errors.append(f"Password must be at least {min_length} characters long")
    else:
        score += 1

    if not re.search(r"[A-Z]", password):
        errors.append("Password must contain at least one uppercase letter")
    else:
        score += 1

    if not re.search(r"[a-z]", password):
        errors.append("Password must contain at least one lowercase letter")
    else:
        score += 1

    if not re.search(r"\d", password):
        errors.append("Password must contain at least one number")
    else:
        score += 1

    if not _SPECIAL_RE.search(password):
        errors.append("Password must contain at least one special character")
    else:
        score += 1

    if len(password) >= 16:
        score += 1

    return PasswordStrength(is_valid=not errors, errors=errors, score=score)


def generate_secure_password(length: int = 16) -> str:
    """Random password guaranteed to contain every required character class"""
    length = max(length, 4)
    charset = _UPPERCASE + _LOWERCASE + _DIGITS + _SPECIAL
    chars = [
        secrets.choice(_UPPERCASE),
        secrets.choice(_LOWERCASE),
        secrets.choice(_DIGITS),
        secrets.choice(_SPECIAL),
    ]
    chars.extend(secrets.choice(charset) for _ in range(length - 4))
    secrets.SystemRandom().shuffle(chars)
    return "".join(chars)


def generate_id(prefix: str = "") -> str:
    """Generate a unique record ID"""
    return f"{prefix}{uuid.uuid4().hex}"
