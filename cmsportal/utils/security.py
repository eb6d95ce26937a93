"""Input sanitization and content helpers"""
import math
import re

_SCRIPT_RE = re.compile(r"<script\b[^<]*(?:(?!</script>)<[^<]*)*</script>", re.IGNORECASE)
_STYLE_RE = re.compile(r"<style\b[^<]*(?:(?!</style>)<[^<]*)*</style>", re.IGNORECASE)
_HANDLER_RES = (
    re.compile(r"\son\w+=\"[^\"]*\"", re.IGNORECASE),
    re.compile(r"\son\w+='[^']*'", re.IGNORECASE),
    re.compile(r"\son\w+=\w+", re.IGNORECASE),
)
_JS_URL_RE = re.compile(r"javascript:", re.IGNORECASE)
_DATA_HTML_RE = re.compile(r"data:text/html", re.IGNORECASE)
_DISALLOWED_TAG_RE = re.compile(
    r"<(?!/?(?:p|br|strong|em|u|h[1-6]|ul|ol|li|blockquote|a)\b)[^>]*>", re.IGNORECASE
)
_EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
_SLUG_RE = re.compile(r"^[a-z0-9-]+$")

WORDS_PER_MINUTE = 200


def sanitize_text(value: str) -> str:
    """Strip script blocks, inline event handlers and script URLs from plain text"""
    if not value:
        return ""
    cleaned = _SCRIPT_RE.sub("", value)
    for pattern in _HANDLER_RES:
        cleaned = pattern.sub("", cleaned)
    cleaned = _JS_URL_RE.sub("", cleaned)
    cleaned = _DATA_HTML_RE.sub("", cleaned)
    return cleaned.strip()


def sanitize_html_content(html: str) -> str:
    """Keep basic formatting tags, drop everything executable"""
    if not html:
        return ""
    cleaned = _SCRIPT_RE.sub("", html)
    cleaned = _STYLE_RE.sub("", cleaned)
    cleaned = _JS_URL_RE.sub("", cleaned)
    cleaned = _DATA_HTML_RE.sub("", cleaned)
    for pattern in _HANDLER_RES[:2]:
        cleaned = pattern.sub("", cleaned)
    return _DISALLOWED_TAG_RE.sub("", cleaned)


def validate_email(email: str) -> bool:
    return bool(_EMAIL_RE.match(email or ""))


def validate_slug(slug: str) -> bool:
    return bool(_SLUG_RE.match(slug or ""))


def generate_slug(title: str) -> str:
    """Lowercase, drop non-word characters, collapse whitespace/underscore/hyphen runs"""
    slug = re.sub(r"[^\w\s-]", "", title.lower(), flags=re.ASCII)
    slug = re.sub(r"[\s_-]+", "-", slug)
    return slug.strip("-")


def calculate_reading_time(content: str) -> int:
    """Minutes at 200 words per minute, never less than one"""
    words = len((content or "").split())
    return max(1, math.ceil(words / WORDS_PER_MINUTE))
