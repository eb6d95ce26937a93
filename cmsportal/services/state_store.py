"""Persisted key-value state.

Every read and write of application state goes through :class:`StateStore`.
Each key holds one JSON document (usually an array of records). A missing key
is an empty collection that gets seeded with built-in defaults on first read.
A key whose value cannot be decoded is logged and re-seeded.

Writes are optimistic: ``save`` compares the version observed by the last
``load`` of the same key and raises :class:`ConcurrentModification` if another
request wrote in between.
"""
import json
from datetime import datetime
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Type, TypeVar

from pydantic import BaseModel, ValidationError
from sqlalchemy.orm import Session

from cmsportal.errors import ConcurrentModification
from cmsportal.models.state_entry import StateEntry
from cmsportal.schemas.account import AdminAccount
from cmsportal.schemas.blog import Author, BlogPost
from cmsportal.schemas.documents import Customer, Document, DocumentAccess, DocumentFolder
from cmsportal.utils.logger import logger

ModelT = TypeVar("ModelT", bound=BaseModel)
SeedFactory = Callable[[], List[Dict[str, Any]]]


class StateKey(str, Enum):
    ADMIN_USERS = "admin_users"
    AUTHORS = "authors"
    POSTS = "posts"
    DOCUMENTS = "documents"
    CUSTOMERS = "customers"
    FOLDERS = "folders"
    ACCESS_LOG = "document_access"
    REVOKED_SESSIONS = "revoked_sessions"


class StateStore:
    """Typed accessors over the ``state_entries`` table"""

    def __init__(self, db: Session, seeds: Optional[Dict[StateKey, SeedFactory]] = None):
        self.db = db
        self.seeds = seeds or {}
        self._versions: Dict[StateKey, int] = {}

    # ------------------------------------------------------------------
    # Raw JSON access
    # ------------------------------------------------------------------

    def _entry(self, key: StateKey) -> Optional[StateEntry]:
        return self.db.query(StateEntry).filter(StateEntry.key == key.value).first()

    def _seed_value(self, key: StateKey) -> List[Dict[str, Any]]:
        factory = self.seeds.get(key)
        return factory() if factory else []

    def read(self, key: StateKey) -> Any:
        """Return the decoded document for ``key``, seeding it if absent"""
        entry = self._entry(key)
        if entry is None:
            value = self._seed_value(key)
            self._versions[key] = self._insert(key, value)
            return value

        try:
            value = json.loads(entry.value)
        except json.JSONDecodeError:
            logger.error(f"Corrupt state for key '{key.value}', re-seeding defaults")
            return self._reseed(key, entry)

        self._versions[key] = entry.version
        return value

    def write(self, key: StateKey, value: Any) -> int:
        """Persist ``value`` under ``key`` and return the new version"""
        expected = self._versions.get(key)
        encoded = json.dumps(value, default=_json_default)

        entry = self._entry(key)
        if entry is None:
            if expected is not None:
                raise ConcurrentModification()
            version = self._insert(key, value)
        else:
            if expected is not None and entry.version != expected:
                logger.warning(
                    f"Version conflict on '{key.value}' (expected {expected}, found {entry.version})"
                )
                raise ConcurrentModification()
            # The commit expires ``entry``; capture both versions first
            current = entry.version
            version = current + 1
            updated = (
                self.db.query(StateEntry)
                .filter(StateEntry.key == key.value, StateEntry.version == current)
                .update({StateEntry.value: encoded, StateEntry.version: version},
                        synchronize_session=False)
            )
            if updated != 1:
                self.db.rollback()
                raise ConcurrentModification()
            self.db.commit()

        self._versions[key] = version
        return version

    def _insert(self, key: StateKey, value: Any) -> int:
        entry = StateEntry(key=key.value, value=json.dumps(value, default=_json_default), version=1)
        self.db.add(entry)
        self.db.commit()
        return 1

    def _reseed(self, key: StateKey, entry: StateEntry) -> Any:
        value = self._seed_value(key)
        entry.value = json.dumps(value, default=_json_default)
        entry.version = entry.version + 1
        self.db.commit()
        self._versions[key] = entry.version
        return value

    # ------------------------------------------------------------------
    # Typed collections
    # ------------------------------------------------------------------

    def load(self, key: StateKey, model: Type[ModelT]) -> List[ModelT]:
        """Decode ``key`` as a list of ``model`` records"""
        raw = self.read(key)
        try:
            return [model.model_validate(item) for item in raw]
        except (ValidationError, TypeError):
            logger.error(f"State for key '{key.value}' does not match {model.__name__}, re-seeding defaults")
            entry = self._entry(key)
            raw = self._reseed(key, entry) if entry is not None else self._seed_value(key)
            return [model.model_validate(item) for item in raw]

    def save(self, key: StateKey, items: List[BaseModel]) -> int:
        return self.write(key, [item.model_dump(mode="json") for item in items])

    def admin_accounts(self) -> List[AdminAccount]:
        return self.load(StateKey.ADMIN_USERS, AdminAccount)

    def save_admin_accounts(self, accounts: List[AdminAccount]) -> int:
        return self.save(StateKey.ADMIN_USERS, accounts)

    def authors(self) -> List[Author]:
        return self.load(StateKey.AUTHORS, Author)

    def save_authors(self, authors: List[Author]) -> int:
        return self.save(StateKey.AUTHORS, authors)

    def posts(self) -> List[BlogPost]:
        return self.load(StateKey.POSTS, BlogPost)

    def save_posts(self, posts: List[BlogPost]) -> int:
        # author is attached on read only
        return self.write(StateKey.POSTS, [post.model_dump(mode="json", exclude={"author"}) for post in posts])

    def customers(self) -> List[Customer]:
        return self.load(StateKey.CUSTOMERS, Customer)

    def save_customers(self, customers: List[Customer]) -> int:
        return self.save(StateKey.CUSTOMERS, customers)

    def folders(self) -> List[DocumentFolder]:
        return self.load(StateKey.FOLDERS, DocumentFolder)

    def save_folders(self, folders: List[DocumentFolder]) -> int:
        return self.save(StateKey.FOLDERS, folders)

    def documents(self) -> List[Document]:
        return self.load(StateKey.DOCUMENTS, Document)

    def save_documents(self, documents: List[Document]) -> int:
        return self.save(StateKey.DOCUMENTS, documents)

    def access_log(self) -> List[DocumentAccess]:
        return self.load(StateKey.ACCESS_LOG, DocumentAccess)

    def save_access_log(self, entries: List[DocumentAccess]) -> int:
        return self.save(StateKey.ACCESS_LOG, entries)

    # ------------------------------------------------------------------
    # Revoked session tokens
    # ------------------------------------------------------------------

    def revoked_sessions(self) -> Dict[str, int]:
        """jti -> original expiry (unix seconds)"""
        raw = self.read(StateKey.REVOKED_SESSIONS)
        if not isinstance(raw, (list, dict)):
            return {}
        if isinstance(raw, list):
            return {item["jti"]: int(item["expires_at"]) for item in raw if "jti" in item}
        return {str(k): int(v) for k, v in raw.items()}

    def is_session_revoked(self, jti: str) -> bool:
        return jti in self.revoked_sessions()

    def revoke_session(self, jti: str, expires_at: int, now: int) -> None:
        """Add ``jti`` to the revoked list, pruning entries that already expired"""
        revoked = {k: v for k, v in self.revoked_sessions().items() if v > now}
        revoked[jti] = expires_at
        self.write(StateKey.REVOKED_SESSIONS, [{"jti": k, "expires_at": v} for k, v in revoked.items()])


def _json_default(value: Any) -> Any:
    if isinstance(value, datetime):
        return value.isoformat()
    raise TypeError(f"Object of type {type(value).__name__} is not JSON serializable")
