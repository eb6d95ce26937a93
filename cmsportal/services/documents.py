"""Customer document portal: customers, folders, versioned documents and the access log.

Every mutating operation takes an :class:`Actor`, the resolved identity plus
its role. Permission checks use the role hierarchy and the identity's customer
association, never the shape of an id.
"""
import hashlib
import re
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from cmsportal.errors import FileTooLarge, Forbidden, LastVersion, NotFound, ObjectStorageError, VersionNotFound
from cmsportal.schemas.documents import (
    AccessAction,
    AccessPermissions,
    Customer,
    CustomerCreate,
    Document,
    DocumentAccess,
    DocumentDownloadRequest,
    DocumentFolder,
    DocumentSearchFilters,
    DocumentUploadRequest,
    DocumentVersion,
    DownloadResponse,
    FolderCreate,
    UploadedFile,
)
from cmsportal.schemas.identity import Identity, Role
from cmsportal.services.object_storage import ObjectStorage
from cmsportal.services.policy import role_satisfies
from cmsportal.services.state_store import StateStore
from cmsportal.utils.auth import generate_id
from cmsportal.utils.logger import logger
from cmsportal.utils.security import sanitize_text
from cmsportal.utils.time import utcnow

DEFAULT_MAX_UPLOAD_BYTES = 100 * 1024 * 1024
DEFAULT_ACCESS_LOG_RETENTION = 10000

_UNSAFE_FILENAME_RE = re.compile(r"[^a-zA-Z0-9.-]")


def default_customers() -> List[Dict[str, Any]]:
    now = utcnow().isoformat()
    return [
        {
            "id": "customer-1",
            "name": "Acme Corporation",
            "email": "contact@acme.com",
            "company": "Acme Corporation",
            "access_level": "read-write",
            "is_active": True,
            "is_demo": False,
            "created_at": now,
        },
        {
            "id": "demo-customer-001",
            "name": "Demo Customer",
            "email": "demo@example.com",
            "company": "Demo Company Ltd",
            "access_level": "read-write",
            "is_active": True,
            "is_demo": True,
            "created_at": now,
        },
    ]


def storage_key(customer_id: str, document_id: str, version: int, file_name: str) -> str:
    """Object key for one version's bytes; the file name is reduced to a safe charset"""
    safe_name = _UNSAFE_FILENAME_RE.sub("_", file_name)
    return f"customers/{customer_id}/documents/{document_id}/v{version}/{safe_name}"


def checksum(data: bytes) -> str:
    return hashlib.sha256(data).hexdigest()


@dataclass(frozen=True)
class Actor:
    """The caller of a document operation"""

    identity: Identity
    role: Role

    @property
    def subject(self) -> str:
        return self.identity.subject

    @property
    def customer_id(self) -> Optional[str]:
        return self.identity.customer_id

    @property
    def is_admin(self) -> bool:
        return role_satisfies(self.role, Role.ADMIN)

    @property
    def is_staff(self) -> bool:
        return role_satisfies(self.role, Role.STAFF)


class DocumentStore:
    def __init__(
        self,
        store: StateStore,
        storage: ObjectStorage,
        max_upload_bytes: int = DEFAULT_MAX_UPLOAD_BYTES,
        access_log_retention: int = DEFAULT_ACCESS_LOG_RETENTION,
    ):
        self.store = store
        self.storage = storage
        self.max_upload_bytes = max_upload_bytes
        self.access_log_retention = access_log_retention

    # ------------------------------------------------------------------
    # Customers
    # ------------------------------------------------------------------

    def get_customers(self) -> List[Customer]:
        return [c for c in self.store.customers() if c.is_active]

    def get_customer(self, customer_id: str) -> Optional[Customer]:
        return next((c for c in self.get_customers() if c.id == customer_id), None)

    def find_customer_by_email(self, email: Optional[str]) -> Optional[Customer]:
        if not email:
            return None
        email = email.lower()
        return next((c for c in self.get_customers() if c.email.lower() == email), None)

    def create_customer(self, data: CustomerCreate) -> Customer:
        customers = self.store.customers()
        customer = Customer(
            id=generate_id("customer_"),
            name=sanitize_text(data.name),
            email=sanitize_text(data.email),
            company=sanitize_text(data.company) if data.company else None,
            access_level=data.access_level,
            is_demo=data.is_demo,
            created_at=utcnow(),
        )
        customers.append(customer)
        self.store.save_customers(customers)
        logger.info(f"Created customer: {customer.id}", extra={"action": "customer_create"})
        return customer

    def deactivate_customer(self, customer_id: str) -> bool:
        customers = self.store.customers()
        customer = next((c for c in customers if c.id == customer_id and c.is_active), None)
        if customer is None:
            return False
        customer.is_active = False
        self.store.save_customers(customers)
        logger.info(f"Deactivated customer: {customer_id}", extra={"action": "customer_deactivate"})
        return True

    # ------------------------------------------------------------------
    # Folders
    # ------------------------------------------------------------------

    def get_folders(self, customer_id: Optional[str] = None) -> List[DocumentFolder]:
        folders = self.store.folders()
        if customer_id:
            folders = [f for f in folders if f.customer_id == customer_id]
        return folders

    def create_folder(self, data: FolderCreate, actor: Actor) -> DocumentFolder:
        if self.get_customer(data.customer_id) is None:
            raise NotFound(f"Customer '{data.customer_id}' not found")
        if not (actor.is_staff or actor.customer_id == data.customer_id):
            raise Forbidden()

        folders = self.store.folders()
        if data.parent_folder_id:
            parent = next((f for f in folders if f.id == data.parent_folder_id), None)
            if parent is None or parent.customer_id != data.customer_id:
                raise NotFound(f"Folder '{data.parent_folder_id}' not found")

        now = utcnow()
        folder = DocumentFolder(
            id=generate_id("folder_"),
            name=sanitize_text(data.name),
            customer_id=data.customer_id,
            parent_folder_id=data.parent_folder_id,
            created_by=actor.subject,
            created_at=now,
            updated_at=now,
        )
        folders.append(folder)
        self.store.save_folders(folders)
        return folder

    # ------------------------------------------------------------------
    # Documents
    # ------------------------------------------------------------------

    def get_documents(
        self,
        filters: Optional[DocumentSearchFilters] = None,
        actor: Optional[Actor] = None,
    ) -> List[Document]:
        """Documents matching ``filters``, newest update first.

        With an ``actor`` below staff, only documents that actor may view are
        returned.
        """
        documents = self.store.documents()

        if filters is not None:
            if filters.customer_id:
                documents = [d for d in documents if d.customer_id == filters.customer_id]
            if filters.folder_id:
                documents = [d for d in documents if d.folder_id == filters.folder_id]
            if filters.tags:
                documents = [d for d in documents if any(t in filters.tags for t in d.tags)]
            if filters.confidential_only:
                documents = [d for d in documents if d.is_confidential]
            if filters.file_types:
                documents = [d for d in documents if _matches_type(d, filters.file_types)]

        if actor is not None and not actor.is_staff:
            demo_customers = self._demo_customer_ids()
            documents = [d for d in documents if self._can_view(actor, d, demo_customers)]

        documents.sort(key=lambda d: d.updated_at, reverse=True)
        return documents

    def get_document(self, document_id: str) -> Optional[Document]:
        return next((d for d in self.store.documents() if d.id == document_id), None)

    def can_view(self, actor: Actor, document: Document) -> bool:
        return actor.is_staff or self._can_view(actor, document, self._demo_customer_ids())

    def view_document(self, document_id: str, actor: Actor) -> Document:
        """Return one document for ``actor`` and record the view"""
        document = self.get_document(document_id)
        if document is None:
            raise NotFound(f"Document '{document_id}' not found")
        if not self.can_view(actor, document):
            raise Forbidden()
        self._log_access(document.id, actor.subject, "view")
        return document

    def upload_document(self, request: DocumentUploadRequest, actor: Actor) -> Document:
        """Store a new document, or append a version to a same-named one in the same folder"""
        self._check_size(request.file)

        if self.get_customer(request.customer_id) is None:
            raise NotFound(f"Customer '{request.customer_id}' not found")
        if not (actor.is_staff or actor.customer_id == request.customer_id):
            logger.warning(
                "Upload denied",
                extra={"user_id": actor.subject, "action": "upload", "role": actor.role.value},
            )
            raise Forbidden()

        file_name = request.file.file_name.lower()
        existing = next(
            (
                d for d in self.store.documents()
                if d.customer_id == request.customer_id
                and d.folder_id == request.folder_id
                and d.name.lower() == file_name
            ),
            None,
        )
        if existing is not None:
            return self.add_document_version(existing.id, request.file, actor, request.change_note)

        document_id = generate_id("doc_")
        version = self._store_version(request.customer_id, document_id, 1, request.file, actor, request.change_note)

        now = utcnow()
        document = Document(
            id=document_id,
            name=sanitize_text(request.file.file_name),
            description=sanitize_text(request.description) if request.description else None,
            customer_id=request.customer_id,
            folder_id=request.folder_id,
            current_version=0,
            versions=[version],
            tags=[sanitize_text(t) for t in (request.tags or [])],
            is_confidential=request.is_confidential,
            access_permissions=AccessPermissions(
                can_view=[request.customer_id],
                can_download=[request.customer_id],
                can_upload=[request.customer_id],
            ),
            created_by=actor.subject,
            created_at=now,
            updated_at=now,
        )

        documents = self.store.documents()
        documents.append(document)
        self.store.save_documents(documents)
        self._log_access(document_id, actor.subject, "upload")
        logger.info(
            f"Uploaded document: {document_id}",
            extra={"document_id": document_id, "user_id": actor.subject, "action": "upload"},
        )
        return document

    def add_document_version(
        self,
        document_id: str,
        file: UploadedFile,
        actor: Actor,
        change_note: Optional[str] = None,
    ) -> Document:
        documents = self.store.documents()
        document = next((d for d in documents if d.id == document_id), None)
        if document is None:
            raise NotFound(f"Document '{document_id}' not found")

        self._check_size(file)
        if not (
            actor.is_staff
            or actor.customer_id == document.customer_id
            or actor.subject in document.access_permissions.can_upload
        ):
            raise Forbidden()

        # Numbers are never reused, deleted versions leave gaps
        next_version = max((v.version for v in document.versions), default=0) + 1
        version = self._store_version(document.customer_id, document_id, next_version, file, actor, change_note)

        document.versions.append(version)
        document.current_version = len(document.versions) - 1
        document.updated_at = utcnow()

        self.store.save_documents(documents)
        self._log_access(document_id, actor.subject, "upload")
        logger.info(
            f"Added version {next_version} to document {document_id}",
            extra={"document_id": document_id, "user_id": actor.subject, "action": "upload"},
        )
        return document

    def download_document(self, request: DocumentDownloadRequest, actor: Actor) -> DownloadResponse:
        documents = self.store.documents()
        document = next((d for d in documents if d.id == request.document_id), None)
        if document is None:
            raise NotFound(f"Document '{request.document_id}' not found")

        if not self._can_download(actor, document):
            logger.warning(
                "Download denied",
                extra={"document_id": document.id, "user_id": actor.subject, "action": "download"},
            )
            raise Forbidden()

        if request.version:
            index = _version_index(document, request.version)
        else:
            index = document.current_version
        if index is None or index < 0 or index >= len(document.versions):
            raise VersionNotFound()
        version = document.versions[index]

        url = self.storage.get_download_url(version.storage_key)
        if not url:
            raise ObjectStorageError("Download URL could not be generated")

        document.last_accessed_at = utcnow()
        self.store.save_documents(documents)
        self._log_access(document.id, actor.subject, "download")

        return DownloadResponse(
            document_id=document.id,
            version=version.version,
            file_name=version.file_name,
            url=url,
        )

    def delete_document_version(self, document_id: str, version: int, actor: Actor) -> bool:
        """Remove version number ``version``. False if the document or version does not exist."""
        documents = self.store.documents()
        document = next((d for d in documents if d.id == document_id), None)
        if document is None:
            return False

        if not actor.is_admin:
            raise Forbidden("Only administrators can delete document versions")

        index = _version_index(document, version)
        if index is None:
            return False

        if len(document.versions) == 1:
            raise LastVersion()

        document.versions.pop(index)
        if document.current_version >= index:
            document.current_version = max(0, document.current_version - 1)
        document.updated_at = utcnow()

        self.store.save_documents(documents)
        self._log_access(document_id, actor.subject, "delete")
        logger.info(
            f"Deleted version {version} of document {document_id}",
            extra={"document_id": document_id, "user_id": actor.subject, "action": "delete"},
        )
        return True

    def update_document_permissions(
        self,
        document_id: str,
        permissions: AccessPermissions,
        actor: Actor,
    ) -> bool:
        documents = self.store.documents()
        document = next((d for d in documents if d.id == document_id), None)
        if document is None:
            return False

        if document.created_by != actor.subject and not actor.is_admin:
            raise Forbidden()

        document.access_permissions = permissions
        document.updated_at = utcnow()
        self.store.save_documents(documents)
        logger.info(
            f"Updated permissions of document {document_id}",
            extra={"document_id": document_id, "user_id": actor.subject},
        )
        return True

    # ------------------------------------------------------------------
    # Access log
    # ------------------------------------------------------------------

    def get_access_log(self, document_id: Optional[str] = None) -> List[DocumentAccess]:
        # Appended in order; reversing first keeps same-timestamp entries newest first
        entries = self.store.access_log()[::-1]
        if document_id:
            entries = [e for e in entries if e.document_id == document_id]
        entries.sort(key=lambda e: e.timestamp, reverse=True)
        return entries

    def _log_access(self, document_id: str, user_id: str, action: AccessAction) -> None:
        entries = self.store.access_log()
        entries.append(DocumentAccess(document_id=document_id, user_id=user_id, action=action, timestamp=utcnow()))
        if len(entries) > self.access_log_retention:
            entries = entries[-self.access_log_retention:]
        self.store.save_access_log(entries)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _check_size(self, file: UploadedFile) -> None:
        if file.size > self.max_upload_bytes:
            raise FileTooLarge(max_bytes=self.max_upload_bytes, size=file.size)

    def _store_version(
        self,
        customer_id: str,
        document_id: str,
        number: int,
        file: UploadedFile,
        actor: Actor,
        change_note: Optional[str],
    ) -> DocumentVersion:
        key = storage_key(customer_id, document_id, number, file.file_name)
        result = self.storage.put(key, file.content, file.mime_type)
        if not result.success:
            raise ObjectStorageError(result.error or "Upload failed")

        return DocumentVersion(
            id=generate_id("version_"),
            version=number,
            file_name=file.file_name,
            file_size=file.size,
            mime_type=file.mime_type,
            uploaded_by=actor.subject,
            uploaded_at=utcnow(),
            storage_key=key,
            checksum=checksum(file.content),
            change_note=sanitize_text(change_note) if change_note else None,
        )

    def _demo_customer_ids(self) -> set:
        return {c.id for c in self.store.customers() if c.is_demo}

    def _can_view(self, actor: Actor, document: Document, demo_customers: set) -> bool:
        if actor.subject in document.access_permissions.can_view:
            return True
        if actor.identity.is_demo and document.customer_id in demo_customers:
            return True
        return actor.customer_id == document.customer_id

    def _can_download(self, actor: Actor, document: Document) -> bool:
        permissions = document.access_permissions
        if actor.subject in permissions.can_download:
            return True
        if actor.identity.is_demo and document.customer_id in self._demo_customer_ids():
            return True
        if actor.customer_id == document.customer_id and document.customer_id in permissions.can_download:
            return True
        return actor.is_staff


def _matches_type(document: Document, file_types: List[str]) -> bool:
    if not document.versions or document.current_version >= len(document.versions):
        return False
    mime_type = document.versions[document.current_version].mime_type
    return any(t in mime_type for t in file_types)


def _version_index(document: Document, number: int) -> Optional[int]:
    """Position of version ``number`` in ``document.versions``, or None"""
    return next((i for i, v in enumerate(document.versions) if v.version == number), None)
