"""Document portal endpoints"""
from typing import List, Optional

from fastapi import APIRouter, Depends, File, Form, Query, Request, UploadFile

from cmsportal.api.deps import IdentityContext, actor_from, get_document_store, require_permission
from cmsportal.errors import FileTooLarge, NotFound, VersionNotFound
from cmsportal.middleware.monitoring import record_document_action
from cmsportal.middleware.rate_limit import get_rate_limit, limiter
from cmsportal.schemas.documents import (
    AccessPermissions,
    Document,
    DocumentAccess,
    DocumentDownloadRequest,
    DocumentSearchFilters,
    DocumentUploadRequest,
    DownloadResponse,
    UploadedFile,
)
from cmsportal.services.documents import DocumentStore

router = APIRouter(prefix="/documents", tags=["documents"])


def _read_upload(file: UploadFile, max_bytes: int) -> UploadedFile:
    # Never buffer more than one byte past the ceiling
    content = file.file.read(max_bytes + 1)
    if len(content) > max_bytes:
        raise FileTooLarge(max_bytes=max_bytes, size=file.size or len(content))
    return UploadedFile(
        file_name=file.filename or "upload",
        content=content,
        mime_type=file.content_type or "application/octet-stream",
    )


def _split_tags(tags: Optional[str]) -> List[str]:
    if not tags:
        return []
    return [t.strip() for t in tags.split(",") if t.strip()]


@router.get("", response_model=List[Document])
def list_documents(
    customer_id: Optional[str] = None,
    folder_id: Optional[str] = None,
    tags: Optional[List[str]] = Query(None),
    confidential_only: bool = False,
    file_types: Optional[List[str]] = Query(None),
    documents: DocumentStore = Depends(get_document_store),
    ctx: IdentityContext = Depends(require_permission("documents:read")),
):
    """
    Search documents, newest update first.

    Customers only see documents they are allowed to view.
    """
    filters = DocumentSearchFilters(
        customer_id=customer_id,
        folder_id=folder_id,
        tags=tags or [],
        confidential_only=confidential_only,
        file_types=file_types or [],
    )
    return documents.get_documents(filters, actor=actor_from(ctx))


@router.get("/access-log", response_model=List[DocumentAccess])
def full_access_log(
    documents: DocumentStore = Depends(get_document_store),
    _: IdentityContext = Depends(require_permission("documents:manage")),
):
    """Access log across all documents, newest first"""
    return documents.get_access_log()


@router.get("/{document_id}", response_model=Document)
def get_document(
    document_id: str,
    documents: DocumentStore = Depends(get_document_store),
    ctx: IdentityContext = Depends(require_permission("documents:read")),
):
    document = documents.view_document(document_id, actor_from(ctx))
    record_document_action("view")
    return document


@router.post("", response_model=Document, status_code=201)
@limiter.limit(get_rate_limit("upload"))
def upload_document(
    request: Request,
    file: UploadFile = File(...),
    customer_id: str = Form(...),
    folder_id: Optional[str] = Form(None),
    description: Optional[str] = Form(None),
    tags: Optional[str] = Form(None),
    is_confidential: bool = Form(False),
    change_note: Optional[str] = Form(None),
    documents: DocumentStore = Depends(get_document_store),
    ctx: IdentityContext = Depends(require_permission("documents:upload")),
):
    """
    Upload a file for a customer.

    A file whose name matches an existing document in the same folder
    (case-insensitive) becomes a new version of that document.
    """
    upload = DocumentUploadRequest(
        file=_read_upload(file, documents.max_upload_bytes),
        customer_id=customer_id,
        folder_id=folder_id or None,
        description=description,
        tags=_split_tags(tags),
        is_confidential=is_confidential,
        change_note=change_note,
    )
    document = documents.upload_document(upload, actor_from(ctx))
    record_document_action("upload")
    return document


@router.post("/{document_id}/versions", response_model=Document, status_code=201)
@limiter.limit(get_rate_limit("upload"))
def add_version(
    request: Request,
    document_id: str,
    file: UploadFile = File(...),
    change_note: Optional[str] = Form(None),
    documents: DocumentStore = Depends(get_document_store),
    ctx: IdentityContext = Depends(require_permission("documents:upload")),
):
    document = documents.add_document_version(
        document_id, _read_upload(file, documents.max_upload_bytes), actor_from(ctx), change_note
    )
    record_document_action("upload")
    return document


@router.get("/{document_id}/download", response_model=DownloadResponse)
@limiter.limit(get_rate_limit("download"))
def download_document(
    request: Request,
    document_id: str,
    version: Optional[int] = Query(None, ge=1),
    documents: DocumentStore = Depends(get_document_store),
    ctx: IdentityContext = Depends(require_permission("documents:read")),
):
    """
    Resolve a download URL for the current or a specific (1-based) version.

    403 when the caller may not download, 404 when the document or version
    does not exist.
    """
    result = documents.download_document(
        DocumentDownloadRequest(document_id=document_id, version=version),
        actor_from(ctx),
    )
    record_document_action("download")
    return result


@router.delete("/{document_id}/versions/{version}", status_code=204)
def delete_version(
    document_id: str,
    version: int,
    documents: DocumentStore = Depends(get_document_store),
    ctx: IdentityContext = Depends(require_permission("documents:delete_version")),
):
    """Delete one version; the only remaining version cannot be deleted (409)"""
    if documents.get_document(document_id) is None:
        raise NotFound(f"Document '{document_id}' not found")
    if not documents.delete_document_version(document_id, version, actor_from(ctx)):
        raise VersionNotFound()
    record_document_action("delete")


@router.put("/{document_id}/permissions", response_model=Document)
def update_permissions(
    document_id: str,
    permissions: AccessPermissions,
    documents: DocumentStore = Depends(get_document_store),
    ctx: IdentityContext = Depends(require_permission("documents:upload")),
):
    """Replace the access lists; allowed for the document's creator or an admin"""
    if not documents.update_document_permissions(document_id, permissions, actor_from(ctx)):
        raise NotFound(f"Document '{document_id}' not found")
    return documents.get_document(document_id)


@router.get("/{document_id}/access-log", response_model=List[DocumentAccess])
def document_access_log(
    document_id: str,
    documents: DocumentStore = Depends(get_document_store),
    _: IdentityContext = Depends(require_permission("documents:manage")),
):
    if documents.get_document(document_id) is None:
        raise NotFound(f"Document '{document_id}' not found")
    return documents.get_access_log(document_id)
