"""Customer, folder and document schemas"""
from dataclasses import dataclass
from datetime import datetime
from typing import List, Literal, Optional

from pydantic import BaseModel, Field

AccessAction = Literal["view", "download", "upload", "delete"]


class Customer(BaseModel):
    id: str
    name: str
    email: str
    company: Optional[str] = None
    access_level: Literal["read-only", "read-write"] = "read-only"
    is_active: bool = True
    is_demo: bool = False
    created_at: datetime
    last_login: Optional[datetime] = None


class CustomerCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    email: str = Field(..., min_length=3, max_length=255)
    company: Optional[str] = None
    access_level: Literal["read-only", "read-write"] = "read-only"
    is_demo: bool = False


class DocumentFolder(BaseModel):
    id: str
    name: str
    customer_id: str
    parent_folder_id: Optional[str] = None
    created_by: str
    created_at: datetime
    updated_at: datetime


class FolderCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    customer_id: str
    parent_folder_id: Optional[str] = None


class DocumentVersion(BaseModel):
    id: str
    version: int
    file_name: str
    file_size: int
    mime_type: str
    uploaded_by: str
    uploaded_at: datetime
    storage_key: str
    checksum: str
    change_note: Optional[str] = None


class AccessPermissions(BaseModel):
    can_view: List[str] = Field(default_factory=list)
    can_download: List[str] = Field(default_factory=list)
    can_upload: List[str] = Field(default_factory=list)


class Document(BaseModel):
    id: str
    name: str
    description: Optional[str] = None
    customer_id: str
    folder_id: Optional[str] = None
    current_version: int = 0          # index into versions
    versions: List[DocumentVersion]
    tags: List[str] = Field(default_factory=list)
    is_confidential: bool = False
    access_permissions: AccessPermissions
    created_by: str
    created_at: datetime
    updated_at: datetime
    last_accessed_at: Optional[datetime] = None


class DocumentAccess(BaseModel):
    """Append-only access log entry"""

    document_id: str
    user_id: str
    action: AccessAction
    timestamp: datetime


class DocumentSearchFilters(BaseModel):
    customer_id: Optional[str] = None
    folder_id: Optional[str] = None
    tags: List[str] = Field(default_factory=list)
    confidential_only: bool = False
    file_types: List[str] = Field(default_factory=list)


@dataclass
class UploadedFile:
    """Bytes received from the client, before they reach object storage"""

    file_name: str
    content: bytes
    mime_type: str = "application/octet-stream"

    @property
    def size(self) -> int:
        return len(self.content)


@dataclass
class DocumentUploadRequest:
    file: UploadedFile
    customer_id: str
    folder_id: Optional[str] = None
    description: Optional[str] = None
    tags: Optional[List[str]] = None
    is_confidential: bool = False
    change_note: Optional[str] = None


class DocumentDownloadRequest(BaseModel):
    document_id: str
    version: Optional[int] = None     # 1-based; None means current


class DownloadResponse(BaseModel):
    document_id: str
    version: int
    file_name: str
    url: str
