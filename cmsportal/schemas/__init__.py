"""Pydantic schemas for stored records and request/response validation"""
from cmsportal.schemas.account import (
    AccountCreate,
    AdminAccount,
    AdminAccountPublic,
    LoginRequest,
    LoginResponse,
    LogoutResponse,
    PasswordChangeRequest,
)
from cmsportal.schemas.blog import Author, AuthorCreate, AuthorUpdate, BlogPost, PostCreate, PostUpdate, SeoMeta
from cmsportal.schemas.documents import (
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
from cmsportal.schemas.identity import Identity, IdentityResponse, Role

__all__ = [
    "AccountCreate",
    "AdminAccount",
    "AdminAccountPublic",
    "LoginRequest",
    "LoginResponse",
    "LogoutResponse",
    "PasswordChangeRequest",
    "Author",
    "AuthorCreate",
    "AuthorUpdate",
    "BlogPost",
    "PostCreate",
    "PostUpdate",
    "SeoMeta",
    "AccessPermissions",
    "Customer",
    "CustomerCreate",
    "Document",
    "DocumentAccess",
    "DocumentDownloadRequest",
    "DocumentFolder",
    "DocumentSearchFilters",
    "DocumentUploadRequest",
    "DocumentVersion",
    "DownloadResponse",
    "FolderCreate",
    "UploadedFile",
    "Identity",
    "IdentityResponse",
    "Role",
]
