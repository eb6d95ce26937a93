"""Customer and folder endpoints"""
from typing import List

from fastapi import APIRouter, Depends

from cmsportal.api.deps import IdentityContext, actor_from, get_document_store, require_permission
from cmsportal.errors import Forbidden, NotFound
from cmsportal.schemas.documents import Customer, CustomerCreate, DocumentFolder, FolderCreate
from cmsportal.services.documents import DocumentStore

router = APIRouter(tags=["customers"])


@router.get("/customers", response_model=List[Customer])
def list_customers(
    documents: DocumentStore = Depends(get_document_store),
    _: IdentityContext = Depends(require_permission("customers:read")),
):
    """Active customers"""
    return documents.get_customers()


@router.post("/customers", response_model=Customer, status_code=201)
def create_customer(
    data: CustomerCreate,
    documents: DocumentStore = Depends(get_document_store),
    _: IdentityContext = Depends(require_permission("customers:write")),
):
    return documents.create_customer(data)


@router.get("/customers/{customer_id}", response_model=Customer)
def get_customer(
    customer_id: str,
    documents: DocumentStore = Depends(get_document_store),
    _: IdentityContext = Depends(require_permission("customers:read")),
):
    customer = documents.get_customer(customer_id)
    if customer is None:
        raise NotFound(f"Customer '{customer_id}' not found")
    return customer


@router.delete("/customers/{customer_id}", status_code=204)
def deactivate_customer(
    customer_id: str,
    documents: DocumentStore = Depends(get_document_store),
    _: IdentityContext = Depends(require_permission("customers:delete")),
):
    """Deactivate a customer; their documents are kept"""
    if not documents.deactivate_customer(customer_id):
        raise NotFound(f"Customer '{customer_id}' not found")


@router.get("/customers/{customer_id}/folders", response_model=List[DocumentFolder])
def list_folders(
    customer_id: str,
    documents: DocumentStore = Depends(get_document_store),
    ctx: IdentityContext = Depends(require_permission("documents:read")),
):
    """Folders of one customer; customers only see their own"""
    actor = actor_from(ctx)
    if not actor.is_staff and actor.customer_id != customer_id:
        raise Forbidden()
    return documents.get_folders(customer_id)


@router.post("/folders", response_model=DocumentFolder, status_code=201)
def create_folder(
    data: FolderCreate,
    documents: DocumentStore = Depends(get_document_store),
    ctx: IdentityContext = Depends(require_permission("documents:upload")),
):
    return documents.create_folder(data, actor_from(ctx))
