"""Author endpoints"""
from typing import List, Optional

from fastapi import APIRouter, Depends, Query

from cmsportal.api.deps import IdentityContext, get_content_store, require_permission
from cmsportal.errors import NotFound
from cmsportal.schemas.blog import Author, AuthorCreate, AuthorUpdate
from cmsportal.services.content import ContentStore

router = APIRouter(prefix="/authors", tags=["authors"])


@router.get("", response_model=List[Author])
def list_authors(content: ContentStore = Depends(get_content_store)):
    return content.get_authors()


@router.get("/{author_id}", response_model=Author)
def get_author(author_id: str, content: ContentStore = Depends(get_content_store)):
    author = content.get_author(author_id)
    if author is None:
        raise NotFound(f"Author '{author_id}' not found")
    return author


@router.post("", response_model=Author, status_code=201)
def create_author(
    data: AuthorCreate,
    content: ContentStore = Depends(get_content_store),
    _: IdentityContext = Depends(require_permission("authors:write")),
):
    return content.create_author(data)


@router.patch("/{author_id}", response_model=Author)
def update_author(
    author_id: str,
    data: AuthorUpdate,
    content: ContentStore = Depends(get_content_store),
    _: IdentityContext = Depends(require_permission("authors:write")),
):
    return content.update_author(author_id, data)


@router.delete("/{author_id}", status_code=204)
def delete_author(
    author_id: str,
    policy: Optional[str] = Query(None, pattern="^(orphan|cascade|restrict)$"),
    content: ContentStore = Depends(get_content_store),
    _: IdentityContext = Depends(require_permission("authors:delete")),
):
    """
    Delete an author.

    ``policy`` overrides the configured AUTHOR_DELETE_POLICY for this call:
    ``orphan`` keeps their posts, ``cascade`` deletes them, ``restrict``
    refuses (409) while posts reference the author.
    """
    if not content.delete_author(author_id, policy):
        raise NotFound(f"Author '{author_id}' not found")
