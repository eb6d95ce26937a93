"""Blog post endpoints"""
from typing import List

from fastapi import APIRouter, Depends, HTTPException, status

from cmsportal.api.deps import IdentityContext, get_content_store, require_permission
from cmsportal.errors import NotFound
from cmsportal.schemas.blog import BlogPost, PostCreate, PostUpdate
from cmsportal.services.content import ContentStore

router = APIRouter(prefix="/posts", tags=["posts"])


@router.get("", response_model=List[BlogPost])
def list_published_posts(content: ContentStore = Depends(get_content_store)):
    """Published posts, newest first. Public."""
    return content.get_published_posts()


@router.get("/all", response_model=List[BlogPost])
def list_all_posts(
    content: ContentStore = Depends(get_content_store),
    _: IdentityContext = Depends(require_permission("posts:read_all")),
):
    """Every post regardless of status"""
    return content.get_posts()


@router.get("/slug/{slug}", response_model=BlogPost)
def get_post_by_slug(slug: str, content: ContentStore = Depends(get_content_store)):
    """Published post by slug. Public."""
    post = content.get_post_by_slug(slug)
    if post is None or post.status != "published":
        raise NotFound(f"Post '{slug}' not found")
    return post


@router.get("/{post_id}", response_model=BlogPost)
def get_post(
    post_id: str,
    content: ContentStore = Depends(get_content_store),
    _: IdentityContext = Depends(require_permission("posts:read_all")),
):
    post = content.get_post(post_id)
    if post is None:
        raise NotFound(f"Post '{post_id}' not found")
    return post


@router.post("", response_model=BlogPost, status_code=201)
def create_post(
    data: PostCreate,
    content: ContentStore = Depends(get_content_store),
    _: IdentityContext = Depends(require_permission("posts:write")),
):
    """
    Create a post.

    Title, excerpt and content are sanitized; slug and reading time are
    derived.
    """
    if content.get_author(data.author_id) is None:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail=f"Author '{data.author_id}' does not exist",
        )
    return content.create_post(data)


@router.patch("/{post_id}", response_model=BlogPost)
def update_post(
    post_id: str,
    data: PostUpdate,
    content: ContentStore = Depends(get_content_store),
    _: IdentityContext = Depends(require_permission("posts:write")),
):
    """Merge the given fields into the post"""
    if data.author_id is not None and content.get_author(data.author_id) is None:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail=f"Author '{data.author_id}' does not exist",
        )
    return content.update_post(post_id, data)


@router.delete("/{post_id}", status_code=204)
def delete_post(
    post_id: str,
    content: ContentStore = Depends(get_content_store),
    _: IdentityContext = Depends(require_permission("posts:delete")),
):
    if not content.delete_post(post_id):
        raise NotFound(f"Post '{post_id}' not found")
