"""Blog content store: posts and authors"""
from typing import Any, Dict, List, Optional

from cmsportal.errors import AuthorInUse, NotFound
from cmsportal.schemas.blog import Author, AuthorCreate, AuthorUpdate, BlogPost, PostCreate, PostUpdate
from cmsportal.services.state_store import StateStore
from cmsportal.utils.auth import generate_id
from cmsportal.utils.logger import logger
from cmsportal.utils.security import (
    calculate_reading_time,
    generate_slug,
    sanitize_html_content,
    sanitize_text,
)
from cmsportal.utils.time import utcnow

AUTHOR_DELETE_POLICIES = ("orphan", "cascade", "restrict")

# Fields a partial update may clear with an explicit null
_NULLABLE_POST_FIELDS = ("featured_image", "video_url", "category")

_SEED_CONTENT = """
# Understanding Modern Corporate Governance

Corporate governance has evolved significantly in recent years, driven by regulatory changes, stakeholder expectations, and technological advances.

## Key Principles

1. **Transparency and Disclosure**
   - Regular and accurate reporting
   - Clear communication with stakeholders
   - Open decision-making processes

2. **Accountability and Responsibility**
   - Clear roles and responsibilities
   - Performance monitoring and evaluation
   - Risk management frameworks

3. **Fairness and Ethics**
   - Equal treatment of stakeholders
   - Ethical business practices
   - Conflict of interest management

## Best Practices

Modern corporate governance requires a holistic approach that balances the interests of all stakeholders while ensuring sustainable business growth.

### Board Composition
- Diverse skills and experience
- Independent directors
- Regular evaluation and refreshment

### Risk Management
- Comprehensive risk assessment
- Clear risk appetite statements
- Regular monitoring and reporting

## Conclusion

Effective corporate governance is not just about compliance. It is about creating sustainable value for all stakeholders.
"""


def default_authors() -> List[Dict[str, Any]]:
    now = utcnow().isoformat()
    return [
        {
            "id": "1",
            "name": "Editorial Team",
            "bio": "Insights on governance, compliance, and business intelligence.",
            "email": "editorial@example.com",
            "position": "Editorial Team",
            "created_at": now,
            "updated_at": now,
        }
    ]


def default_posts() -> List[Dict[str, Any]]:
    now = utcnow().isoformat()
    title = "Understanding Modern Corporate Governance"
    return [
        {
            "id": "1",
            "title": title,
            "slug": generate_slug(title),
            "excerpt": "Explore the key principles and best practices of corporate governance "
                       "in today's business environment.",
            "content": _SEED_CONTENT,
            "author_id": "1",
            "status": "published",
            "category": "Corporate Governance",
            "tags": ["Governance", "Compliance", "Best Practices"],
            "seo": {
                "meta_title": title,
                "meta_description": "Key principles and best practices of corporate governance.",
                "keywords": ["corporate governance", "business compliance", "board governance"],
            },
            "reading_time": calculate_reading_time(_SEED_CONTENT),
            "created_at": now,
            "updated_at": now,
            "published_at": now,
        }
    ]


class ContentStore:
    """Posts and authors persisted through the state store"""

    def __init__(self, store: StateStore, author_delete_policy: str = "orphan"):
        if author_delete_policy not in AUTHOR_DELETE_POLICIES:
            raise ValueError(f"Unknown author delete policy '{author_delete_policy}'")
        self.store = store
        self.author_delete_policy = author_delete_policy

    # ------------------------------------------------------------------
    # Posts
    # ------------------------------------------------------------------

    def get_posts(self) -> List[BlogPost]:
        """All posts with their author attached"""
        authors = {a.id: a for a in self.store.authors()}
        posts = self.store.posts()
        for post in posts:
            post.author = authors.get(post.author_id)
        return posts

    def get_published_posts(self) -> List[BlogPost]:
        published = [p for p in self.get_posts() if p.status == "published"]
        published.sort(key=lambda p: p.published_at or p.created_at, reverse=True)
        return published

    def get_post(self, post_id: str) -> Optional[BlogPost]:
        return next((p for p in self.get_posts() if p.id == post_id), None)

    def get_post_by_slug(self, slug: str) -> Optional[BlogPost]:
        return next((p for p in self.get_posts() if p.slug == slug), None)

    def create_post(self, data: PostCreate) -> BlogPost:
        posts = self.store.posts()

        title = sanitize_text(data.title)
        content = sanitize_html_content(data.content)
        slug = generate_slug(title)
        self._warn_duplicate_slug(posts, slug)

        now = utcnow()
        post = BlogPost(
            **data.model_dump(exclude={"title", "excerpt", "content"}),
            id=generate_id("post_"),
            title=title,
            slug=slug,
            excerpt=sanitize_text(data.excerpt),
            content=content,
            reading_time=calculate_reading_time(content),
            created_at=now,
            updated_at=now,
            published_at=now if data.status == "published" else None,
        )

        posts.append(post)
        self.store.save_posts(posts)
        logger.info(f"Created post: {post.id}", extra={"action": "post_create"})
        return self._with_author(post)

    def update_post(self, post_id: str, data: PostUpdate) -> BlogPost:
        posts = self.store.posts()
        index = next((i for i, p in enumerate(posts) if p.id == post_id), None)
        if index is None:
            raise NotFound(f"Post '{post_id}' not found")

        current = posts[index]
        changes = data.model_dump(exclude_unset=True)

        if "title" in changes and changes["title"] is not None:
            changes["title"] = sanitize_text(changes["title"])
            changes["slug"] = generate_slug(changes["title"])
            if changes["slug"] != current.slug:
                self._warn_duplicate_slug([p for p in posts if p.id != post_id], changes["slug"])
        if "excerpt" in changes and changes["excerpt"] is not None:
            changes["excerpt"] = sanitize_text(changes["excerpt"])
        if "content" in changes and changes["content"] is not None:
            changes["content"] = sanitize_html_content(changes["content"])
            changes["reading_time"] = calculate_reading_time(changes["content"])

        now = utcnow()
        if changes.get("status") == "published" and current.published_at is None:
            changes["published_at"] = now
        changes["updated_at"] = now

        merged = current.model_dump()
        merged.update({k: v for k, v in changes.items() if v is not None or k in _NULLABLE_POST_FIELDS})
        updated = BlogPost.model_validate(merged)

        posts[index] = updated
        self.store.save_posts(posts)
        logger.info(f"Updated post: {post_id}", extra={"action": "post_update"})
        return self._with_author(updated)

    def delete_post(self, post_id: str) -> bool:
        posts = self.store.posts()
        remaining = [p for p in posts if p.id != post_id]
        if len(remaining) == len(posts):
            return False
        self.store.save_posts(remaining)
        logger.info(f"Deleted post: {post_id}", extra={"action": "post_delete"})
        return True

    def _with_author(self, post: BlogPost) -> BlogPost:
        post.author = self.get_author(post.author_id)
        return post

    @staticmethod
    def _warn_duplicate_slug(posts: List[BlogPost], slug: str) -> None:
        if any(p.slug == slug for p in posts):
            logger.warning(f"Duplicate post slug '{slug}'")

    # ------------------------------------------------------------------
    # Authors
    # ------------------------------------------------------------------

    def get_authors(self) -> List[Author]:
        return self.store.authors()

    def get_author(self, author_id: str) -> Optional[Author]:
        return next((a for a in self.store.authors() if a.id == author_id), None)

    def create_author(self, data: AuthorCreate) -> Author:
        authors = self.store.authors()
        now = utcnow()
        author = Author(
            **data.model_dump(exclude={"name", "bio"}),
            id=generate_id("author_"),
            name=sanitize_text(data.name),
            bio=sanitize_text(data.bio),
            created_at=now,
            updated_at=now,
        )
        authors.append(author)
        self.store.save_authors(authors)
        logger.info(f"Created author: {author.id}", extra={"action": "author_create"})
        return author

    def update_author(self, author_id: str, data: AuthorUpdate) -> Author:
        authors = self.store.authors()
        index = next((i for i, a in enumerate(authors) if a.id == author_id), None)
        if index is None:
            raise NotFound(f"Author '{author_id}' not found")

        changes = data.model_dump(exclude_unset=True)
        for field in ("name", "bio"):
            if changes.get(field) is not None:
                changes[field] = sanitize_text(changes[field])

        merged = authors[index].model_dump()
        merged.update(changes)
        merged["updated_at"] = utcnow()
        updated = Author.model_validate(merged)

        authors[index] = updated
        self.store.save_authors(authors)
        return updated

    def delete_author(self, author_id: str, policy: Optional[str] = None) -> bool:
        """Remove an author, applying the configured policy to their posts.

        ``orphan`` leaves posts pointing at the missing author, ``cascade``
        deletes them, ``restrict`` refuses while any post references the author.
        """
        policy = policy or self.author_delete_policy
        if policy not in AUTHOR_DELETE_POLICIES:
            raise ValueError(f"Unknown author delete policy '{policy}'")

        authors = self.store.authors()
        remaining = [a for a in authors if a.id != author_id]
        if len(remaining) == len(authors):
            return False

        posts = self.store.posts()
        referencing = [p for p in posts if p.author_id == author_id]

        if referencing and policy == "restrict":
            raise AuthorInUse(post_count=len(referencing))

        if referencing and policy == "cascade":
            self.store.save_posts([p for p in posts if p.author_id != author_id])
            logger.info(f"Cascade deleted {len(referencing)} posts of author {author_id}")

        self.store.save_authors(remaining)
        logger.info(f"Deleted author: {author_id}", extra={"action": "author_delete"})
        return True
