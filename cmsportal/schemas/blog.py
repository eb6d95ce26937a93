"""Blog post and author schemas"""
from datetime import datetime
from typing import List, Literal, Optional

from pydantic import BaseModel, Field

PostStatus = Literal["draft", "published", "archived"]


class SocialLinks(BaseModel):
    linkedin: Optional[str] = None
    twitter: Optional[str] = None


class SeoMeta(BaseModel):
    meta_title: Optional[str] = None
    meta_description: Optional[str] = None
    keywords: List[str] = Field(default_factory=list)
    og_image: Optional[str] = None
    canonical_url: Optional[str] = None


class Author(BaseModel):
    id: str
    name: str
    bio: str = ""
    email: str
    headshot: Optional[str] = None
    position: Optional[str] = None
    social_links: Optional[SocialLinks] = None
    created_at: datetime
    updated_at: datetime


class AuthorCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    bio: str = ""
    email: str = Field(..., min_length=3, max_length=255)
    headshot: Optional[str] = None
    position: Optional[str] = None
    social_links: Optional[SocialLinks] = None


class AuthorUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=255)
    bio: Optional[str] = None
    email: Optional[str] = None
    headshot: Optional[str] = None
    position: Optional[str] = None
    social_links: Optional[SocialLinks] = None


class BlogPost(BaseModel):
    id: str
    title: str
    slug: str
    excerpt: str = ""
    content: str = ""
    author_id: str
    author: Optional[Author] = None   # attached on read, never stored
    featured_image: Optional[str] = None
    video_url: Optional[str] = None
    status: PostStatus = "draft"
    category: Optional[str] = None
    tags: List[str] = Field(default_factory=list)
    seo: SeoMeta = Field(default_factory=SeoMeta)
    reading_time: int = 1
    created_at: datetime
    updated_at: datetime
    published_at: Optional[datetime] = None


class PostCreate(BaseModel):
    title: str = Field(..., min_length=1, max_length=500)
    excerpt: str = ""
    content: str = ""
    author_id: str
    featured_image: Optional[str] = None
    video_url: Optional[str] = None
    status: PostStatus = "draft"
    category: Optional[str] = None
    tags: List[str] = Field(default_factory=list)
    seo: SeoMeta = Field(default_factory=SeoMeta)


class PostUpdate(BaseModel):
    title: Optional[str] = Field(None, min_length=1, max_length=500)
    excerpt: Optional[str] = None
    content: Optional[str] = None
    author_id: Optional[str] = None
    featured_image: Optional[str] = None
    video_url: Optional[str] = None
    status: Optional[PostStatus] = None
    category: Optional[str] = None
    tags: Optional[List[str]] = None
    seo: Optional[SeoMeta] = None
