"""Schemas for the posts endpoints."""

from typing import Optional

from pydantic import Field

from .common import CamelModel


class PostCreateRequest(CamelModel):
    title: str = Field(..., min_length=1, max_length=300)
    content: Optional[str] = None
    published: bool = False


class PostUpdateRequest(CamelModel):
    """Every field optional; only the ones sent are changed."""
    title: Optional[str] = Field(default=None, min_length=1, max_length=300)
    content: Optional[str] = None
    published: Optional[bool] = None
