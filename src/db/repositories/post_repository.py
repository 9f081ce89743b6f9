"""Post repository - CRUD for user posts."""

import logging
from typing import Optional, List, Dict, Any

from sqlalchemy import select, desc, delete

from ..models import PostModel
from ..connection import db
from ..utils import with_db_retry

logger = logging.getLogger(__name__)


@with_db_retry
async def list_posts(
    published: Optional[bool] = None,
    author_id: Optional[str] = None,
) -> List[Dict[str, Any]]:
    """Posts newest first, optionally filtered."""
    async with db.session() as session:
        stmt = select(PostModel)
        if published is not None:
            stmt = stmt.where(PostModel.published == published)
        if author_id:
            stmt = stmt.where(PostModel.author_id == author_id)
        stmt = stmt.order_by(desc(PostModel.created_at))

        result = await session.execute(stmt)
        return [post.to_dict() for post in result.scalars().all()]


@with_db_retry
async def get_post(post_id: str) -> Optional[Dict[str, Any]]:
    async with db.session() as session:
        result = await session.execute(select(PostModel).where(PostModel.id == post_id))
        post = result.scalar_one_or_none()
        return post.to_dict() if post else None


@with_db_retry
async def create_post(
    author_id: str,
    title: str,
    content: Optional[str] = None,
    published: bool = False,
) -> Dict[str, Any]:
    async with db.session() as session:
        post = PostModel(
            author_id=author_id,
            title=title,
            content=content,
            published=published,
        )
        session.add(post)
        await session.flush()
        post_id = post.id

        # Reload so the author relationship is populated
        result = await session.execute(select(PostModel).where(PostModel.id == post_id))
        created = result.scalar_one()
        await session.refresh(created, attribute_names=["author"])
        logger.info(f"Created post {post_id} by {author_id}")
        return created.to_dict()


@with_db_retry
async def update_post(post_id: str, **values: Any) -> Optional[Dict[str, Any]]:
    """Apply the given fields (title, content, published) to a post."""
    async with db.session() as session:
        post = await session.get(PostModel, post_id)
        if post is None:
            return None

        for key, value in values.items():
            setattr(post, key, value)
        await session.flush()
        await session.refresh(post, attribute_names=["author", "updated_at"])
        return post.to_dict()


@with_db_retry
async def delete_post(post_id: str) -> bool:
    async with db.session() as session:
        result = await session.execute(delete(PostModel).where(PostModel.id == post_id))
        deleted = result.rowcount == 1
        if deleted:
            logger.info(f"Deleted post {post_id}")
        return deleted
