"""Posts API endpoints."""

import logging
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query

from src.db.repositories import post_repository

from ..dependencies import get_current_user
from ..schemas.errors import POST_ERROR_RESPONSES
from ..schemas.posts import PostCreateRequest, PostUpdateRequest

logger = logging.getLogger(__name__)
router = APIRouter()


async def _get_owned_post(post_id: str, session_user: Dict[str, Any]) -> Dict[str, Any]:
    post = await post_repository.get_post(post_id)
    if not post:
        raise HTTPException(status_code=404, detail="Post not found")
    if post["authorId"] != session_user["userId"]:
        raise HTTPException(status_code=403, detail="Only the author can modify this post")
    return post


@router.get(
    "",
    response_model=List[Dict[str, Any]],
    operation_id="listPosts",
    summary="List posts, newest first",
)
async def list_posts(
    published: Optional[bool] = Query(None),
    author_id: Optional[str] = Query(None, alias="authorId"),
):
    return await post_repository.list_posts(published=published, author_id=author_id)


@router.post(
    "",
    status_code=201,
    response_model=Dict[str, Any],
    responses=POST_ERROR_RESPONSES,
    operation_id="createPost",
    summary="Create a post as the signed-in user",
)
async def create_post(
    request: PostCreateRequest,
    session_user: Dict[str, Any] = Depends(get_current_user),
):
    post = await post_repository.create_post(
        author_id=session_user["userId"],
        title=request.title,
        content=request.content,
        published=request.published,
    )
    return post


@router.get(
    "/{post_id}",
    response_model=Dict[str, Any],
    responses=POST_ERROR_RESPONSES,
    operation_id="getPost",
    summary="Get a post",
)
async def get_post(post_id: str):
    post = await post_repository.get_post(post_id)
    if not post:
        raise HTTPException(status_code=404, detail="Post not found")
    return post


@router.put(
    "/{post_id}",
    response_model=Dict[str, Any],
    responses=POST_ERROR_RESPONSES,
    operation_id="updatePost",
    summary="Update a post (author only)",
)
async def update_post(
    post_id: str,
    request: PostUpdateRequest,
    session_user: Dict[str, Any] = Depends(get_current_user),
):
    post = await _get_owned_post(post_id, session_user)

    # content may be cleared; title and published may not
    changes = {
        key: value
        for key, value in request.model_dump(exclude_unset=True).items()
        if value is not None or key == "content"
    }
    if not changes:
        return post

    updated = await post_repository.update_post(post_id, **changes)
    if not updated:
        raise HTTPException(status_code=404, detail="Post not found")
    return updated


@router.delete(
    "/{post_id}",
    response_model=Dict[str, Any],
    responses=POST_ERROR_RESPONSES,
    operation_id="deletePost",
    summary="Delete a post (author only)",
)
async def delete_post(
    post_id: str,
    session_user: Dict[str, Any] = Depends(get_current_user),
):
    await _get_owned_post(post_id, session_user)

    if not await post_repository.delete_post(post_id):
        raise HTTPException(status_code=404, detail="Post not found")

    logger.info(f"Post {post_id} deleted by {session_user['userId']}")
    return {"message": "Post deleted successfully"}
