"""
Bookmarks management endpoints
"""
from typing import List
from fastapi import APIRouter, HTTPException, Depends

from ....core.exceptions import AuthenticationException, ValidationException
from ....models.bookmark import Bookmark
from ....models.view import ViewState
from ....services.controller import BookmarkApp
from ..deps import get_controller, not_signed_in, notice_response

router = APIRouter()


@router.get("", response_model=List[Bookmark])
async def list_bookmarks(controller: BookmarkApp = Depends(get_controller)):
    """Cached bookmarks for the signed in user, newest first"""
    if controller.user_id is None:
        raise not_signed_in()
    return controller.store.bookmarks


@router.post("/refresh", response_model=ViewState)
async def refresh_bookmarks(controller: BookmarkApp = Depends(get_controller)):
    """Re-fetch the whole list from the backend"""
    try:
        return await controller.refresh()
    except AuthenticationException:
        raise not_signed_in()


@router.post("/{bookmark_id}/edit", response_model=ViewState)
async def edit_bookmark(bookmark_id: int, controller: BookmarkApp = Depends(get_controller)):
    """Load a bookmark into the form and switch it to edit mode"""
    try:
        return controller.start_edit(bookmark_id)
    except AuthenticationException:
        raise not_signed_in()
    except ValidationException as e:
        raise HTTPException(status_code=404, detail=e.message)


@router.delete("/{bookmark_id}")
async def delete_bookmark(bookmark_id: int, controller: BookmarkApp = Depends(get_controller)):
    """Delete a bookmark"""
    try:
        notice = await controller.delete_bookmark(bookmark_id)
    except AuthenticationException:
        raise not_signed_in()
    return notice_response(notice, controller)
