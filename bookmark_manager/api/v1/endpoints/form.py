"""
Add/edit form endpoints
"""
from fastapi import APIRouter, Depends

from ....core.exceptions import AuthenticationException
from ....models.bookmark import BookmarkDraftUpdate
from ....models.view import ViewState
from ....services.controller import BookmarkApp
from ..deps import get_controller, not_signed_in, notice_response

router = APIRouter()


@router.put("", response_model=ViewState)
async def update_draft(draft: BookmarkDraftUpdate, controller: BookmarkApp = Depends(get_controller)):
    """Replace the draft title and url (no validation until submit)"""
    return controller.update_draft(draft.title, draft.url)


@router.post("/submit")
async def submit_form(controller: BookmarkApp = Depends(get_controller)):
    """Add a bookmark, or update the one being edited"""
    try:
        notice = await controller.submit()
    except AuthenticationException:
        raise not_signed_in()
    return notice_response(notice, controller)


@router.post("/cancel", response_model=ViewState)
async def cancel_edit(controller: BookmarkApp = Depends(get_controller)):
    """Leave edit mode and clear the draft"""
    return controller.cancel_edit()
