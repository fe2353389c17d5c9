"""
Shared endpoint dependencies
"""
from fastapi import HTTPException, Request, status
from fastapi.responses import JSONResponse

from ...core.responses import error_response, success_response
from ...models.view import Notice, NoticeReason
from ...services.controller import BookmarkApp

NOTICE_STATUS = {
    NoticeReason.VALIDATION: status.HTTP_400_BAD_REQUEST,
    NoticeReason.BACKEND: status.HTTP_502_BAD_GATEWAY,
}


def get_controller(request: Request) -> BookmarkApp:
    """The application controller created in the lifespan handler"""
    controller = getattr(request.app.state, "controller", None)
    if controller is None:
        raise HTTPException(status_code=503, detail="Bookmark app is not running")
    return controller


def not_signed_in() -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Not signed in",
    )


def notice_response(notice: Notice, controller: BookmarkApp):
    """Turn an operation notice into a response carrying the new view"""
    view = controller.view().model_dump(mode="json")
    if not notice.is_error:
        return success_response(notice.message, view)
    return JSONResponse(
        status_code=NOTICE_STATUS.get(notice.reason, status.HTTP_500_INTERNAL_SERVER_ERROR),
        content=error_response(notice.message, notice.reason.value if notice.reason else None, view),
    )
