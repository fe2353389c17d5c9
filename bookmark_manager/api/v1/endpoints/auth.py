"""
Authentication endpoints
"""
import logging
from fastapi import APIRouter, HTTPException, Depends, Request, status
from fastapi.responses import RedirectResponse

from ....core.config import settings
from ....core.exceptions import AuthenticationException, ValidationException
from ....core.responses import success_response
from ....models.session import SessionInfo
from ....services.controller import BookmarkApp
from ..deps import get_controller

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("/session", response_model=SessionInfo)
async def get_session(controller: BookmarkApp = Depends(get_controller)):
    """Current authentication state"""
    await controller.session_manager.wait_ready()
    return controller.session_manager.info()


@router.get("/login/{provider}")
async def login(provider: str, controller: BookmarkApp = Depends(get_controller)):
    """Send the user to the provider's sign in page"""
    try:
        auth_url = await controller.sign_in(provider)
    except ValidationException as e:
        raise HTTPException(status_code=400, detail=e.message)
    except AuthenticationException as e:
        raise HTTPException(status_code=502, detail=e.message)

    return RedirectResponse(auth_url, status_code=status.HTTP_307_TEMPORARY_REDIRECT)


@router.get("/callback")
async def login_callback(request: Request, controller: BookmarkApp = Depends(get_controller)):
    """Provider redirect target; finishes the sign in"""
    try:
        session = await controller.complete_sign_in(str(request.url))
    except AuthenticationException as e:
        logger.warning(f"Sign in failed: {e.message}")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=e.message,
        )

    logger.info(f"Signed in user {session.user_id}")
    return RedirectResponse(settings.POST_LOGIN_REDIRECT, status_code=status.HTTP_303_SEE_OTHER)


@router.post("/logout")
async def logout(controller: BookmarkApp = Depends(get_controller)):
    """End the session and drop the cached bookmarks"""
    await controller.sign_out()
    return success_response("Successfully logged out", controller.view().model_dump(mode="json"))
