"""
Response bodies for operations that report a message alongside the new view
"""
from typing import Any, Dict, Optional


def success_response(message: str, view: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
    """``{"success": true, "message": ..., "data": <view>}``"""
    response: Dict[str, Any] = {"success": True, "message": message}
    if view is not None:
        response["data"] = view
    return response


def error_response(error: str, reason: Optional[str] = None, view: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
    """``{"success": false, "error": ..., "details": {"reason", "view"}}``

    ``reason`` is a NoticeReason value.
    """
    details: Dict[str, Any] = {}
    if reason is not None:
        details["reason"] = reason
    if view is not None:
        details["view"] = view

    response: Dict[str, Any] = {"success": False, "error": error}
    if details:
        response["details"] = details
    return response
