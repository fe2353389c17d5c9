"""
Authentication session models
"""
from pydantic import BaseModel
from typing import Optional
from datetime import datetime, timedelta, timezone
from enum import Enum


class AuthChangeEvent(str, Enum):
    SIGNED_IN = "signed_in"
    SIGNED_OUT = "signed_out"
    TOKEN_REFRESHED = "token_refreshed"


class Session(BaseModel):
    """Authenticated principal plus the tokens that prove it"""
    user_id: str
    access_token: str
    refresh_token: str
    expires_at: datetime
    email: Optional[str] = None
    provider: Optional[str] = None

    def expires_within(self, seconds: int) -> bool:
        """True when the access token expires in less than ``seconds``"""
        return self.expires_at - timedelta(seconds=seconds) <= datetime.now(timezone.utc)


class SessionInfo(BaseModel):
    """Public view of the session (no tokens)"""
    authenticated: bool
    user_id: Optional[str] = None
    email: Optional[str] = None
    provider: Optional[str] = None
