"""
Row ownership rule enforced by the Firestore backends
"""
import logging
from typing import Any, Awaitable, Callable, Dict, Optional

from firebase_admin import auth as firebase_auth

logger = logging.getLogger(__name__)

TokenProvider = Callable[[], Awaitable[Optional[str]]]


class OwnerPolicy:
    """A principal may only read, write or watch rows whose owner field is its uid.

    The principal is taken from a verified Firebase ID token, never from
    values supplied with the request.
    """

    def __init__(self, token_provider: TokenProvider, owner_field: str = "user_id"):
        self.owner_field = owner_field
        self._token_provider = token_provider

    async def principal(self) -> Optional[str]:
        token = await self._token_provider()
        if not token:
            return None

        try:
            decoded_token = firebase_auth.verify_id_token(token)
        except (ValueError, firebase_auth.InvalidIdTokenError, firebase_auth.CertificateFetchError) as e:
            logger.warning(f"Rejected Firebase ID token: {e}")
            return None

        return decoded_token.get("uid")

    def owns(self, row: Dict[str, Any], principal: str) -> bool:
        return row.get(self.owner_field) == principal
