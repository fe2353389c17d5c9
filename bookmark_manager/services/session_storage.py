"""
On-disk persistence for the authenticated session
"""
import logging
import os
from typing import Optional

import aiofiles
from pydantic import ValidationError

from ..models.session import Session

logger = logging.getLogger(__name__)


class SessionFileStore:
    """Stores one session as JSON so it can be restored on the next start"""

    def __init__(self, path: str):
        self.path = path

    async def load(self) -> Optional[Session]:
        if not os.path.exists(self.path):
            return None
        try:
            async with aiofiles.open(self.path, "r") as f:
                raw = await f.read()
            return Session.model_validate_json(raw)
        except (OSError, ValidationError) as e:
            logger.warning(f"Ignoring unreadable session file {self.path}: {e}")
            return None

    async def save(self, session: Session) -> None:
        directory = os.path.dirname(self.path)
        if directory:
            os.makedirs(directory, exist_ok=True)
        async with aiofiles.open(self.path, "w") as f:
            await f.write(session.model_dump_json())
        # Tokens are credentials
        os.chmod(self.path, 0o600)
        logger.debug(f"Persisted session for user {session.user_id}")

    async def clear(self) -> None:
        if os.path.exists(self.path):
            os.remove(self.path)
            logger.debug("Removed persisted session")
