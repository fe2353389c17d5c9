"""
Presentation state models: form draft, notices and the view snapshot
"""
from pydantic import BaseModel
from typing import List, Optional
from enum import Enum

from .bookmark import Bookmark


class FormMode(str, Enum):
    ADD = "add"
    EDIT = "edit"


class ViewPhase(str, Enum):
    LOADING = "loading"
    UNAUTHENTICATED = "unauthenticated"
    DASHBOARD = "dashboard"


class NoticeLevel(str, Enum):
    SUCCESS = "success"
    ERROR = "error"


class NoticeReason(str, Enum):
    VALIDATION = "validation"
    BACKEND = "backend"


class Notice(BaseModel):
    level: NoticeLevel
    message: str
    reason: Optional[NoticeReason] = None

    @property
    def is_error(self) -> bool:
        return self.level == NoticeLevel.ERROR


class BookmarkForm(BaseModel):
    """Add/edit form draft.

    ``editing_id`` is None in the ``idle/add`` state and holds the target
    bookmark id in the ``editing(id)`` state.
    """
    title: str = ""
    url: str = ""
    editing_id: Optional[int] = None

    @property
    def mode(self) -> FormMode:
        return FormMode.ADD if self.editing_id is None else FormMode.EDIT

    def set_fields(self, title: str, url: str) -> None:
        self.title = title
        self.url = url

    def start_edit(self, bookmark: Bookmark) -> None:
        self.editing_id = bookmark.id
        self.title = bookmark.title
        self.url = bookmark.url

    def clear(self) -> None:
        """Return to idle/add with an empty draft"""
        self.editing_id = None
        self.title = ""
        self.url = ""


class FormState(BaseModel):
    title: str
    url: str
    mode: FormMode
    editing_id: Optional[int] = None


class ViewState(BaseModel):
    """Everything a view needs to render the current screen"""
    phase: ViewPhase
    user_id: Optional[str] = None
    email: Optional[str] = None
    bookmarks: List[Bookmark] = []
    form: FormState
    saving: bool = False
    error: Optional[str] = None
    success: Optional[str] = None
