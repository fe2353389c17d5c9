"""
Top-level application controller.

``BookmarkApp`` owns every piece of mutable client state: the session
manager, the bookmark cache, the change listener, the form draft and the
messages shown to the user. It is created once at startup and closed at
shutdown; views only ever read ``view()`` and call its actions.
"""
import asyncio
import logging
from typing import Awaitable, Callable, List, Optional, Set, Tuple

from ..core.config import Settings
from ..core.exceptions import (
    AuthenticationException,
    BookmarkLoadException,
    BookmarkManagerException,
    BookmarkOperationException,
    ValidationException,
)
from ..models.session import AuthChangeEvent, Session
from ..models.view import (
    BookmarkForm,
    FormState,
    Notice,
    NoticeLevel,
    NoticeReason,
    ViewPhase,
    ViewState,
)
from .bookmark_service import (
    ADDED_MESSAGE,
    DELETED_MESSAGE,
    UPDATED_MESSAGE,
    BookmarkService,
    validate_bookmark_fields,
)
from .bookmark_store import BookmarkStore
from .change_listener import ChangeListener
from .session_manager import SessionManager

logger = logging.getLogger(__name__)

ViewObserver = Callable[[ViewState], None]


class BookmarkApp:
    """Session-gated bookmark dashboard state"""

    def __init__(
        self,
        session_manager: SessionManager,
        store: BookmarkStore,
        listener: ChangeListener,
        service: BookmarkService,
        on_close: Optional[Callable] = None,
    ):
        self.session_manager = session_manager
        self.store = store
        self.listener = listener
        self.service = service
        self.form = BookmarkForm()
        self.error: Optional[Notice] = None
        self.success: Optional[Notice] = None
        self.saving = False
        self._saving_token: Optional[object] = None
        self._closed = False
        self._on_close = on_close
        self._tasks: Set[asyncio.Task] = set()
        self._observers: List[ViewObserver] = []
        self._remove_session_callback: Optional[Callable[[], None]] = None

    @classmethod
    def from_settings(cls, settings: Settings) -> "BookmarkApp":
        """Wire the controller to Firebase; requires firebase_admin to be initialized"""
        from ..core.firebase_config import get_async_db, get_db
        from .backend.firebase_auth import FirebaseAuthBackend
        from .backend.firestore_feed import FirestoreChangeFeed
        from .backend.firestore_policy import OwnerPolicy
        from .backend.firestore_table import FirestoreTableBackend
        from .session_storage import SessionFileStore

        auth = FirebaseAuthBackend(
            settings.FIREBASE_WEB_API_KEY,
            SessionFileStore(settings.SESSION_FILE),
            refresh_margin=settings.TOKEN_REFRESH_MARGIN_SECONDS,
            timeout=settings.HTTP_TIMEOUT,
        )
        policy = OwnerPolicy(auth.access_token)
        table = FirestoreTableBackend(get_async_db(), policy, settings.COUNTERS_COLLECTION)
        feed = FirestoreChangeFeed(get_db(), policy)

        return cls(
            SessionManager(auth, settings.AUTH_REDIRECT_URL),
            BookmarkStore(table, settings.BOOKMARKS_COLLECTION),
            ChangeListener(feed, settings.BOOKMARKS_COLLECTION),
            BookmarkService(table, settings.BOOKMARKS_COLLECTION),
            on_close=auth.aclose,
        )

    # -- lifecycle -----------------------------------------------------------

    async def start(self) -> None:
        session = await self.session_manager.initialize()
        self._remove_session_callback = self.session_manager.on_session_change(self._handle_session_change)
        if session is not None and not self._closed:
            await self._activate(session.user_id)
        self._notify()

    async def close(self) -> None:
        """Release the live feed; pending requests finish but are not applied"""
        if self._closed:
            return
        self._closed = True
        if self._remove_session_callback:
            self._remove_session_callback()
        try:
            await self.listener.unsubscribe()
        finally:
            self.store.reset()
            self.session_manager.close()
            self._observers.clear()
            if self._on_close is not None:
                await self._on_close()
        logger.info("Bookmark app closed")

    async def wait_idle(self) -> None:
        """Wait for refreshes scheduled by session or change events"""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    @property
    def user_id(self) -> Optional[str]:
        return self.session_manager.user_id

    def _is_current(self, user_id: Optional[str]) -> bool:
        return not self._closed and user_id is not None and user_id == self.user_id

    def _spawn(self, coro) -> None:
        task = asyncio.create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def _activate(self, user_id: str) -> None:
        self.store.reset(user_id)
        await self._load(user_id)
        await self._subscribe(user_id)

    async def _subscribe(self, user_id: str) -> None:
        if not self._is_current(user_id):
            return
        try:
            await self.listener.subscribe(user_id, self._handle_change)
        except BookmarkManagerException as e:
            logger.error(f"Could not open change feed for user {user_id}: {e.message}")

    def _handle_session_change(self, event: AuthChangeEvent, session: Optional[Session]) -> None:
        if self._closed:
            return
        self._spawn(self._apply_session(event, session))

    async def _apply_session(self, event: AuthChangeEvent, session: Optional[Session]) -> None:
        if session is None:
            await self.listener.unsubscribe()
            self.store.reset()
            self._reset_user_state()
        elif session.user_id != self.store.user_id:
            # New user: the old feed is released inside subscribe()
            self._reset_user_state()
            await self._activate(session.user_id)
        else:
            if event == AuthChangeEvent.SIGNED_IN:
                await self._load(session.user_id)
            if self.listener.active_user_id != session.user_id:
                # The feed failed to open earlier; retry on the next auth event
                await self._subscribe(session.user_id)
        self._notify()

    def _reset_user_state(self) -> None:
        self.form.clear()
        self._clear_notices()
        self.saving = False
        self._saving_token = None

    def _handle_change(self, user_id: str) -> None:
        if not self._is_current(user_id):
            return
        self._spawn(self._load(user_id, notify=True))

    async def _load(self, user_id: str, notify: bool = False) -> None:
        try:
            await self.store.refresh(user_id)
        except BookmarkLoadException as e:
            if self._is_current(user_id):
                self.error = Notice(level=NoticeLevel.ERROR, message=e.message, reason=NoticeReason.BACKEND)
        if notify:
            self._notify()

    # -- observers -----------------------------------------------------------

    def add_observer(self, observer: ViewObserver) -> Callable[[], None]:
        self._observers.append(observer)

        def remove() -> None:
            if observer in self._observers:
                self._observers.remove(observer)

        return remove

    def _notify(self) -> None:
        if self._closed:
            return
        state = self.view()
        for observer in list(self._observers):
            observer(state)

    # -- view ----------------------------------------------------------------

    def view(self) -> ViewState:
        if not self.session_manager.is_ready:
            phase = ViewPhase.LOADING
        elif self.session_manager.session is None:
            phase = ViewPhase.UNAUTHENTICATED
        else:
            phase = ViewPhase.DASHBOARD

        session = self.session_manager.session
        return ViewState(
            phase=phase,
            user_id=session.user_id if session else None,
            email=session.email if session else None,
            bookmarks=self.store.bookmarks if phase == ViewPhase.DASHBOARD else [],
            form=FormState(
                title=self.form.title,
                url=self.form.url,
                mode=self.form.mode,
                editing_id=self.form.editing_id,
            ),
            saving=self.saving,
            error=self.error.message if self.error else None,
            success=self.success.message if self.success else None,
        )

    def _clear_notices(self) -> None:
        self.error = None
        self.success = None

    def _require_user(self) -> str:
        user_id = self.user_id
        if user_id is None:
            raise AuthenticationException("Not signed in")
        return user_id

    # -- auth actions --------------------------------------------------------

    async def sign_in(self, provider: str) -> str:
        return await self.session_manager.sign_in_with_provider(provider)

    async def complete_sign_in(self, callback_url: str) -> Session:
        session = await self.session_manager.complete_sign_in(callback_url)
        await self.wait_idle()
        return session

    async def sign_out(self) -> None:
        await self.session_manager.sign_out()
        await self.wait_idle()
        await self._apply_session(AuthChangeEvent.SIGNED_OUT, None)

    # -- form actions --------------------------------------------------------

    def update_draft(self, title: str, url: str) -> ViewState:
        self.form.set_fields(title, url)
        self._notify()
        return self.view()

    def start_edit(self, bookmark_id: int) -> ViewState:
        self._require_user()
        bookmark = self.store.get(bookmark_id)
        if bookmark is None:
            raise ValidationException("Bookmark not found", details={"bookmark_id": bookmark_id})
        self.form.start_edit(bookmark)
        self._notify()
        return self.view()

    def cancel_edit(self) -> ViewState:
        self.form.clear()
        self._notify()
        return self.view()

    async def submit(self) -> Notice:
        """Create or update depending on the form mode"""
        if self.form.editing_id is not None:
            return await self.update_bookmark(self.form.editing_id)
        return await self.add_bookmark()

    async def refresh(self) -> ViewState:
        user_id = self._require_user()
        await self._load(user_id, notify=True)
        return self.view()

    # -- CRUD actions --------------------------------------------------------

    async def add_bookmark(self) -> Notice:
        user_id = self._require_user()
        title, url = self.form.title, self.form.url
        return await self._mutate(
            user_id,
            lambda: self.service.create(user_id, title, url),
            ADDED_MESSAGE,
            clears_form=lambda: True,
            fields=(title, url),
        )

    async def update_bookmark(self, bookmark_id: int) -> Notice:
        user_id = self._require_user()
        title, url = self.form.title, self.form.url
        return await self._mutate(
            user_id,
            lambda: self.service.update(bookmark_id, title, url),
            UPDATED_MESSAGE,
            clears_form=lambda: self.form.editing_id == bookmark_id,
            fields=(title, url),
        )

    async def delete_bookmark(self, bookmark_id: int) -> Notice:
        user_id = self._require_user()
        return await self._mutate(
            user_id,
            lambda: self.service.delete(bookmark_id),
            DELETED_MESSAGE,
            clears_form=lambda: self.form.editing_id == bookmark_id,
        )

    async def _mutate(
        self,
        user_id: str,
        operation: Callable[[], Awaitable],
        success_message: str,
        clears_form: Callable[[], bool],
        fields: Optional[Tuple[str, str]] = None,
    ) -> Notice:
        """Run one mutation, then report it and re-fetch.

        When ``fields`` are given they are validated first and the saving
        flag is shown only once they pass. Results that arrive after
        close() or after another user signed in are returned to the caller
        but not applied.
        """
        self._clear_notices()
        token = None
        try:
            if fields is not None:
                validate_bookmark_fields(*fields)
                token = self._begin_saving()
            await operation()
        except (ValidationException, BookmarkOperationException) as e:
            reason = NoticeReason.VALIDATION if isinstance(e, ValidationException) else NoticeReason.BACKEND
            notice = Notice(level=NoticeLevel.ERROR, message=e.message, reason=reason)
            if self._is_current(user_id):
                self._end_saving(token)
                self.error = notice
                self._notify()
            return notice

        notice = Notice(level=NoticeLevel.SUCCESS, message=success_message)
        if not self._is_current(user_id):
            logger.debug(f"Ignoring late result for user {user_id}: {success_message}")
            return notice

        self._end_saving(token)
        if clears_form():
            self.form.clear()
        self.success = notice
        self._notify()
        await self._load(user_id, notify=True)
        return notice

    def _begin_saving(self) -> object:
        token = object()
        self._saving_token = token
        self.saving = True
        self._notify()
        return token

    def _end_saving(self, token: Optional[object]) -> None:
        # Only the most recent mutation may clear the flag
        if token is not None and token is self._saving_token:
            self.saving = False
            self._saving_token = None
