"""Shared test fixtures for the bookmark manager test suite."""

from __future__ import annotations

import pytest

from bookmark_manager.services.bookmark_service import BookmarkService
from bookmark_manager.services.bookmark_store import BookmarkStore
from bookmark_manager.services.change_listener import ChangeListener
from bookmark_manager.services.controller import BookmarkApp
from bookmark_manager.services.session_manager import SessionManager

from fakes import REDIRECT_URL, TABLE, FakeAuthBackend, InMemoryChangeFeed, InMemoryTable


@pytest.fixture
def auth() -> FakeAuthBackend:
    return FakeAuthBackend()


@pytest.fixture
def feed() -> InMemoryChangeFeed:
    return InMemoryChangeFeed()


@pytest.fixture
def table(auth: FakeAuthBackend, feed: InMemoryChangeFeed) -> InMemoryTable:
    return InMemoryTable(auth.principal, feed)


@pytest.fixture
def session_manager(auth: FakeAuthBackend) -> SessionManager:
    return SessionManager(auth, REDIRECT_URL)


@pytest.fixture
def controller(session_manager, table, feed) -> BookmarkApp:
    """Controller wired to the in-memory backend (not started)."""
    return BookmarkApp(
        session_manager,
        BookmarkStore(table, TABLE),
        ChangeListener(feed, TABLE),
        BookmarkService(table, TABLE),
    )
