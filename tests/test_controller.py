"""End-to-end tests for BookmarkApp against the in-memory backend."""

from __future__ import annotations

import asyncio

import pytest

from bookmark_manager.core.exceptions import (
    AuthenticationException,
    AuthorizationException,
    ValidationException,
)
from bookmark_manager.models.view import FormMode, NoticeLevel, NoticeReason, ViewPhase
from bookmark_manager.services.backend.base import ChangeEvent, ChangeType

from fakes import REDIRECT_URL, TABLE, make_session


async def start_signed_in(controller, auth, user_id: str = "alice"):
    auth.session = make_session(user_id)
    await controller.start()
    return controller


class TestStartup:
    def test__loading_before_start(self, controller) -> None:
        assert controller.view().phase == ViewPhase.LOADING

    @pytest.mark.asyncio
    async def test__signed_out_start(self, controller, feed) -> None:
        await controller.start()

        view = controller.view()
        assert view.phase == ViewPhase.UNAUTHENTICATED
        assert view.bookmarks == []
        assert feed.open_handles == []

    @pytest.mark.asyncio
    async def test__restored_session_loads_and_listens(self, controller, auth, table, feed) -> None:
        table.seed("Older", "https://older.test", "alice")
        table.seed("Newer", "https://newer.test", "alice")
        table.seed("Bob's", "https://bob.test", "bob")

        await start_signed_in(controller, auth)

        view = controller.view()
        assert view.phase == ViewPhase.DASHBOARD
        assert view.user_id == "alice"
        assert [b.title for b in view.bookmarks] == ["Newer", "Older"]
        assert [h.event_filter for h in feed.open_handles] == [{"user_id": "alice"}]

    @pytest.mark.asyncio
    async def test__initial_load_failure_shows_error(self, controller, auth, table) -> None:
        table.fail("select")

        await start_signed_in(controller, auth)

        view = controller.view()
        assert view.phase == ViewPhase.DASHBOARD
        assert view.error == "Failed to load bookmarks."

    @pytest.mark.asyncio
    async def test__interactive_sign_in(self, controller, auth, table, feed) -> None:
        table.seed("Mine", "https://mine.test", "alice")
        await controller.start()

        redirect = await controller.sign_in("google")
        await controller.complete_sign_in(f"{REDIRECT_URL}?user=alice")

        assert redirect.startswith("https://accounts.example.test/google")
        view = controller.view()
        assert view.phase == ViewPhase.DASHBOARD
        assert [b.title for b in view.bookmarks] == ["Mine"]
        assert len(feed.open_handles) == 1


class TestCreate:
    @pytest.mark.asyncio
    async def test__create_then_refresh_shows_new_bookmark_first(self, controller, auth, table) -> None:
        table.seed("Existing", "https://existing.test", "alice")
        await start_signed_in(controller, auth)

        controller.update_draft("Example", "https://example.com")
        notice = await controller.submit()
        await controller.wait_idle()

        assert notice.level == NoticeLevel.SUCCESS
        assert notice.message == "Bookmark added."
        first = controller.view().bookmarks[0]
        assert (first.title, first.url, first.user_id) == ("Example", "https://example.com", "alice")

    @pytest.mark.asyncio
    async def test__successful_create_resets_draft(self, controller, auth) -> None:
        await start_signed_in(controller, auth)

        controller.update_draft("Example", "https://example.com")
        await controller.submit()

        view = controller.view()
        assert (view.form.title, view.form.url) == ("", "")
        assert view.form.mode == FormMode.ADD
        assert view.success == "Bookmark added."
        assert view.error is None

    @pytest.mark.asyncio
    async def test__blank_title_rejected_without_backend_call(self, controller, auth, table) -> None:
        table.seed("Existing", "https://existing.test", "alice")
        await start_signed_in(controller, auth)
        before = controller.view().bookmarks
        calls_before = list(table.calls)

        controller.update_draft("", "https://x.com")
        notice = await controller.submit()

        assert notice.message == "Both fields are required."
        assert notice.reason == NoticeReason.VALIDATION
        assert table.calls == calls_before
        view = controller.view()
        assert view.bookmarks == before
        assert view.error == "Both fields are required."
        assert view.form.url == "https://x.com"

    @pytest.mark.asyncio
    async def test__bad_url_rejected_with_url_message(self, controller, auth, table) -> None:
        await start_signed_in(controller, auth)

        controller.update_draft("Example", "example.com")
        notice = await controller.submit()

        assert notice.message == "URL must start with http:// or https://"
        assert "insert" not in table.calls

    @pytest.mark.asyncio
    async def test__backend_failure_keeps_draft(self, controller, auth, table) -> None:
        await start_signed_in(controller, auth)
        table.fail("insert")

        controller.update_draft("Example", "https://example.com")
        notice = await controller.submit()

        assert notice.message == "Failed to add bookmark."
        assert notice.reason == NoticeReason.BACKEND
        view = controller.view()
        assert (view.form.title, view.form.url) == ("Example", "https://example.com")
        assert view.saving is False

    @pytest.mark.asyncio
    async def test__saving_flag_visible_while_in_flight(self, controller, auth) -> None:
        await start_signed_in(controller, auth)
        states = []
        controller.add_observer(states.append)

        controller.update_draft("Example", "https://example.com")
        await controller.submit()

        assert any(state.saving for state in states)
        assert states[-1].saving is False

    @pytest.mark.asyncio
    async def test__invalid_input_never_shows_saving(self, controller, auth) -> None:
        await start_signed_in(controller, auth)
        states = []
        controller.add_observer(states.append)

        controller.update_draft("", "https://x.com")
        await controller.submit()

        assert states
        assert not any(state.saving for state in states)

    @pytest.mark.asyncio
    async def test__new_operation_clears_previous_messages(self, controller, auth) -> None:
        await start_signed_in(controller, auth)
        controller.update_draft("", "")
        await controller.submit()
        assert controller.view().error is not None

        controller.update_draft("Example", "https://example.com")
        await controller.submit()

        view = controller.view()
        assert view.error is None
        assert view.success == "Bookmark added."


class TestEdit:
    @pytest.mark.asyncio
    async def test__update_changes_fields_keeps_id_no_duplicates(self, controller, auth, table) -> None:
        target = table.seed("Old", "https://old.test", "alice")
        table.seed("Other", "https://other.test", "alice")
        await start_signed_in(controller, auth)

        controller.start_edit(target["id"])
        controller.update_draft("New", "https://new.test")
        notice = await controller.submit()
        await controller.wait_idle()

        assert notice.message == "Bookmark updated."
        bookmarks = controller.view().bookmarks
        ids = [b.id for b in bookmarks]
        assert len(ids) == len(set(ids)) == 2
        edited = controller.store.get(target["id"])
        assert (edited.title, edited.url) == ("New", "https://new.test")

    @pytest.mark.asyncio
    async def test__successful_update_returns_to_add_mode(self, controller, auth, table) -> None:
        target = table.seed("Old", "https://old.test", "alice")
        await start_signed_in(controller, auth)

        controller.start_edit(target["id"])
        controller.update_draft("New", "https://new.test")
        await controller.submit()

        form = controller.view().form
        assert form.mode == FormMode.ADD
        assert (form.title, form.url, form.editing_id) == ("", "", None)

    @pytest.mark.asyncio
    async def test__failed_update_keeps_edit_mode(self, controller, auth, table) -> None:
        target = table.seed("Old", "https://old.test", "alice")
        await start_signed_in(controller, auth)
        table.fail("update")

        controller.start_edit(target["id"])
        controller.update_draft("New", "https://new.test")
        notice = await controller.submit()

        assert notice.message == "Failed to update bookmark."
        form = controller.view().form
        assert form.mode == FormMode.EDIT
        assert form.editing_id == target["id"]
        assert form.title == "New"

    @pytest.mark.asyncio
    async def test__switching_edit_target_replaces_draft(self, controller, auth, table) -> None:
        x = table.seed("X title", "https://x.test", "alice")
        y = table.seed("Y title", "https://y.test", "alice")
        await start_signed_in(controller, auth)

        controller.start_edit(x["id"])
        controller.update_draft("X edited but unsaved", "https://x-edited.test")
        view = controller.start_edit(y["id"])

        assert view.form.editing_id == y["id"]
        assert (view.form.title, view.form.url) == ("Y title", "https://y.test")
        assert controller.store.get(x["id"]).title == "X title"
        assert table.rows[TABLE][x["id"]]["title"] == "X title"

    @pytest.mark.asyncio
    async def test__cancel_clears_draft(self, controller, auth, table) -> None:
        target = table.seed("Old", "https://old.test", "alice")
        await start_signed_in(controller, auth)

        controller.start_edit(target["id"])
        view = controller.cancel_edit()

        assert view.form.mode == FormMode.ADD
        assert (view.form.title, view.form.url) == ("", "")

    @pytest.mark.asyncio
    async def test__edit_unknown_bookmark(self, controller, auth) -> None:
        await start_signed_in(controller, auth)

        with pytest.raises(ValidationException):
            controller.start_edit(42)


class TestDelete:
    @pytest.mark.asyncio
    async def test__deleted_bookmark_never_returned_by_refresh(self, controller, auth, table) -> None:
        doomed = table.seed("Doomed", "https://doomed.test", "alice")
        table.seed("Kept", "https://kept.test", "alice")
        await start_signed_in(controller, auth)

        notice = await controller.delete_bookmark(doomed["id"])
        await controller.wait_idle()
        await controller.refresh()

        assert notice.message == "Bookmark deleted."
        assert doomed["id"] not in [b.id for b in controller.view().bookmarks]

    @pytest.mark.asyncio
    async def test__delete_failure(self, controller, auth, table) -> None:
        kept = table.seed("Kept", "https://kept.test", "alice")
        await start_signed_in(controller, auth)
        table.fail("delete")

        notice = await controller.delete_bookmark(kept["id"])

        assert notice.message == "Failed to delete bookmark."
        assert [b.id for b in controller.view().bookmarks] == [kept["id"]]

    @pytest.mark.asyncio
    async def test__deleting_edited_bookmark_resets_form(self, controller, auth, table) -> None:
        target = table.seed("Target", "https://target.test", "alice")
        await start_signed_in(controller, auth)
        controller.start_edit(target["id"])

        await controller.delete_bookmark(target["id"])

        assert controller.view().form.mode == FormMode.ADD

    @pytest.mark.asyncio
    async def test__other_users_id_left_to_backend(self, controller, auth, table) -> None:
        bobs = table.seed("Bob's", "https://bob.test", "bob")
        await start_signed_in(controller, auth)

        notice = await controller.delete_bookmark(bobs["id"])

        assert notice.level == NoticeLevel.SUCCESS
        assert bobs["id"] in table.rows[TABLE]


class TestLiveUpdates:
    @pytest.mark.asyncio
    async def test__server_side_change_triggers_refresh(self, controller, auth, table, feed) -> None:
        await start_signed_in(controller, auth)

        # A row written by another client
        row = table.seed("From elsewhere", "https://elsewhere.test", "alice")
        feed.publish(TABLE, ChangeType.INSERT, row)
        await controller.wait_idle()

        assert [b.title for b in controller.view().bookmarks] == ["From elsewhere"]

    @pytest.mark.asyncio
    async def test__user_switch_never_leaks_events(self, controller, auth, table, feed) -> None:
        alice_row = table.seed("Alice's", "https://alice.test", "alice")
        table.seed("Bob's", "https://bob.test", "bob")
        await start_signed_in(controller, auth, "alice")
        alice_handler = feed.open_handles[0].handler

        await controller.sign_out()
        auth.login("bob")
        await controller.wait_idle()
        selects_before = table.calls.count("select")

        feed.publish(TABLE, ChangeType.UPDATE, alice_row)
        alice_handler(ChangeEvent(table=TABLE, type=ChangeType.UPDATE, row=alice_row))
        await controller.wait_idle()

        assert table.calls.count("select") == selects_before
        assert [h.event_filter for h in feed.open_handles] == [{"user_id": "bob"}]
        assert [b.user_id for b in controller.view().bookmarks] == ["bob"]

    @pytest.mark.asyncio
    async def test__direct_user_change_resubscribes(self, controller, auth, table, feed) -> None:
        table.seed("Bob's", "https://bob.test", "bob")
        await start_signed_in(controller, auth, "alice")
        controller.update_draft("Alice draft", "https://draft.test")

        auth.login("bob")
        await controller.wait_idle()

        view = controller.view()
        assert view.user_id == "bob"
        assert [b.title for b in view.bookmarks] == ["Bob's"]
        assert view.form.title == ""
        assert [h.event_filter for h in feed.open_handles] == [{"user_id": "bob"}]

    @pytest.mark.asyncio
    async def test__token_refresh_keeps_draft_and_retries_feed(self, controller, auth, feed) -> None:
        open_feed = feed.subscribe

        async def feed_unavailable(*args, **kwargs):
            raise AuthorizationException("Change feed unavailable")

        feed.subscribe = feed_unavailable
        await start_signed_in(controller, auth)
        assert feed.open_handles == []
        controller.update_draft("Half typed", "https://half.test")
        feed.subscribe = open_feed

        auth.refresh()
        await controller.wait_idle()

        view = controller.view()
        assert (view.form.title, view.form.url) == ("Half typed", "https://half.test")
        assert [h.event_filter for h in feed.open_handles] == [{"user_id": "alice"}]

    @pytest.mark.asyncio
    async def test__token_refresh_with_open_feed_changes_nothing(self, controller, auth, feed) -> None:
        await start_signed_in(controller, auth)
        controller.update_draft("Half typed", "https://half.test")

        auth.refresh()
        await controller.wait_idle()

        assert controller.view().form.title == "Half typed"
        assert feed.subscribe_calls == [{"user_id": "alice"}]


class TestSignOutAndClose:
    @pytest.mark.asyncio
    async def test__sign_out_releases_everything(self, controller, auth, table, feed) -> None:
        table.seed("Mine", "https://mine.test", "alice")
        await start_signed_in(controller, auth)

        await controller.sign_out()

        view = controller.view()
        assert view.phase == ViewPhase.UNAUTHENTICATED
        assert view.bookmarks == []
        assert controller.store.bookmarks == []
        assert feed.open_handles == []

    @pytest.mark.asyncio
    async def test__actions_require_session(self, controller) -> None:
        await controller.start()

        with pytest.raises(AuthenticationException):
            await controller.submit()
        with pytest.raises(AuthenticationException):
            await controller.delete_bookmark(1)
        with pytest.raises(AuthenticationException):
            await controller.refresh()

    @pytest.mark.asyncio
    async def test__close_releases_feed_and_ignores_late_results(self, controller, auth, table, feed) -> None:
        await start_signed_in(controller, auth)
        release = asyncio.Event()
        original_insert = table.insert

        async def slow_insert(*args, **kwargs):
            await release.wait()
            return await original_insert(*args, **kwargs)

        table.insert = slow_insert
        controller.update_draft("Late", "https://late.test")
        pending = asyncio.create_task(controller.submit())
        await asyncio.sleep(0)

        await controller.close()
        release.set()
        notice = await pending

        assert notice.message == "Bookmark added."
        assert feed.open_handles == []
        assert controller.success is None
        assert controller.form.title == "Late"

    @pytest.mark.asyncio
    async def test__user_switch_during_save_clears_saving(self, controller, auth, table) -> None:
        await start_signed_in(controller, auth, "alice")
        release = asyncio.Event()
        original_insert = table.insert

        async def slow_insert(*args, **kwargs):
            await release.wait()
            return await original_insert(*args, **kwargs)

        table.insert = slow_insert
        controller.update_draft("Alice's", "https://alice.test")
        pending = asyncio.create_task(controller.submit())
        await asyncio.sleep(0)
        assert controller.view().saving is True

        await controller.sign_out()
        auth.login("bob")
        await controller.wait_idle()
        assert controller.view().saving is False

        release.set()
        await pending
        await controller.wait_idle()

        view = controller.view()
        assert view.user_id == "bob"
        assert view.saving is False
        assert view.error is None
        assert view.success is None
