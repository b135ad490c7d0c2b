import asyncio

import pytest

from trailhub.core.errors import BackendError, NotAuthenticatedError, ToggleInProgressError
from trailhub.state.favorites import FavoritesTracker

from conftest import USER


@pytest.mark.asyncio
async def test_toggle_twice_restores_original_set(store, scope):
    tracker = FavoritesTracker(store, scope)
    await tracker.load(USER)
    before = set(tracker.favorites)

    assert await tracker.toggle(USER, "1") is True
    assert tracker.is_favorite("1")
    assert await tracker.toggle(USER, "1") is False

    assert tracker.favorites == before
    assert store.tables["user_favorites"] == []


@pytest.mark.asyncio
async def test_failed_insert_leaves_set_unchanged(store, scope):
    store.fail_on.add(("insert", "user_favorites"))
    tracker = FavoritesTracker(store, scope)

    with pytest.raises(BackendError):
        await tracker.toggle(USER, "1")

    assert "1" not in tracker.favorites


@pytest.mark.asyncio
async def test_failed_delete_keeps_the_mark(store, scope):
    store.tables["user_favorites"].append({"user_id": USER.id, "course_id": "2"})
    tracker = FavoritesTracker(store, scope)
    await tracker.load(USER)
    store.fail_on.add(("delete", "user_favorites"))

    with pytest.raises(BackendError):
        await tracker.toggle(USER, "2")

    assert tracker.favorites == {"2"}


@pytest.mark.asyncio
async def test_toggle_without_identity_never_calls_store(store, scope):
    tracker = FavoritesTracker(store, scope)
    with pytest.raises(NotAuthenticatedError):
        await tracker.toggle(None, "1")
    assert store.calls == []


@pytest.mark.asyncio
async def test_second_toggle_on_same_trail_is_rejected_while_in_flight(store, scope):
    tracker = FavoritesTracker(store, scope)
    gate = store.hold("insert")

    first = asyncio.create_task(tracker.toggle(USER, "1"))
    await asyncio.sleep(0)

    with pytest.raises(ToggleInProgressError):
        await tracker.toggle(USER, "1")

    gate.set()
    assert await first is True
    assert tracker.favorites == {"1"}
    assert len(store.tables["user_favorites"]) == 1


@pytest.mark.asyncio
async def test_toggles_on_different_trails_do_not_block_each_other(store, scope):
    tracker = FavoritesTracker(store, scope)
    results = await asyncio.gather(tracker.toggle(USER, "1"), tracker.toggle(USER, "2"))
    assert results == [True, True]
    assert tracker.favorites == {"1", "2"}


@pytest.mark.asyncio
async def test_load_discards_response_after_scope_change(store, scope):
    store.tables["user_favorites"].append({"user_id": USER.id, "course_id": "3"})
    tracker = FavoritesTracker(store, scope)
    gate = store.hold("select")

    pending = asyncio.create_task(tracker.load(USER))
    await asyncio.sleep(0)
    scope.advance()
    gate.set()
    await pending

    assert tracker.favorites == set()
