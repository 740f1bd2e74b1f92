import pytest

from leaderboard.storage import MemoryStore, split_path


def test_split_path():
    assert split_path("") == ()
    assert split_path(None) == ()
    assert split_path("/a//b/") == ("a", "b")


@pytest.mark.asyncio
async def test_read_returns_copies():
    store = MemoryStore({"u1": {"TotalScore": 1}})
    value = await store.read("u1")
    value["TotalScore"] = 99
    assert await store.read("u1/TotalScore") == 1
    assert await store.read("missing/deeper") is None


@pytest.mark.asyncio
async def test_write_and_delete_prune_empty_parents():
    store = MemoryStore()
    await store.write("a/b/c", 1)
    assert await store.read("") == {"a": {"b": {"c": 1}}}
    await store.delete("a/b/c")
    assert await store.read("") == {}
    await store.write("x", {"y": None, "z": {}})
    assert await store.read("x") is None


@pytest.mark.asyncio
async def test_subscribe_delivers_initial_value_and_changes():
    store = MemoryStore({"competition": {"active": False}})
    root_values = []
    comp_values = []
    store.subscribe("", root_values.append)
    store.subscribe("competition", comp_values.append)

    await store.write("u1", {"TotalScore": 3})
    await store.write("competition/active", True)

    assert comp_values == [{"active": False}, {"active": True}]
    assert len(root_values) == 3
    assert root_values[-1] == {"u1": {"TotalScore": 3}, "competition": {"active": True}}


@pytest.mark.asyncio
async def test_cancel_is_idempotent_and_stops_delivery():
    store = MemoryStore()
    values = []
    sub = store.subscribe("", values.append)
    assert sub.active
    sub.cancel()
    sub.cancel()
    assert not sub.active
    assert store.subscription_count == 0
    await store.write("u1", 1)
    assert values == [None]


@pytest.mark.asyncio
async def test_failing_subscriber_gets_error_callback():
    store = MemoryStore()
    errors = []

    def boom(value):
        raise RuntimeError("render failed")

    store.subscribe("", boom, errors.append)
    await store.write("u1", 1)
    assert len(errors) == 2
    assert isinstance(errors[0], RuntimeError)
