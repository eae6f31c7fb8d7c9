import pytest

from roomchat.client.notify import RecordingNotifier
from roomchat.client.rooms import POLL_TIMER


@pytest.mark.asyncio
async def test_fetch_rooms_twice_yields_same_list(server, make_client, alice, bob):
    server.add_room("general", alice, [bob])
    server.add_room("random", alice)
    client = make_client(alice)

    first = await client.rooms.fetch_rooms()
    snapshot = [r.id for r in client.state.rooms]
    second = await client.rooms.fetch_rooms()

    assert first.success and second.success
    assert [r.id for r in client.state.rooms] == snapshot
    assert len(set(snapshot)) == len(snapshot) == 2


@pytest.mark.asyncio
async def test_rooms_sorted_by_latest_activity(server, make_client, alice, bob):
    quiet = server.add_room("quiet", alice)
    busy = server.add_room("busy", alice, [bob])
    server.add_message(busy, bob, "hello")
    newest = server.add_room("newest", alice)
    server.add_message(quiet, alice, "bump")
    client = make_client(alice)

    await client.rooms.fetch_rooms()

    assert [r.id for r in client.state.rooms] == [quiet, newest, busy]


@pytest.mark.asyncio
async def test_failed_fetch_keeps_previous_rooms(server, make_client, alice):
    server.add_room("general", alice)
    client = make_client(alice)
    await client.rooms.fetch_rooms()
    before = list(client.state.rooms)

    server.fail_next("GET", "/rooms", 500, "database down")
    result = await client.rooms.fetch_rooms()

    assert not result.success
    assert result.error == "database down"
    assert client.state.rooms == before
    assert client.state.rooms_loading is False


@pytest.mark.asyncio
async def test_overlapping_fetch_collapses(server, make_client, alice):
    client = make_client(alice)
    client.rooms._in_flight = True

    result = await client.rooms.fetch_rooms()

    assert result.success
    assert server.count_calls("GET", "/rooms") == 0


@pytest.mark.asyncio
async def test_poll_is_debounced_by_minimum_interval(server, make_client, alice):
    client = make_client(alice)
    now = [100.0]
    client.rooms._clock = lambda: now[0]
    client.config.room_fetch_min_interval = 5.0

    await client.rooms.fetch_rooms()
    now[0] += 1.0
    await client.rooms.poll_rooms()
    assert server.count_calls("GET", "/rooms") == 1

    now[0] += 5.0
    await client.rooms.poll_rooms()
    assert server.count_calls("GET", "/rooms") == 2


@pytest.mark.asyncio
async def test_start_polling_registers_timer(make_client, alice):
    client = make_client(alice)
    client.rooms.start_polling()
    assert POLL_TIMER in client.scheduler.names
    client.rooms.stop_polling()
    assert POLL_TIMER not in client.scheduler.names


@pytest.mark.asyncio
async def test_create_room_refetches_list(server, make_client, alice, bob):
    client = make_client(alice)

    result = await client.rooms.create_room("  project  ", "planning", member_ids=[bob])

    assert result.success
    assert result.data.name == "project"
    assert server.count_calls("GET", "/rooms") == 1
    created = client.state.room(result.data.id)
    assert created is not None
    assert created.member_count == 2

    bob_client = make_client(bob)
    await bob_client.rooms.fetch_rooms()
    assert bob_client.state.room(result.data.id) is not None


@pytest.mark.asyncio
async def test_create_room_requires_name(server, make_client, alice):
    client = make_client(alice)
    client.rooms.notifier = notifier = RecordingNotifier()

    result = await client.rooms.create_room("   ")

    assert not result.success
    assert notifier.errors == ["Room name is required"]
    assert server.count_calls("POST", "/rooms") == 0


@pytest.mark.asyncio
async def test_create_dm_is_idempotent_in_both_directions(server, make_client, alice, bob):
    alice_client = make_client(alice)
    bob_client = make_client(bob)

    first = await alice_client.rooms.create_dm(bob)
    second = await alice_client.rooms.create_dm(bob)
    reverse = await bob_client.rooms.create_dm(alice)

    assert first.data.id == second.data.id == reverse.data.id
    assert len([r for r in server.rooms.values() if r["type"] == "dm"]) == 1
    assert [r.id for r in alice_client.state.rooms].count(first.data.id) == 1
    # the existing DM was not cached by bob, so a full refetch brought it in
    assert bob_client.state.room(first.data.id) is not None


@pytest.mark.asyncio
async def test_create_dm_switches_active_room(server, make_client, alice, bob):
    client = make_client(alice)

    result = await client.rooms.create_dm(bob)

    assert client.state.current_room_id == result.data.id
    assert client.state.message_status == "ready"


@pytest.mark.asyncio
async def test_create_dm_with_unknown_user_fails(server, make_client, alice):
    client = make_client(alice)
    result = await client.rooms.create_dm(999)
    assert not result.success
    assert client.state.rooms == []


@pytest.mark.asyncio
async def test_join_room_refetches(server, make_client, alice, bob):
    rid = server.add_room("open", alice)
    client = make_client(bob)

    result = await client.rooms.join_room(rid)

    assert result.success
    assert client.state.room(rid) is not None


@pytest.mark.asyncio
async def test_last_member_leaving_deletes_room(server, make_client, alice, bob):
    rid = server.add_room("solo", alice)
    client = make_client(alice)
    await client.rooms.fetch_rooms()

    result = await client.rooms.leave_room(rid)

    assert result.success
    assert result.data["deleted"] is True
    assert client.state.room(rid) is None
    assert rid not in server.rooms
    await client.rooms.fetch_rooms()
    assert client.state.room(rid) is None
    bob_client = make_client(bob)
    await bob_client.rooms.fetch_rooms()
    assert bob_client.state.room(rid) is None


@pytest.mark.asyncio
async def test_leaving_admin_hands_over_to_next_member(server, make_client, alice, bob):
    rid = server.add_room("team", alice, [bob])
    client = make_client(alice)
    await client.rooms.fetch_rooms()

    result = await client.rooms.leave_room(rid)

    assert result.data["deleted"] is False
    assert server.rooms[rid]["admin_id"] == bob


@pytest.mark.asyncio
async def test_leaving_active_room_clears_selection(server, make_client, alice, bob):
    rid = server.add_room("team", alice, [bob])
    client = make_client(alice)
    await client.rooms.fetch_rooms()
    await client.select_room(rid)

    await client.rooms.leave_room(rid)

    assert client.state.current_room_id is None
    assert client.state.messages == []
    assert client.state.message_status == "idle"
    assert "messages.poll" not in client.scheduler.names


@pytest.mark.asyncio
async def test_only_admin_deletes_group_room(server, make_client, alice, bob):
    rid = server.add_room("team", alice, [bob])
    bob_client = make_client(bob)
    await bob_client.rooms.fetch_rooms()

    denied = await bob_client.rooms.delete_room(rid)

    assert not denied.success
    assert bob_client.state.room(rid) is not None
    assert rid in server.rooms

    alice_client = make_client(alice)
    await alice_client.rooms.fetch_rooms()
    allowed = await alice_client.rooms.delete_room(rid)
    assert allowed.success
    assert alice_client.state.room(rid) is None
    assert rid not in server.rooms
