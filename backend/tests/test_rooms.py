import random

import pytest

from timing_arena.services.games.errors import GameInProgress, RoomFull, RoomNotFound
from timing_arena.services.games.rooms import RoomRegistry
from timing_arena.services.games.scheduler import ManualScheduler
from timing_arena.services.games.state import Player, RoomStatus

from conftest import events_named


def make_players(n, prefix='p'):
    return [Player(id=f"{prefix}{i}", username=f"user{i}") for i in range(n)]


def test_quick_match_fills_room_before_creating_another():
    registry = RoomRegistry(max_room_size=4)
    players = make_players(5)
    for p in players:
        registry.join_quick_match(p)
    first, second = list(registry.rooms.values())
    assert list(first.members) == ['p0', 'p1', 'p2', 'p3']
    assert list(second.members) == ['p4']
    assert players[4].room_id == second.id


def test_quick_match_broadcasts_membership():
    registry = RoomRegistry()
    a, b = make_players(2)
    registry.join_quick_match(a)
    messages = registry.join_quick_match(b)
    (changed,) = events_named(messages, 'membership_changed')
    assert changed.recipients == ('p0', 'p1')
    assert changed.payload['roomId'] == a.room_id
    assert changed.payload['status'] == 'lobby'
    assert [m['id'] for m in changed.payload['members']] == ['p0', 'p1']


def test_quick_match_skips_rooms_not_in_lobby():
    registry = RoomRegistry()
    a, b = make_players(2)
    registry.join_quick_match(a)
    registry.room_of(a).status = RoomStatus.COLOR_ROUND
    registry.join_quick_match(b)
    assert a.room_id != b.room_id
    assert len(registry.rooms) == 2


def test_quick_match_never_overfills_and_only_creates_when_needed():
    registry = RoomRegistry(max_room_size=4)
    rng = random.Random(1234)
    players = make_players(60)
    for p in players:
        # occasionally start a game in some room so it stops accepting players
        if registry.rooms and rng.random() < 0.1:
            room = rng.choice(list(registry.rooms.values()))
            room.status = RoomStatus.COUNTDOWN
        before = dict(registry.rooms)
        open_rooms = [r for r in before.values() if r.status == RoomStatus.LOBBY and len(r.members) < 4]
        registry.join_quick_match(p)
        created = set(registry.rooms) - set(before)
        if open_rooms:
            assert not created
            assert p.room_id == open_rooms[0].id
        else:
            assert len(created) == 1
        assert all(len(r.members) <= 4 for r in registry.rooms.values())


def test_create_room_leaves_previous_room():
    registry = RoomRegistry()
    a, b = make_players(2)
    registry.join_quick_match(a)
    registry.join_quick_match(b)
    old_room = a.room_id
    messages = registry.create_room(a)
    assert a.room_id != old_room
    assert list(registry.get(old_room).members) == ['p1']
    assert events_named(messages, 'member_left')[0].recipients == ('p1',)
    assert events_named(messages, 'membership_changed')[0].recipients == ('p0',)


def test_create_room_always_makes_a_fresh_lobby():
    registry = RoomRegistry()
    a, b = make_players(2)
    registry.create_room(a)
    registry.create_room(b)
    assert a.room_id != b.room_id
    assert all(r.status == RoomStatus.LOBBY for r in registry.rooms.values())


def test_join_room_unknown_room():
    registry = RoomRegistry()
    (a,) = make_players(1)
    with pytest.raises(RoomNotFound):
        registry.join_room(a, 'NOPE')


def test_join_room_full_is_reported_before_in_progress():
    registry = RoomRegistry(max_room_size=2)
    a, b, c = make_players(3)
    registry.create_room(a)
    room_id = a.room_id
    registry.join_room(b, room_id)
    registry.get(room_id).status = RoomStatus.FONT_ROUND
    with pytest.raises(RoomFull):
        registry.join_room(c, room_id)


def test_join_room_game_in_progress():
    registry = RoomRegistry()
    a, b, c = make_players(3)
    registry.create_room(a)
    registry.join_room(b, a.room_id)
    registry.get(a.room_id).status = RoomStatus.COLOR_ROUND
    with pytest.raises(GameInProgress):
        registry.join_room(c, a.room_id)
    assert c.room_id is None


def test_join_room_moves_player_and_destroys_emptied_room():
    registry = RoomRegistry()
    a, b = make_players(2)
    registry.create_room(a)
    registry.create_room(b)
    old_room = b.room_id
    registry.join_room(b, a.room_id)
    assert registry.get(old_room) is None
    assert list(registry.get(a.room_id).members) == ['p0', 'p1']


def test_join_own_room_is_a_no_op():
    registry = RoomRegistry(max_room_size=1)
    (a,) = make_players(1)
    registry.create_room(a)
    messages = registry.join_room(a, a.room_id)
    assert [m.event for m in messages] == ['membership_changed']


def test_leave_last_member_destroys_room_and_cancels_tasks():
    registry = RoomRegistry()
    scheduler = ManualScheduler()
    (a,) = make_players(1)
    registry.create_room(a)
    room = registry.room_of(a)
    task = scheduler.schedule(room.id, 'countdown', 3, lambda: ['fired'])
    room.tasks.append(task)
    assert registry.leave(a) == []
    assert room.id not in registry.rooms
    assert task.cancelled
    assert task.fire() == []
    assert a.room_id is None


def test_leave_notifies_remaining_members_and_hook():
    registry = RoomRegistry()
    seen = []
    registry.departure_hook = lambda room, player: seen.append((room.id, player.id)) or []
    a, b = make_players(2)
    registry.join_quick_match(a)
    registry.join_quick_match(b)
    room_id = a.room_id
    messages = registry.leave(b)
    (left,) = events_named(messages, 'member_left')
    assert left.payload['playerId'] == 'p1'
    assert left.recipients == ('p0',)
    assert seen == [(room_id, 'p1')]


def test_list_rooms_in_creation_order():
    registry = RoomRegistry(max_room_size=4)
    for p in make_players(6):
        registry.join_quick_match(p)
    summaries = registry.list_rooms()
    assert [s['memberCount'] for s in summaries] == [4, 2]
    assert all(s['maxMembers'] == 4 and s['status'] == 'lobby' for s in summaries)
