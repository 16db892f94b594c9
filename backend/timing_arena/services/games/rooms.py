import logging
from typing import Callable, Dict, List, Optional

from .errors import GameInProgress, RoomFull, RoomNotFound
from .state import Outbound, Player, Room, RoomStatus, generate_room_code


DepartureHook = Callable[[Room, Player], List[Outbound]]


class RoomRegistry:
    """Owns the live rooms and their membership.

    Rooms are kept in creation order, which is the order quick-match scans
    them in. Round state inside a room belongs to the coordinator; the
    registry reports departures to it through ``departure_hook``.
    """

    def __init__(self, max_room_size: int = 4, logger=None, code_factory=generate_room_code):
        self.max_room_size = max_room_size
        self.logger = logger or logging.getLogger(__name__)
        self.rooms: Dict[str, Room] = {}
        self.departure_hook: Optional[DepartureHook] = None
        self._code_factory = code_factory

    def get(self, room_id: str) -> Optional[Room]:
        return self.rooms.get(room_id)

    def room_of(self, player: Player) -> Optional[Room]:
        if not player.room_id:
            return None
        return self.rooms.get(player.room_id)

    def list_rooms(self) -> List[dict]:
        return [room.summary(self.max_room_size) for room in self.rooms.values()]

    def join_quick_match(self, player: Player) -> List[Outbound]:
        messages = self.leave(player)
        room = next(
            (r for r in self.rooms.values()
             if r.status == RoomStatus.LOBBY and len(r.members) < self.max_room_size),
            None,
        )
        if room is None:
            room = self._create()
        return messages + self._add(room, player)

    def create_room(self, player: Player) -> List[Outbound]:
        messages = self.leave(player)
        room = self._create()
        return messages + self._add(room, player)

    def join_room(self, player: Player, room_id: str) -> List[Outbound]:
        room = self.rooms.get(room_id)
        if room is None:
            raise RoomNotFound(room_id)
        if player.room_id == room.id:
            return [self._membership(room)]
        if len(room.members) >= self.max_room_size:
            raise RoomFull(room_id, self.max_room_size)
        if room.status != RoomStatus.LOBBY:
            raise GameInProgress(room_id)
        messages = self.leave(player)
        return messages + self._add(room, player)

    def leave(self, player: Player) -> List[Outbound]:
        """Remove ``player`` from its room, destroying the room if emptied."""
        room = self.room_of(player)
        player.room_id = None
        player.ready = False
        if room is None:
            return []
        room.members.pop(player.id, None)
        if not room.members:
            room.cancel_tasks()
            del self.rooms[room.id]
            self.logger.info(f"[room-destroy] room={room.id} last player={player.id} left")
            return []
        self.logger.info(f"[room-leave] room={room.id} player={player.id} remaining={len(room.members)}")
        messages = [Outbound.broadcast(room, 'member_left', {
            'playerId': player.id,
            'members': room.member_list(),
        })]
        if self.departure_hook is not None:
            messages.extend(self.departure_hook(room, player))
        return messages

    def _create(self) -> Room:
        room = Room(id=self._code_factory(self.rooms))
        self.rooms[room.id] = room
        self.logger.info(f"[room-create] room={room.id} total_rooms={len(self.rooms)}")
        return room

    def _add(self, room: Room, player: Player) -> List[Outbound]:
        player.room_id = room.id
        player.ready = False
        room.members[player.id] = player
        self.logger.info(f"[room-join] room={room.id} player={player.id} members={len(room.members)}")
        return [self._membership(room)]

    @staticmethod
    def _membership(room: Room) -> Outbound:
        return Outbound.broadcast(room, 'membership_changed', {
            'roomId': room.id,
            'members': room.member_list(),
            'status': room.status.value,
        })
