"""In-memory game state: players, rooms, round results and outbound messages."""
import random
import string
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Optional, Tuple


class RoomStatus(str, Enum):
    LOBBY = 'lobby'
    COUNTDOWN = 'countdown'
    COLOR_ROUND = 'color_round'
    FONT_ROUND = 'font_round'
    SCORES = 'scores'
    ENDED = 'ended'


class RoundType(str, Enum):
    COLOR = 'color'
    FONT = 'font'


ROUND_STATUS = {
    RoundType.COLOR: RoomStatus.COLOR_ROUND,
    RoundType.FONT: RoomStatus.FONT_ROUND,
}
ACTIVE_ROUND_STATUSES = frozenset(ROUND_STATUS.values())


@dataclass
class GameSettings:
    max_room_size: int = 4
    min_players: int = 2
    rounds_per_game: int = 5
    countdown_sec: float = 3
    scoreboard_sec: float = 5
    final_screen_sec: float = 10
    round_deadline_sec: float = 30
    wait_time_ms: Tuple[int, int] = (1000, 5000)
    target_offset_ms: Tuple[int, int] = (200, 1000)
    leaderboard_size: int = 10

    @classmethod
    def from_config(cls, config) -> 'GameSettings':
        return cls(
            max_room_size=int(config.get('MAX_ROOM_SIZE', 4)),
            min_players=int(config.get('MIN_PLAYERS', 2)),
            rounds_per_game=int(config.get('ROUNDS_PER_GAME', 5)),
            countdown_sec=float(config.get('COUNTDOWN_DURATION_SEC', 3)),
            scoreboard_sec=float(config.get('SCOREBOARD_DURATION_SEC', 5)),
            final_screen_sec=float(config.get('FINAL_SCREEN_DURATION_SEC', 10)),
            round_deadline_sec=float(config.get('ROUND_DEADLINE_SEC', 30)),
            wait_time_ms=(int(config.get('WAIT_TIME_MIN_MS', 1000)), int(config.get('WAIT_TIME_MAX_MS', 5000))),
            target_offset_ms=(int(config.get('TARGET_OFFSET_MIN_MS', 200)), int(config.get('TARGET_OFFSET_MAX_MS', 1000))),
            leaderboard_size=int(config.get('LEADERBOARD_SIZE', 10)),
        )


@dataclass
class Player:
    id: str
    username: str
    room_id: Optional[str] = None
    ready: bool = False
    score: int = 0
    best_accuracy: Optional[int] = None

    def to_dict(self):
        return {
            'id': self.id,
            'username': self.username,
            'ready': self.ready,
            'score': self.score,
            'bestAccuracyMs': self.best_accuracy,
        }


@dataclass
class RoundResult:
    player_id: str
    username: str
    reaction_offset_ms: float
    accuracy_ms: int
    score: int
    round_type: RoundType

    def to_dict(self):
        return {
            'playerId': self.player_id,
            'username': self.username,
            'reactionOffsetMs': self.reaction_offset_ms,
            'accuracyMs': self.accuracy_ms,
            'score': self.score,
            'roundType': self.round_type.value,
        }


@dataclass
class Room:
    id: str
    status: RoomStatus = RoomStatus.LOBBY
    # dict keeps join order, which breaks score ties
    members: Dict[str, Player] = field(default_factory=dict)
    round_number: int = 0
    round_type: Optional[RoundType] = None
    start_time: Optional[int] = None
    wait_time_ms: Optional[int] = None
    target_offset_ms: Optional[int] = None
    # dict keeps submission order, which breaks accuracy ties
    pending_results: Dict[str, RoundResult] = field(default_factory=dict)
    tasks: list = field(default_factory=list)

    def member_list(self) -> List[dict]:
        return [p.to_dict() for p in self.members.values()]

    def member_ids(self) -> Tuple[str, ...]:
        return tuple(self.members)

    def all_submitted(self) -> bool:
        return bool(self.members) and set(self.members) <= set(self.pending_results)

    def clear_round(self) -> None:
        self.round_type = None
        self.start_time = None
        self.wait_time_ms = None
        self.target_offset_ms = None
        self.pending_results.clear()

    def cancel_tasks(self) -> None:
        for task in self.tasks:
            task.cancel()
        self.tasks.clear()

    def summary(self, max_size: int) -> dict:
        return {
            'roomId': self.id,
            'status': self.status.value,
            'memberCount': len(self.members),
            'maxMembers': max_size,
        }


@dataclass(frozen=True)
class Outbound:
    """A named event with its payload and the player ids that receive it."""
    event: str
    payload: dict
    recipients: Tuple[str, ...]

    @classmethod
    def broadcast(cls, room: Room, event: str, payload: dict) -> 'Outbound':
        return cls(event, payload, room.member_ids())

    @classmethod
    def private(cls, player_id: str, event: str, payload: dict) -> 'Outbound':
        return cls(event, payload, (player_id,))


def generate_room_code(taken, length=4):
    """Generate a short room code not present in ``taken``."""
    while True:
        code = ''.join(random.choices(string.ascii_uppercase + string.digits, k=length))
        if code not in taken:
            return code
