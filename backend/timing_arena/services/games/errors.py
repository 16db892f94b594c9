"""Game exceptions.

Room errors are user-facing: the gateway turns them into a private
``error`` event carrying ``code`` and the message.
"""


class TimingArenaError(Exception):
    """Base class for all game errors."""
    code = 'internal_error'


# ============ Room errors ============

class RoomNotFound(TimingArenaError):
    code = 'room_not_found'

    def __init__(self, room_id):
        self.room_id = room_id
        super().__init__(f"Room {room_id} not found")


class RoomFull(TimingArenaError):
    code = 'room_full'

    def __init__(self, room_id, max_size):
        self.room_id = room_id
        super().__init__(f"Room {room_id} already has {max_size} players")


class GameInProgress(TimingArenaError):
    code = 'game_in_progress'

    def __init__(self, room_id):
        self.room_id = room_id
        super().__init__(f"Room {room_id} is in the middle of a game")


# ============ Transport / persistence ============

class MalformedEvent(TimingArenaError):
    """Inbound payload could not be understood. Ignored without reply."""
    code = 'malformed_event'


class PersistenceFailure(TimingArenaError):
    """A leaderboard write or read did not take effect."""
    code = 'persistence_failure'
