import math
import threading
from numbers import Real
from typing import Dict, Iterable, List, Optional

from flask import current_app, request
from flask_socketio import emit

from timing_arena import socketio
from timing_arena.services.games.errors import MalformedEvent, TimingArenaError
from timing_arena.services.games.state import Outbound, Player

NAMESPACE = '/ws'
USERNAME_MAX_LEN = 32


def _field(data, key):
    """Events may carry the bare value or an object wrapping it."""
    if isinstance(data, dict):
        return data.get(key)
    return data


def parse_username(data, sid: str) -> str:
    raw = _field(data, 'username')
    if raw is not None and not isinstance(raw, str):
        raise MalformedEvent(f"username must be a string, got {type(raw).__name__}")
    name = (raw or '').strip()[:USERNAME_MAX_LEN]
    return name or f"Player_{sid[:5]}"


def parse_room_id(data) -> str:
    raw = _field(data, 'roomId')
    if not isinstance(raw, str) or not raw.strip():
        raise MalformedEvent('roomId is required')
    return raw.strip().upper()


def parse_timestamp(data) -> float:
    raw = _field(data, 'clientTimestampMs')
    if isinstance(raw, bool) or not isinstance(raw, Real) or not math.isfinite(raw):
        raise MalformedEvent(f"clientTimestampMs must be a finite number, got {raw!r}")
    return raw


class SessionGateway:
    """Maps connections to players and routes their events.

    All game mutation, including timer callbacks, runs under one lock so
    room state sees a single ordered stream of events.
    """

    def __init__(self, registry, coordinator, leaderboard, scheduler, logger, namespace=NAMESPACE):
        self.registry = registry
        self.coordinator = coordinator
        self.leaderboard = leaderboard
        self.namespace = namespace
        self.logger = logger
        self.players: Dict[str, Player] = {}
        self.lock = threading.RLock()
        scheduler.runner = self.run_task

    # ---- inbound ----

    def handle(self, sid: str, event: str, data=None) -> List[Outbound]:
        """Apply one inbound event and emit whatever it produced."""
        with self.lock:
            try:
                messages = self._route(sid, event, data)
            except MalformedEvent as exc:
                self.logger.debug(f"[malformed] sid={sid} event={event} {exc}")
                return []
            except TimingArenaError as exc:
                messages = [Outbound.private(sid, 'error', {'code': exc.code, 'message': str(exc)})]
            except Exception:
                self.logger.exception(f"[handler-error] sid={sid} event={event}")
                return []
            self.dispatch(messages)
            return messages

    def disconnect(self, sid: str) -> List[Outbound]:
        with self.lock:
            player = self.players.pop(sid, None)
            if player is None:
                return []
            messages = self.registry.leave(player)
            if player.best_accuracy is not None:
                self.leaderboard.record(player.id, player.username, player.best_accuracy)
            self.logger.info(f"[disconnect] player={player.id} username={player.username}")
            self.dispatch(messages)
            return messages

    def run_task(self, task) -> List[Outbound]:
        """Scheduler hook: fire a room timer under the lock and emit its messages."""
        with self.lock:
            try:
                messages = task.fire()
            except Exception:
                self.logger.exception(f"[timer-error] room={task.room_id} label={task.label}")
                return []
            self.dispatch(messages)
            return messages

    def _route(self, sid: str, event: str, data) -> List[Outbound]:
        if event == 'join_quick_match':
            player = self._player(sid, parse_username(data, sid))
            return self.registry.join_quick_match(player)
        if event == 'create_room':
            return self.registry.create_room(self._player(sid))
        if event == 'join_room':
            room_id = parse_room_id(data)
            return self.registry.join_room(self._player(sid), room_id)

        player = self.players.get(sid)
        if player is None:
            raise MalformedEvent(f"{event} before joining")
        if event == 'set_ready':
            return self.coordinator.set_ready(player)
        if event == 'submit':
            return self.coordinator.submit(player, parse_timestamp(data))
        raise MalformedEvent(f"unknown event {event}")

    def _player(self, sid: str, username: Optional[str] = None) -> Player:
        player = self.players.get(sid)
        if player is None:
            player = Player(id=sid, username=username or f"Player_{sid[:5]}")
            self.players[sid] = player
        elif username:
            player.username = username
        return player

    # ---- outbound ----

    def dispatch(self, messages: Iterable[Outbound]) -> None:
        for message in messages:
            for sid in message.recipients:
                # socketio.emit works from handlers and background tasks alike
                socketio.emit(message.event, message.payload, to=sid, namespace=self.namespace)


def _gateway() -> SessionGateway:
    return current_app.extensions['timing_arena']


def handle_connect(auth=None):
    emit('connected', {'playerId': request.sid})


def handle_disconnect(*args):
    _gateway().disconnect(request.sid)


def _forward(event):
    def handler(data=None):
        _gateway().handle(request.sid, event, data)
    handler.__name__ = f"handle_{event}"
    return handler


INBOUND_EVENTS = ('join_quick_match', 'create_room', 'join_room', 'set_ready', 'submit')


def register_socketio_handlers() -> None:
    """Register Socket.IO event handlers on namespace '/ws'."""
    socketio.on_event('connect', handle_connect, namespace=NAMESPACE)
    socketio.on_event('disconnect', handle_disconnect, namespace=NAMESPACE)
    for event in INBOUND_EVENTS:
        socketio.on_event(event, _forward(event), namespace=NAMESPACE)
