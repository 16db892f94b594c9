"""Round lifecycle for each room.

Every public method is a transition: it mutates one room and returns the
``Outbound`` messages describing the change. Wall-clock steps (countdown,
scoreboard pause, final screen, submission deadline) are handed to the
scheduler as room-owned tasks that run the next transition when they fire.

    lobby -> countdown -> color_round -> scores -> font_round -> scores
          -> ... (rounds_per_game times) -> ended -> lobby
"""
import logging
import random
import time
from typing import Callable, List, Optional

from .rooms import RoomRegistry
from .scoring import score as score_accuracy
from .state import (
    ACTIVE_ROUND_STATUSES,
    ROUND_STATUS,
    GameSettings,
    Outbound,
    Player,
    Room,
    RoomStatus,
    RoundResult,
    RoundType,
)


def _now_ms() -> int:
    return int(time.time() * 1000)


def _whole(seconds: float):
    return int(seconds) if float(seconds).is_integer() else seconds


def _ranked_by_score(room: Room) -> List[Player]:
    # sorted() is stable, so equal scores keep join order
    return sorted(room.members.values(), key=lambda p: -p.score)


class RoundCoordinator:

    def __init__(
        self,
        registry: RoomRegistry,
        leaderboard,
        scheduler,
        settings: Optional[GameSettings] = None,
        clock: Callable[[], int] = _now_ms,
        rng: Optional[random.Random] = None,
        logger=None,
    ):
        self.registry = registry
        self.leaderboard = leaderboard
        self.scheduler = scheduler
        self.settings = settings or GameSettings()
        self.clock = clock
        self.rng = rng or random.Random()
        self.logger = logger or logging.getLogger(__name__)
        registry.departure_hook = self.member_departed

    # ---- inbound player actions ----

    def set_ready(self, player: Player) -> List[Outbound]:
        room = self.registry.room_of(player)
        if room is None or room.status != RoomStatus.LOBBY:
            return []
        player.ready = True
        members = list(room.members.values())
        if len(members) >= self.settings.min_players and all(p.ready for p in members):
            return self._start_game(room)
        return [Outbound.broadcast(room, 'readiness_changed', {
            'playerId': player.id,
            'members': room.member_list(),
        })]

    def submit(self, player: Player, client_timestamp_ms: float) -> List[Outbound]:
        room = self.registry.room_of(player)
        if room is None or room.status not in ACTIVE_ROUND_STATUSES:
            return []
        if player.id in room.pending_results:
            self.logger.info(f"[submit-dup] room={room.id} player={player.id} round={room.round_number} ignored")
            return []

        reaction_offset = client_timestamp_ms - room.start_time
        accuracy = int(round(abs(reaction_offset - room.target_offset_ms)))
        points = score_accuracy(accuracy)
        room.pending_results[player.id] = RoundResult(
            player_id=player.id,
            username=player.username,
            reaction_offset_ms=reaction_offset,
            accuracy_ms=accuracy,
            score=points,
            round_type=room.round_type,
        )
        player.score += points

        if room.all_submitted():
            return self._end_round(room)
        return [Outbound.private(player.id, 'submission_ack', {
            'accuracyMs': accuracy,
            'score': points,
            'reactionOffsetMs': reaction_offset,
            'targetOffsetMs': room.target_offset_ms,
        })]

    def member_departed(self, room: Room, player: Player) -> List[Outbound]:
        """Called by the registry after ``player`` left a room that still has members."""
        if room.status == RoomStatus.LOBBY:
            # the leaver may have been the only one not ready
            members = list(room.members.values())
            if len(members) >= self.settings.min_players and all(p.ready for p in members):
                return self._start_game(room)
            return []
        if room.status == RoomStatus.ENDED:
            # results are already recorded, nothing to abort
            if len(room.members) < self.settings.min_players:
                return self._reset_room(room)
            return []
        if len(room.members) < self.settings.min_players:
            return self._abort(room, 'Not enough players')
        if room.status in ACTIVE_ROUND_STATUSES:
            room.pending_results.pop(player.id, None)
            if room.pending_results and room.all_submitted():
                return self._end_round(room)
        return []

    # ---- transitions ----

    def _start_game(self, room: Room) -> List[Outbound]:
        for p in room.members.values():
            p.score = 0
            p.ready = False
        room.status = RoomStatus.COUNTDOWN
        room.round_number = 1
        room.clear_round()
        self.logger.info(f"[game-start] room={room.id} players={len(room.members)}")
        self._schedule(room, 'countdown', self.settings.countdown_sec, RoomStatus.COUNTDOWN,
                       lambda r: self._begin_round(r, RoundType.COLOR))
        return [Outbound.broadcast(room, 'game_starting', {
            'countdownSeconds': _whole(self.settings.countdown_sec),
            'members': room.member_list(),
        })]

    def _begin_round(self, room: Room, round_type: RoundType) -> List[Outbound]:
        room.clear_round()
        wait_lo, wait_hi = self.settings.wait_time_ms
        target_lo, target_hi = self.settings.target_offset_ms
        room.round_type = round_type
        room.status = ROUND_STATUS[round_type]
        room.wait_time_ms = self.rng.randrange(wait_lo, wait_hi)
        room.target_offset_ms = self.rng.randrange(target_lo, target_hi)
        room.start_time = self.clock() + room.wait_time_ms
        self.logger.info(
            f"[round-start] room={room.id} round={room.round_number} type={round_type.value} "
            f"wait={room.wait_time_ms}ms target={room.target_offset_ms}ms"
        )
        if self.settings.round_deadline_sec > 0:
            delay = (room.wait_time_ms + room.target_offset_ms) / 1000.0 + self.settings.round_deadline_sec
            self._schedule(room, 'deadline', delay, room.status, self._expire_round)
        return [Outbound.broadcast(room, 'round_started', {
            'roomId': room.id,
            'roundNumber': room.round_number,
            'roundType': round_type.value,
            'waitTimeMs': room.wait_time_ms,
            'targetOffsetMs': room.target_offset_ms,
        })]

    def _expire_round(self, room: Room) -> List[Outbound]:
        missing = [pid for pid in room.members if pid not in room.pending_results]
        self.logger.info(f"[round-deadline] room={room.id} round={room.round_number} missing={missing}")
        return self._end_round(room)

    def _end_round(self, room: Room) -> List[Outbound]:
        room.cancel_tasks()
        room.status = RoomStatus.SCORES
        ranked = sorted(room.pending_results.values(), key=lambda r: r.accuracy_ms)
        for result in ranked:
            player = room.members.get(result.player_id)
            if player is None:
                continue
            if player.best_accuracy is None or result.accuracy_ms < player.best_accuracy:
                player.best_accuracy = result.accuracy_ms

        if room.round_type == RoundType.COLOR:
            next_type = RoundType.FONT
        elif room.round_number < self.settings.rounds_per_game:
            next_type = RoundType.COLOR
        else:
            next_type = None

        self.logger.info(
            f"[round-end] room={room.id} round={room.round_number} type={room.round_type.value} "
            f"results={len(ranked)} next={next_type.value if next_type else 'end'}"
        )
        messages = [Outbound.broadcast(room, 'round_ended', {
            'roundNumber': room.round_number,
            'roundType': room.round_type.value,
            'rankedResults': [r.to_dict() for r in ranked],
            'scoreboard': [
                {'playerId': p.id, 'username': p.username, 'score': p.score}
                for p in _ranked_by_score(room)
            ],
            'nextRoundType': next_type.value if next_type else None,
        })]

        if next_type is None:
            return messages + self._end_game(room)

        def _next(r: Room) -> List[Outbound]:
            if next_type == RoundType.COLOR:
                r.round_number += 1
            return self._begin_round(r, next_type)

        self._schedule(room, 'scoreboard', self.settings.scoreboard_sec, RoomStatus.SCORES, _next)
        return messages

    def _end_game(self, room: Room) -> List[Outbound]:
        room.status = RoomStatus.ENDED
        standings = _ranked_by_score(room)
        bests = [(p.id, p.username, p.best_accuracy) for p in standings]
        self.leaderboard.record_many(bests)
        top = self.leaderboard.standings(self.settings.leaderboard_size, pending=bests)
        self.logger.info(f"[game-end] room={room.id} winner={standings[0].id if standings else None}")
        self._schedule(room, 'final_screen', self.settings.final_screen_sec, RoomStatus.ENDED, self._reset_room)
        return [Outbound.broadcast(room, 'game_ended', {
            'finalStandings': [
                {'playerId': p.id, 'username': p.username, 'score': p.score, 'bestAccuracyMs': p.best_accuracy}
                for p in standings
            ],
            'topLeaderboard': top,
        })]

    def _reset_room(self, room: Room) -> List[Outbound]:
        self._back_to_lobby(room)
        return [Outbound.broadcast(room, 'room_reset', {
            'roomId': room.id,
            'status': room.status.value,
            'members': room.member_list(),
        })]

    def _abort(self, room: Room, reason: str) -> List[Outbound]:
        self.logger.info(f"[game-abort] room={room.id} status={room.status.value} reason={reason}")
        self._back_to_lobby(room)
        return [Outbound.broadcast(room, 'game_aborted', {
            'reason': reason,
            'members': room.member_list(),
        })]

    def _back_to_lobby(self, room: Room) -> None:
        room.cancel_tasks()
        room.status = RoomStatus.LOBBY
        room.round_number = 0
        room.clear_round()
        for p in room.members.values():
            p.ready = False
            p.score = 0

    # ---- timers ----

    def _schedule(self, room: Room, label: str, delay: float, expected: RoomStatus,
                  step: Callable[[Room], List[Outbound]]) -> None:
        room_id = room.id

        def _fire() -> List[Outbound]:
            current = self.registry.get(room_id)
            if current is None or task not in current.tasks or current.status != expected:
                self.logger.info(f"[timer-abort] room={room_id} label={label} stale")
                return []
            current.tasks.remove(task)
            return step(current)

        task = self.scheduler.schedule(room_id, label, delay, _fire)
        room.tasks.append(task)
