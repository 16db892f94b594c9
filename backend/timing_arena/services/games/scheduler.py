import itertools
import time
from typing import Callable, List, Optional


_task_ids = itertools.count(1)


class ScheduledTask:
    """A deferred phase transition owned by one room.

    ``callback`` returns the outbound messages produced by the transition.
    A cancelled task fires as a no-op.
    """

    def __init__(self, room_id: str, label: str, delay: float, callback: Callable[[], list]):
        self.id = next(_task_ids)
        self.room_id = room_id
        self.label = label
        self.delay = delay
        self.callback = callback
        self.cancelled = False

    def cancel(self) -> None:
        self.cancelled = True

    def fire(self) -> list:
        if self.cancelled:
            return []
        return self.callback()

    def __repr__(self):
        return f"<ScheduledTask {self.id} room={self.room_id} label={self.label} delay={self.delay}>"


def _default_runner(task: ScheduledTask) -> list:
    return task.fire()


class BackgroundScheduler:
    """Runs each task on a Socket.IO background task after its delay.

    ``runner`` is invoked with the task once the delay elapses; the gateway
    replaces it so the transition runs under its lock and the resulting
    messages get emitted.
    """

    def __init__(self, app, socketio, runner: Optional[Callable[[ScheduledTask], list]] = None):
        self.app = app
        self.socketio = socketio
        self.runner = runner or _default_runner

    def schedule(self, room_id: str, label: str, delay: float, callback: Callable[[], list]) -> ScheduledTask:
        task = ScheduledTask(room_id, label, delay, callback)
        self.app.logger.info(f"[timer-set] room={room_id} label={label} delay={delay}s deadline={time.time() + delay:.3f}")
        self.socketio.start_background_task(self._worker, task)
        return task

    def _worker(self, task: ScheduledTask) -> None:
        hb = int(self.app.config.get('TIMER_HEARTBEAT_SEC', 0) or 0)
        if hb > 0:
            slept = 0.0
            while slept < task.delay and not task.cancelled:
                step = min(hb, task.delay - slept)
                self.socketio.sleep(step)
                slept += step
                self.app.logger.info(
                    f"[timer-heartbeat] room={task.room_id} label={task.label} remaining={max(0.0, task.delay - slept)}s"
                )
        else:
            self.socketio.sleep(task.delay)
        if task.cancelled:
            self.app.logger.info(f"[timer-abort] room={task.room_id} label={task.label} cancelled")
            return
        self.app.logger.info(f"[timer-fire] room={task.room_id} label={task.label}")
        with self.app.app_context():
            self.runner(task)


class ManualScheduler:
    """Holds tasks until a test fires them, earliest delay first."""

    def __init__(self, runner: Optional[Callable[[ScheduledTask], list]] = None):
        self.runner = runner or _default_runner
        self.tasks: List[ScheduledTask] = []

    def schedule(self, room_id: str, label: str, delay: float, callback: Callable[[], list]) -> ScheduledTask:
        task = ScheduledTask(room_id, label, delay, callback)
        self.tasks.append(task)
        return task

    def pending(self, label: Optional[str] = None) -> List[ScheduledTask]:
        return [t for t in self.tasks if not t.cancelled and (label is None or t.label == label)]

    def fire_next(self, label: Optional[str] = None) -> list:
        """Fire the live task with the smallest delay (optionally by label)."""
        candidates = self.pending(label)
        if not candidates:
            raise LookupError(f"no pending task{' labelled ' + label if label else ''}")
        task = min(candidates, key=lambda t: (t.delay, t.id))
        self.tasks.remove(task)
        return self.runner(task)
