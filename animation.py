"""Per-frame animation: commands become tasks, tasks run one at a time."""

import logging
import math
from collections import deque
from concurrent.futures import Future
from typing import Callable

from commands import Command
from world import Point, TurtleWorld, normalize_angle

logger = logging.getLogger(__name__)

EPSILON = 0.1  # pixels for moves, degrees for turns


def approach(remaining: float, rate: float) -> tuple[float, bool]:
    """Advance toward a goal ``remaining`` units away at ``rate`` per frame.

    Returns (amount to advance this frame, arrived). An infinite rate always
    arrives on the first call, which is how speed 0 skips interpolation.
    """
    step = min(rate, remaining)
    if remaining - step <= EPSILON:
        return remaining, True
    return step, False


class AnimationTask:
    kind = "instant"

    def init(self, world: TurtleWorld):
        pass

    def execute(self, world: TurtleWorld) -> bool:
        raise NotImplementedError


class InstantTask(AnimationTask):
    def __init__(self, action: Callable[[TurtleWorld], None]):
        self.action = action

    def execute(self, world: TurtleWorld) -> bool:
        self.action(world)
        return True


class MoveTask(AnimationTask):
    """Slide the cursor to a destination resolved when the task starts."""

    kind = "move"

    def __init__(self, destination: Callable[[TurtleWorld], Point]):
        self.destination = destination
        self.target: Point | None = None

    def init(self, world: TurtleWorld):
        self.target = self.destination(world)
        world.begin_move(self.target)

    def execute(self, world: TurtleWorld) -> bool:
        x, y = world.position
        tx, ty = self.target
        dist = math.hypot(tx - x, ty - y)
        step, arrived = approach(dist, world.move_rate)
        if arrived:
            world.finish_move(self.target)
            return True
        world.move_to(x + (tx - x) / dist * step, y + (ty - y) / dist * step)
        return False


class TurnTask(AnimationTask):
    kind = "turn"

    def __init__(self, delta: float):
        self.delta = delta
        self.target = 0.0

    def init(self, world: TurtleWorld):
        self.target = normalize_angle(world.pose.heading + self.delta)

    def execute(self, world: TurtleWorld) -> bool:
        diff = normalize_angle(self.target - world.pose.heading)
        step, arrived = approach(abs(diff), world.turn_rate)
        if arrived:
            world.turn_to(self.target)
            return True
        world.turn_to(world.pose.heading + math.copysign(step, diff))
        return False


def _forward(distance: float) -> MoveTask:
    return MoveTask(lambda world: world.point_ahead(distance))


_TASK_FACTORIES: dict[str, Callable[[Command], AnimationTask]] = {
    "forward": lambda c: _forward(c.distance),
    "backward": lambda c: _forward(-c.distance),
    "right": lambda c: TurnTask(c.angle),
    "left": lambda c: TurnTask(-c.angle),
    "goto": lambda c: MoveTask(lambda world: world.to_canvas(c.x, c.y)),
    "penup": lambda c: InstantTask(TurtleWorld.pen_up),
    "pendown": lambda c: InstantTask(TurtleWorld.pen_down),
    "setStrokeColor": lambda c: InstantTask(lambda world: world.set_stroke_color(c.color)),
    "setFillColor": lambda c: InstantTask(lambda world: world.set_fill_color(c.color)),
    "setStrokeWidth": lambda c: InstantTask(lambda world: world.set_stroke_width(c.size)),
    "setSpeed": lambda c: InstantTask(lambda world: world.set_speed(c.speed)),
    "beginFill": lambda c: InstantTask(TurtleWorld.begin_fill),
    "endFill": lambda c: InstantTask(TurtleWorld.end_fill),
    "clear": lambda c: InstantTask(TurtleWorld.clear),
}


def task_for(command: Command) -> AnimationTask | None:
    """Map a command to its animation task; unknown types map to None."""
    factory = _TASK_FACTORIES.get(command.type)
    if factory is None:
        return None
    return factory(command)


class CancellationToken:
    """One-shot interrupt flag with callbacks. ``interrupt()`` is always safe."""

    def __init__(self):
        self._interrupted = False
        self._callbacks: list[Callable[[], None]] = []

    @property
    def interrupted(self) -> bool:
        return self._interrupted

    def on_interrupt(self, callback: Callable[[], None]):
        if self._interrupted:
            callback()
        else:
            self._callbacks.append(callback)

    def interrupt(self):
        if self._interrupted:
            return
        self._interrupted = True
        callbacks, self._callbacks = self._callbacks, []
        for callback in callbacks:
            callback()


def _resolve(future: Future):
    if not future.done():
        future.set_result(None)


class Scheduler:
    """FIFO of animation tasks; ``step`` is called once per frame."""

    def __init__(self):
        self.queue: deque[AnimationTask] = deque()
        self.current: AnimationTask | None = None
        self._future: Future = Future()
        self._future.set_result(None)
        self._token = CancellationToken()

    @property
    def busy(self) -> bool:
        return not self._future.done()

    def start(self, tasks: list[AnimationTask]) -> Future:
        """Queue a run of tasks, interrupting any run still in flight."""
        self.interrupt()
        future: Future = Future()
        token = CancellationToken()
        token.on_interrupt(self._abandon)
        token.on_interrupt(lambda: _resolve(future))
        self._future, self._token = future, token
        self.queue.extend(tasks)
        if not self.queue:
            _resolve(future)
        return future

    def interrupt(self):
        if self.busy:
            logger.debug("Interrupting animation with %d tasks left", len(self.queue))
        self._token.interrupt()

    def _abandon(self):
        self.queue.clear()
        self.current = None

    def step(self, world: TurtleWorld) -> bool:
        """Run one frame of work. Returns True if a task was executed."""
        if self.current is None:
            if not self.queue:
                return False
            self.current = self.queue.popleft()
            self.current.init(world)
        if self.current.execute(world):
            self.current = None
            if not self.queue:
                _resolve(self._future)
        return True
