"""TurtleEngine: one world, one scheduler and one canvas per mounted view."""

import logging
from concurrent.futures import Future

from animation import Scheduler, task_for
from canvas import TurtleCanvas
from commands import Command, parse_commands
from errors import CaptureError
from world import HEIGHT, WIDTH, TurtleWorld

logger = logging.getLogger(__name__)


class TurtleEngine:
    """Animated turtle renderer driven by an external frame clock.

    The host calls ``tick()`` once per frame. ``execute()`` resets the
    world, queues one task per command and returns a Future that resolves
    when the queue drains or ``stop()`` is called. Not thread-safe: all
    calls must come from the thread that ticks.
    """

    def __init__(self, width: int = WIDTH, height: int = HEIGHT, pixel_ratio: float = 1.0):
        self.world = TurtleWorld(width, height)
        self.scheduler = Scheduler()
        self.canvas: TurtleCanvas | None = TurtleCanvas(width, height, pixel_ratio)
        self.frame = 0
        self._frame_waiters: list[tuple[int, Future]] = []
        self.canvas.draw(self.world)

    @property
    def ready(self) -> bool:
        return self.canvas is not None

    @property
    def busy(self) -> bool:
        return self.scheduler.busy

    def reset(self):
        """Cancel pending work and restore pose, pen, speed and geometry."""
        self.scheduler.interrupt()
        self.world.reset()

    def clear(self):
        self.reset()
        if self.canvas is not None:
            self.canvas.draw(self.world)

    def execute(self, commands: list[Command] | list[dict] | str) -> Future:
        if isinstance(commands, str) or any(isinstance(c, dict) for c in commands):
            commands = parse_commands(commands)
        self.reset()
        tasks = [task for task in map(task_for, commands) if task is not None]
        logger.debug("Executing %d commands as %d tasks", len(commands), len(tasks))
        return self.scheduler.start(tasks)

    def stop(self):
        """Drop remaining tasks and resolve the pending run. Always safe."""
        self.scheduler.interrupt()

    def tick(self, render: bool = True):
        """Advance one frame: draw the current state, then run one task step."""
        if self.canvas is None:
            return
        if render:
            self.canvas.draw(self.world)
        self.scheduler.step(self.world)
        self.frame += 1

        waiting = []
        for frame, future in self._frame_waiters:
            if frame <= self.frame:
                if not future.done():
                    future.set_result(self.frame)
            else:
                waiting.append((frame, future))
        self._frame_waiters = waiting

    def after_frames(self, count: int) -> Future:
        """Future resolved once ``count`` more frames have been ticked."""
        future: Future = Future()
        if count <= 0:
            future.set_result(self.frame)
        else:
            self._frame_waiters.append((self.frame + count, future))
        return future

    def snapshot(self) -> str:
        if self.canvas is None:
            raise CaptureError("Canvas has been destroyed")
        return self.canvas.snapshot()

    def destroy(self):
        self.stop()
        for _, future in self._frame_waiters:
            future.cancel()
        self._frame_waiters = []
        self.canvas = None
