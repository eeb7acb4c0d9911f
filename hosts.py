"""Frame drivers that own a TurtleEngine and pump its ticks."""

import logging

from commands import Command
from engine import TurtleEngine
from errors import EngineNotReadyError, ExecutionError

logger = logging.getLogger(__name__)

MAX_FRAMES = 1_000_000


class HeadlessHost:
    """Runs an engine without a display, as fast as the CPU allows.

    Rendering is skipped while a batch is animating; only the frames
    requested through ``wait_frames`` are drawn.
    """

    def __init__(self, engine: TurtleEngine | None = None, max_frames: int = MAX_FRAMES):
        self.engine = engine if engine is not None else TurtleEngine()
        self.max_frames = max_frames

    @property
    def ready(self) -> bool:
        return self.engine.ready

    def run(self, commands: list[Command] | list[dict]) -> int:
        """Execute a command stream to completion. Returns frames used."""
        if not self.ready:
            raise EngineNotReadyError("Turtle engine not ready")
        future = self.engine.execute(commands)
        frames = 0
        while not future.done():
            if frames >= self.max_frames:
                self.engine.stop()
                raise ExecutionError(f"Drawing did not finish within {self.max_frames} frames")
            self.engine.tick(render=False)
            frames += 1
        logger.debug("Batch finished after %d frames", frames)
        return frames

    def wait_frames(self, count: int):
        for _ in range(count):
            self.engine.tick()

    def snapshot(self) -> str:
        return self.engine.snapshot()
