import os

os.environ.setdefault("SDL_VIDEODRIVER", "dummy")
os.environ.setdefault("PYGAME_HIDE_SUPPORT_PROMPT", "1")

import pytest

from capture import capture_commands
from engine import TurtleEngine
from harness import SETTLE_FRAMES
from hosts import HeadlessHost


@pytest.fixture
def engine() -> TurtleEngine:
    eng = TurtleEngine()
    yield eng
    eng.destroy()


@pytest.fixture
def host(engine) -> HeadlessHost:
    return HeadlessHost(engine)


@pytest.fixture
def render_reference(tmp_path):
    """Render a turtle program on its own engine and save it as a PNG."""
    counter = [0]

    def _render(source: str) -> str:
        counter[0] += 1
        ref_host = HeadlessHost(TurtleEngine())
        ref_host.run(capture_commands(source))
        ref_host.wait_frames(SETTLE_FRAMES)
        path = tmp_path / f"reference_{counter[0]}.png"
        ref_host.engine.canvas.save_png(str(path))
        return str(path)

    return _render
