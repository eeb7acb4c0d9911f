import pytest

from canvas import GRID_COLOR, PNG_PREFIX, TurtleCanvas, load_image
from engine import TurtleEngine
from hosts import HeadlessHost

RED = (255, 0, 0)
BLUE = (0, 0, 255)


def _pixel(snapshot: str, x: int, y: int) -> tuple[int, int, int]:
    return tuple(load_image(snapshot).get_at((x, y)))[:3]


def _square(x: int, y: int, size: int, color: tuple) -> list[dict]:
    return [
        {"type": "goto", "x": x, "y": y},
        {"type": "setFillColor", "color": list(color)},
        {"type": "beginFill"},
        {"type": "goto", "x": x + size, "y": y},
        {"type": "goto", "x": x + size, "y": y + size},
        {"type": "goto", "x": x, "y": y + size},
        {"type": "goto", "x": x, "y": y},
        {"type": "endFill"},
    ]


@pytest.mark.parametrize("ratio, backing", [(1, (400, 300)), (2, (800, 600)), (1.5, (600, 450))])
def test_snapshot_size_ignores_pixel_ratio(ratio, backing) -> None:
    engine = TurtleEngine(pixel_ratio=ratio)
    host = HeadlessHost(engine)
    host.run([{"type": "setSpeed", "speed": 0}, {"type": "forward", "distance": 80}])
    host.wait_frames(2)
    assert engine.canvas.backing_size == backing
    snapshot = engine.snapshot()
    assert snapshot.startswith(PNG_PREFIX)
    assert load_image(snapshot).get_size() == (400, 300)


def test_invalid_pixel_ratio() -> None:
    with pytest.raises(ValueError):
        TurtleCanvas(pixel_ratio=0)


def test_blank_canvas_has_grid(engine: TurtleEngine) -> None:
    snapshot = engine.snapshot()
    assert _pixel(snapshot, 50, 10) == GRID_COLOR
    assert _pixel(snapshot, 25, 10) == (255, 255, 255)


def test_stroke_is_drawn(host: HeadlessHost) -> None:
    host.run([
        {"type": "setSpeed", "speed": 0},
        {"type": "setStrokeColor", "color": "red"},
        {"type": "setStrokeWidth", "size": 6},
        {"type": "forward", "distance": 100},
    ])
    host.wait_frames(2)
    assert _pixel(host.snapshot(), 200, 100) == RED


def test_later_fill_paints_over_earlier(host: HeadlessHost) -> None:
    host.run([
        {"type": "setSpeed", "speed": 0},
        {"type": "penup"},
        *_square(0, 0, 100, BLUE),
        *_square(50, 50, 100, RED),
    ])
    host.wait_frames(2)
    snapshot = host.snapshot()
    # Logical (75, 75) is covered by both squares; (25, 25) only by the first.
    assert _pixel(snapshot, 275, 75) == RED
    assert _pixel(snapshot, 225, 125) == BLUE


def test_in_flight_segment_is_drawn(engine: TurtleEngine) -> None:
    engine.execute([
        {"type": "setSpeed", "speed": 1},
        {"type": "setStrokeColor", "color": "red"},
        {"type": "setStrokeWidth", "size": 6},
        {"type": "forward", "distance": 100},
    ])
    for _ in range(40):
        engine.tick()
    world = engine.world
    assert world.segments == []
    assert world.current_line is not None
    engine.canvas.draw(world)
    # The cursor is near y=131 and the line starts at y=150.
    assert _pixel(engine.snapshot(), 200, 147) == RED


def test_save_png(tmp_path, host: HeadlessHost) -> None:
    host.run([{"type": "setSpeed", "speed": 0}, {"type": "forward", "distance": 30}])
    path = tmp_path / "out.png"
    host.engine.canvas.save_png(str(path))
    assert load_image(str(path)).get_size() == (400, 300)
