"""Turtle world: pose, pen and fill state, and the geometry they commit."""

import math
from dataclasses import dataclass, field

import pygame

WIDTH, HEIGHT = 400, 300
START_HEADING = -90.0  # facing up; canvas Y grows downward
DEFAULT_SPEED = 6
DEFAULT_STROKE_WIDTH = 2.0
BLACK = (0, 0, 0)

# Pixels per frame for speeds 1..10; turning runs at twice the rate in degrees.
SPEED_TABLE = (0, 0.5, 1, 1.5, 2, 3, 4, 5, 6, 8, 10)

Point = tuple[float, float]
RGB = tuple[int, int, int]


def normalize_angle(angle: float) -> float:
    """Fold an angle in degrees into (-180, 180]."""
    a = math.fmod(angle, 360.0)
    if a <= -180.0:
        a += 360.0
    elif a > 180.0:
        a -= 360.0
    return a


def rates_for_speed(speed: int) -> tuple[float, float]:
    """Return (pixels per frame, degrees per frame). Speed 0 is instant."""
    if speed == 0:
        return math.inf, math.inf
    move = SPEED_TABLE[max(1, min(10, int(speed)))]
    return move, move * 2


def resolve_color(value) -> RGB:
    """Turn a colour name, hex string or RGB triple into an (r, g, b) tuple.

    A triple whose components are all <= 1 is read as normalized floats,
    anything else as 0..255 integers. The rule is ambiguous when every
    component is exactly 0 or 1: ``(1, 1, 1)`` is white, never rgb(1, 1, 1).
    Raises ValueError for names pygame does not know.
    """
    if isinstance(value, str):
        text = value.strip()
        if len(text) == 4 and text.startswith("#"):
            text = "#" + "".join(ch * 2 for ch in text[1:])
        c = pygame.Color(text)
        return (c.r, c.g, c.b)
    r, g, b = value
    if all(c <= 1 for c in (r, g, b)):
        r, g, b = r * 255, g * 255, b * 255
    return tuple(max(0, min(255, int(c))) for c in (r, g, b))


@dataclass
class Pose:
    x: float
    y: float
    heading: float = START_HEADING


@dataclass
class PenState:
    down: bool = True
    stroke_color: RGB = BLACK
    fill_color: RGB = BLACK
    stroke_width: float = DEFAULT_STROKE_WIDTH


@dataclass(frozen=True)
class PathSegment:
    x1: float
    y1: float
    x2: float
    y2: float
    color: RGB
    size: float

    @property
    def length(self) -> float:
        return math.hypot(self.x2 - self.x1, self.y2 - self.y1)


@dataclass(frozen=True)
class FilledShape:
    points: tuple[Point, ...]
    color: RGB


@dataclass
class TurtleWorld:
    """Everything one canvas knows about its turtle.

    Positions are canvas pixels. Movement is split in two halves so the
    scheduler can animate it: ``begin_move`` records the provisional segment
    and the fill point, ``move_to`` slides the cursor, ``finish_move`` snaps
    to the destination and commits the segment.
    """

    width: int = WIDTH
    height: int = HEIGHT
    pose: Pose = field(init=False)
    pen: PenState = field(init=False)
    speed: int = field(init=False)
    segments: list[PathSegment] = field(init=False)
    shapes: list[FilledShape] = field(init=False)
    fill_path: list[Point] | None = field(init=False)
    current_line: PathSegment | None = field(init=False)
    visible: bool = field(init=False)

    def __post_init__(self):
        self.reset()

    def reset(self):
        self.pose = Pose(self.width / 2, self.height / 2)
        self.pen = PenState()
        self.speed = DEFAULT_SPEED
        self.segments = []
        self.shapes = []
        self.fill_path = None
        self.current_line = None
        self.visible = True

    # --- Coordinates ---

    def to_canvas(self, x: float, y: float) -> Point:
        """Logical turtle coordinates (origin centre, Y up) to canvas pixels."""
        return x + self.width / 2, self.height / 2 - y

    def to_logical(self, x: float, y: float) -> Point:
        return x - self.width / 2, self.height / 2 - y

    def point_ahead(self, distance: float) -> Point:
        rad = math.radians(self.pose.heading)
        return (self.pose.x + distance * math.cos(rad),
                self.pose.y + distance * math.sin(rad))

    @property
    def position(self) -> Point:
        return self.pose.x, self.pose.y

    @property
    def filling(self) -> bool:
        return self.fill_path is not None

    @property
    def move_rate(self) -> float:
        return rates_for_speed(self.speed)[0]

    @property
    def turn_rate(self) -> float:
        return rates_for_speed(self.speed)[1]

    # --- Movement ---

    def begin_move(self, target: Point):
        if self.pen.down:
            self.current_line = PathSegment(
                self.pose.x, self.pose.y, target[0], target[1],
                self.pen.stroke_color, self.pen.stroke_width,
            )
        if self.fill_path is not None:
            self.fill_path.append(target)

    def move_to(self, x: float, y: float):
        self.pose.x = x
        self.pose.y = y

    def finish_move(self, target: Point):
        self.move_to(*target)
        if self.current_line is not None:
            self.segments.append(self.current_line)
            self.current_line = None

    def turn_to(self, heading: float):
        self.pose.heading = normalize_angle(heading)

    # --- Pen ---

    def pen_up(self):
        self.pen.down = False

    def pen_down(self):
        self.pen.down = True
        if self.fill_path is not None:
            self.fill_path.append(self.position)

    def set_stroke_color(self, color):
        self.pen.stroke_color = resolve_color(color)

    def set_fill_color(self, color):
        self.pen.fill_color = resolve_color(color)

    def set_stroke_width(self, size: float):
        self.pen.stroke_width = float(size)

    def set_speed(self, speed: float):
        self.speed = int(max(0, min(10, speed)))

    # --- Fill ---

    def begin_fill(self):
        self.fill_path = [self.position]

    def end_fill(self):
        if self.fill_path is not None and len(self.fill_path) > 2:
            self.shapes.append(FilledShape(tuple(self.fill_path), self.pen.fill_color))
        self.fill_path = None

    def clear(self):
        """Drop drawn geometry; pose and pen stay where they are."""
        self.segments.clear()
        self.shapes.clear()
        self.current_line = None
        if self.fill_path is not None:
            self.fill_path = []

    def describe(self) -> dict:
        x, y = self.to_logical(*self.position)
        return {
            "x": round(x, 3),
            "y": round(y, 3),
            "heading": round(self.pose.heading, 3),
            "pen_down": self.pen.down,
            "stroke_color": list(self.pen.stroke_color),
            "fill_color": list(self.pen.fill_color),
            "stroke_width": self.pen.stroke_width,
            "speed": self.speed,
            "filling": self.filling,
            "segments": len(self.segments),
            "shapes": len(self.shapes),
        }
