"""Rendering engine: draws a TurtleWorld onto a pygame.Surface every frame."""

import base64
import binascii
import io
import math

import pygame

from errors import CaptureError
from world import HEIGHT, WIDTH, PathSegment, Pose, TurtleWorld

BACKGROUND = (255, 255, 255)
GRID_COLOR = (240, 240, 240)
GRID_SPACING = 50

TURTLE_OUTLINE = (30, 100, 30)
TURTLE_FILL = (50, 150, 50)
# (local x, local y, radius) in logical pixels; +x points along the heading.
TURTLE_PARTS = (
    (-8, -10, 4), (8, -10, 4), (-8, 10, 4), (8, 10, 4),  # legs
    (0, 0, 11),                                          # shell
    (15, 0, 6),                                          # head
)

PNG_PREFIX = "data:image/png;base64,"


def encode_png(surface: pygame.Surface) -> str:
    """Encode a surface as a PNG data URL."""
    buf = io.BytesIO()
    pygame.image.save(surface, buf, "snapshot.png")
    return PNG_PREFIX + base64.b64encode(buf.getvalue()).decode("ascii")


def load_image(source: str) -> pygame.Surface:
    """Load a surface from a data URL or a file path."""
    if source.startswith("data:"):
        _, _, payload = source.partition(",")
        try:
            raw = base64.b64decode(payload, validate=True)
        except binascii.Error as e:
            raise ValueError(f"Malformed image data URL: {e}") from e
        return pygame.image.load(io.BytesIO(raw), "image.png")
    return pygame.image.load(source)


class TurtleCanvas:
    """Owns the backing surface for one turtle world.

    ``pixel_ratio`` stands in for the host display density: the backing
    buffer is ``width * ratio`` by ``height * ratio`` while all drawing stays
    in logical pixels. Snapshots are always ``width`` by ``height``.
    """

    def __init__(self, width: int = WIDTH, height: int = HEIGHT, pixel_ratio: float = 1.0):
        if pixel_ratio <= 0:
            raise ValueError("pixel_ratio must be positive")
        self.width = width
        self.height = height
        self.pixel_ratio = pixel_ratio
        size = (round(width * pixel_ratio), round(height * pixel_ratio))
        self.surface = pygame.Surface(size, 0, 32)
        self.surface.fill(BACKGROUND)

    @property
    def backing_size(self) -> tuple[int, int]:
        return self.surface.get_size()

    def _pt(self, x: float, y: float) -> tuple[float, float]:
        return x * self.pixel_ratio, y * self.pixel_ratio

    def _px(self, size: float) -> int:
        return max(1, round(size * self.pixel_ratio))

    # --- Frame ---

    def draw(self, world: TurtleWorld):
        self.surface.fill(BACKGROUND)
        self._draw_grid()

        # Painter's order: later shapes cover earlier ones, strokes on top.
        for shape in world.shapes:
            pygame.draw.polygon(self.surface, shape.color,
                                [self._pt(x, y) for x, y in shape.points])

        for segment in world.segments:
            self._draw_segment(segment)

        line = world.current_line
        if line is not None:
            self._draw_line(line.color, (line.x1, line.y1), world.position, line.size)

        if world.visible:
            self._draw_turtle(world.pose)

    def _draw_grid(self):
        w, h = self.surface.get_size()
        for x in range(0, self.width, GRID_SPACING):
            px = x * self.pixel_ratio
            pygame.draw.line(self.surface, GRID_COLOR, (px, 0), (px, h), 1)
        for y in range(0, self.height, GRID_SPACING):
            py = y * self.pixel_ratio
            pygame.draw.line(self.surface, GRID_COLOR, (0, py), (w, py), 1)

    def _draw_segment(self, segment: PathSegment):
        self._draw_line(segment.color, (segment.x1, segment.y1),
                        (segment.x2, segment.y2), segment.size)

    def _draw_line(self, color, start, end, size: float):
        """Line with round caps, like a canvas 2D context with lineCap=round."""
        if size <= 0:
            return
        width = self._px(size)
        p1, p2 = self._pt(*start), self._pt(*end)
        pygame.draw.line(self.surface, color, p1, p2, width)
        if width > 2:
            radius = width / 2
            pygame.draw.circle(self.surface, color, p1, radius)
            pygame.draw.circle(self.surface, color, p2, radius)

    def _draw_turtle(self, pose: Pose):
        rad = math.radians(pose.heading)
        cos_h, sin_h = math.cos(rad), math.sin(rad)
        outline = self._px(1.5)
        for lx, ly, r in TURTLE_PARTS:
            cx = pose.x + lx * cos_h - ly * sin_h
            cy = pose.y + lx * sin_h + ly * cos_h
            center = self._pt(cx, cy)
            radius = r * self.pixel_ratio
            pygame.draw.circle(self.surface, TURTLE_FILL, center, radius)
            pygame.draw.circle(self.surface, TURTLE_OUTLINE, center, radius, outline)

    # --- Capture ---

    def snapshot_surface(self) -> pygame.Surface:
        """Return a copy of the frame at exactly width x height."""
        target = (self.width, self.height)
        if self.surface.get_size() == target:
            return self.surface.copy()
        # Dense backing buffers are averaged down through an off-screen surface.
        scaled = pygame.Surface(target, 0, 32)
        pygame.transform.smoothscale(self.surface, target, scaled)
        return scaled

    def snapshot(self) -> str:
        try:
            return encode_png(self.snapshot_surface())
        except pygame.error as e:
            raise CaptureError(f"Could not capture canvas: {e}") from e

    def save_png(self, path: str):
        try:
            pygame.image.save(self.snapshot_surface(), path)
        except pygame.error as e:
            raise CaptureError(f"Could not save canvas to {path}: {e}") from e
