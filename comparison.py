"""Pixel comparator for turtle snapshots against reference images."""

from dataclasses import dataclass

import numpy as np
import pygame

from canvas import encode_png, load_image
from errors import ComparisonError

DEFAULT_THRESHOLD = 0.95
# Max per-channel difference still counted as a match (anti-aliasing noise).
DEFAULT_TOLERANCE = 16

DIFF_COLOR = (255, 0, 0)


@dataclass
class ComparisonResult:
    passed: bool
    similarity: float
    mismatched_pixels: int
    diff_image: str | None = None


class PixelComparator:
    """Scores two images by the fraction of pixels that match.

    similarity = 1 - mismatched / total, where a pixel mismatches when any
    RGB channel differs by more than ``tolerance``. Alpha is ignored.
    """

    def __init__(self, tolerance: int = DEFAULT_TOLERANCE):
        self.tolerance = tolerance

    def _pixels(self, source: str, label: str) -> np.ndarray:
        try:
            surface = load_image(source)
        except (pygame.error, OSError, ValueError) as e:
            raise ComparisonError(f"Could not load {label} image: {e}") from e
        # surfarray is (W, H, C); transpose to row-major (H, W, C).
        return np.transpose(pygame.surfarray.array3d(surface), (1, 0, 2)).astype(np.int16)

    def compare(self, snapshot: str, reference: str, threshold: float = DEFAULT_THRESHOLD,
                include_diff: bool = False) -> ComparisonResult:
        actual = self._pixels(snapshot, "snapshot")
        expected = self._pixels(reference, "reference")
        if actual.shape != expected.shape:
            raise ComparisonError(
                f"Image sizes differ: snapshot {actual.shape[1]}x{actual.shape[0]}, "
                f"reference {expected.shape[1]}x{expected.shape[0]}"
            )

        mismatch = np.abs(actual - expected).max(axis=2) > self.tolerance
        mismatched = int(mismatch.sum())
        similarity = 1.0 - mismatched / mismatch.size

        diff_image = None
        if include_diff:
            diff_image = encode_png(self._diff_surface(actual, mismatch))

        return ComparisonResult(
            passed=similarity >= threshold,
            similarity=similarity,
            mismatched_pixels=mismatched,
            diff_image=diff_image,
        )

    @staticmethod
    def _diff_surface(actual: np.ndarray, mismatch: np.ndarray) -> pygame.Surface:
        """Faded greyscale of the snapshot with mismatches painted red."""
        grey = actual.mean(axis=2, keepdims=True)
        out = np.repeat(255 - (255 - grey) * 0.3, 3, axis=2)
        out[mismatch] = DIFF_COLOR
        return pygame.surfarray.make_surface(
            np.ascontiguousarray(np.transpose(out.astype(np.uint8), (1, 0, 2))))
