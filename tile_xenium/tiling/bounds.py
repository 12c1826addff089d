"""Axis-aligned rectangles in micron coordinates."""

from dataclasses import dataclass


@dataclass(frozen=True)
class Bounds:
    """Rectangle ``[x_min, x_max] x [y_min, y_max]``."""

    x_min: float
    x_max: float
    y_min: float
    y_max: float

    @property
    def width(self) -> float:
        return self.x_max - self.x_min

    @property
    def height(self) -> float:
        return self.y_max - self.y_min

    def expand(self, margin: float) -> "Bounds":
        """Grow outward by ``margin`` on every side."""
        return Bounds(
            x_min=self.x_min - margin,
            x_max=self.x_max + margin,
            y_min=self.y_min - margin,
            y_max=self.y_max + margin,
        )

    def clip(self, other: "Bounds") -> "Bounds":
        """Intersection with ``other``."""
        return Bounds(
            x_min=max(self.x_min, other.x_min),
            x_max=min(self.x_max, other.x_max),
            y_min=max(self.y_min, other.y_min),
            y_max=min(self.y_max, other.y_max),
        )

    def covers(self, other: "Bounds") -> bool:
        """Whether ``other`` lies entirely inside this rectangle."""
        return (
            self.x_min <= other.x_min
            and self.x_max >= other.x_max
            and self.y_min <= other.y_min
            and self.y_max >= other.y_max
        )

    def contains(self, x: float, y: float) -> bool:
        return self.x_min <= x <= self.x_max and self.y_min <= y <= self.y_max

    def to_dict(self) -> dict[str, float]:
        return {
            "x_min": float(self.x_min),
            "x_max": float(self.x_max),
            "y_min": float(self.y_min),
            "y_max": float(self.y_max),
        }
