"""
Procedural SVG avatars.

Every agent gets a small abstract picture derived only from its numeric id and
avatar color, so the same inputs always produce byte-identical markup.
"""

from dataclasses import dataclass
from html import escape
from typing import List

LCG_MULTIPLIER = 9301
LCG_INCREMENT = 49297
LCG_MODULUS = 233280

SHAPE_KINDS = ("rect", "circle", "triangle")
SHAPES_PER_AVATAR = 3
DEFAULT_COLOR = "#333333"


class SeededRandom:
    """Linear congruential generator seeded from an integer id."""

    def __init__(self, seed_id: int):
        self.seed = seed_id * LCG_MULTIPLIER + LCG_INCREMENT

    def next(self) -> float:
        self.seed = (self.seed * LCG_MULTIPLIER + LCG_INCREMENT) % LCG_MODULUS
        return self.seed / LCG_MODULUS


@dataclass(frozen=True)
class Shape:
    kind: str
    opacity: float
    x: float
    y: float
    size: float


# PUBLIC_INTERFACE
def generate_shapes(user_id: int, count: int = SHAPES_PER_AVATAR) -> List[Shape]:
    """Draw the avatar's shapes. Each shape consumes five draws in a fixed order."""
    rnd = SeededRandom(user_id)
    shapes = []
    for _ in range(count):
        kind = SHAPE_KINDS[int(rnd.next() * len(SHAPE_KINDS))]
        opacity = 0.3 + rnd.next() * 0.5
        x = 10 + rnd.next() * 80
        y = 10 + rnd.next() * 80
        size = 10 + rnd.next() * 40
        shapes.append(Shape(kind=kind, opacity=opacity, x=x, y=y, size=size))
    return shapes


def _fmt(value: float) -> str:
    return f"{value:.2f}".rstrip("0").rstrip(".")


def _shape_svg(shape: Shape) -> str:
    opacity = _fmt(shape.opacity)
    if shape.kind == "rect":
        half = shape.size / 2
        return (
            f'<rect x="{_fmt(shape.x - half)}" y="{_fmt(shape.y - half)}" '
            f'width="{_fmt(shape.size)}" height="{_fmt(shape.size)}" fill="#ffffff" fill-opacity="{opacity}"/>'
        )
    if shape.kind == "circle":
        return (
            f'<circle cx="{_fmt(shape.x)}" cy="{_fmt(shape.y)}" r="{_fmt(shape.size / 2)}" '
            f'fill="#ffffff" fill-opacity="{opacity}"/>'
        )
    half = shape.size / 2
    points = " ".join(
        f"{_fmt(px)},{_fmt(py)}"
        for px, py in ((shape.x, shape.y - half), (shape.x - half, shape.y + half), (shape.x + half, shape.y + half))
    )
    return f'<polygon points="{points}" fill="#000000" fill-opacity="{opacity}"/>'


# PUBLIC_INTERFACE
def generate_avatar_svg(user_id: int, color: str = DEFAULT_COLOR, size: int = 100) -> str:
    """Render the avatar for user_id over a background of color."""
    background = escape(color or DEFAULT_COLOR, quote=True)
    body = "".join(_shape_svg(s) for s in generate_shapes(user_id))
    return (
        f'<svg xmlns="http://www.w3.org/2000/svg" width="{size}" height="{size}" viewBox="0 0 100 100">'
        f'<rect width="100" height="100" fill="{background}"/>'
        f"{body}"
        "</svg>"
    )
