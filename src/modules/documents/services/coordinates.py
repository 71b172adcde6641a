"""
Conversions between the viewer's coordinates and PDF user space.

The viewer stores positions with a top-left origin, either as fractions of the
page (``relativeX``/``relativeY``/``relativeWidth``/``relativeHeight``) or, for
older rows, as absolute pixels. PDF user space has a bottom-left origin, and
images/text are placed by their bottom edge.
"""
from dataclasses import dataclass
from typing import Optional

DEFAULT_RELATIVE_WIDTH = 0.2
DEFAULT_RELATIVE_HEIGHT = 0.08

DEFAULT_ABSOLUTE_X = 100
DEFAULT_ABSOLUTE_Y = 100
DEFAULT_ABSOLUTE_WIDTH = 200
DEFAULT_ABSOLUTE_HEIGHT = 100

# Space reserved below a text anchor for the glyphs
TEXT_BASELINE_OFFSET = 20


@dataclass(frozen=True)
class Rect:
    x: float
    y: float
    width: float
    height: float


def to_pdf_x(relative_x: float, page_width: float) -> float:
    return relative_x * page_width


def to_pdf_y(relative_y: float, relative_height: float, page_height: float) -> float:
    """Flip a top-left, page-fraction Y into the bottom-left Y of the element's lower edge."""
    return page_height - relative_y * page_height - relative_height * page_height


def to_absolute_size(relative_width: float, relative_height: float,
                     page_width: float, page_height: float) -> tuple[float, float]:
    return relative_width * page_width, relative_height * page_height


def to_relative_size(width: float, height: float,
                     page_width: float, page_height: float) -> tuple[float, float]:
    return width / page_width, height / page_height


def clamp_rect(rect: Rect, page_width: float) -> Rect:
    """Shrink a rectangle so it does not run past the right or bottom page edge."""
    x, y, width, height = rect.x, rect.y, rect.width, rect.height
    if x + width > page_width:
        width = page_width - x
    if y < 0:
        height = height + y
        y = 0
    return Rect(x, y, width, height)


def _has_relative_anchor(relative_x: Optional[float], relative_y: Optional[float]) -> bool:
    return relative_x is not None and relative_y is not None


def signature_rect(annotation, page_width: float, page_height: float) -> Rect:
    """
    Draw rectangle of a signature in PDF user space, clamped to the page.

    Relative fields win when the anchor is present; otherwise the absolute
    ``x, y, width, height`` are read as top-left pixels.
    """
    if _has_relative_anchor(annotation.relative_x, annotation.relative_y):
        relative_width = annotation.relative_width or DEFAULT_RELATIVE_WIDTH
        relative_height = annotation.relative_height or DEFAULT_RELATIVE_HEIGHT
        width, height = to_absolute_size(relative_width, relative_height, page_width, page_height)
        rect = Rect(
            x=to_pdf_x(annotation.relative_x, page_width),
            y=to_pdf_y(annotation.relative_y, relative_height, page_height),
            width=width,
            height=height,
        )
    else:
        width = annotation.width or DEFAULT_ABSOLUTE_WIDTH
        height = annotation.height or DEFAULT_ABSOLUTE_HEIGHT
        top = annotation.y if annotation.y is not None else DEFAULT_ABSOLUTE_Y
        rect = Rect(
            x=annotation.x if annotation.x is not None else DEFAULT_ABSOLUTE_X,
            y=page_height - top - height,
            width=width,
            height=height,
        )
    return clamp_rect(rect, page_width)


def text_origin(annotation, page_width: float, page_height: float) -> tuple[float, float]:
    if _has_relative_anchor(annotation.relative_x, annotation.relative_y):
        x = to_pdf_x(annotation.relative_x, page_width)
        y = page_height - annotation.relative_y * page_height - TEXT_BASELINE_OFFSET
    else:
        x = annotation.x if annotation.x is not None else DEFAULT_ABSOLUTE_X
        top = annotation.y if annotation.y is not None else DEFAULT_ABSOLUTE_Y
        y = page_height - top - TEXT_BASELINE_OFFSET
    return x, y
