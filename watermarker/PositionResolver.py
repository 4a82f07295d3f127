from typing import Dict, Iterator, Tuple

from .WatermarkConfig import InvalidInputError, WatermarkPosition

# ==========================================
# Position Resolver
# ==========================================
#
# Coordinates are PDF user space: origin at the bottom-left corner of the
# page, y growing upward. A resolved point is the bottom-left corner of the
# content box.

# (horizontal factor, vertical factor) applied to the free space on the page
_ANCHOR_FACTORS: Dict[WatermarkPosition, Tuple[float, float]] = {
    WatermarkPosition.TOP_LEFT: (0.0, 1.0),
    WatermarkPosition.TOP_CENTER: (0.5, 1.0),
    WatermarkPosition.TOP_RIGHT: (1.0, 1.0),
    WatermarkPosition.CENTER_LEFT: (0.0, 0.5),
    WatermarkPosition.CENTER: (0.5, 0.5),
    WatermarkPosition.CENTER_RIGHT: (1.0, 0.5),
    WatermarkPosition.BOTTOM_LEFT: (0.0, 0.0),
    WatermarkPosition.BOTTOM_CENTER: (0.5, 0.0),
    WatermarkPosition.BOTTOM_RIGHT: (1.0, 0.0),
}


def resolve(
    position: WatermarkPosition,
    page_width: float,
    page_height: float,
    content_width: float,
    content_height: float,
    adjustment: Tuple[float, float] = (0.0, 0.0),
    horizontal_spacing: float = 0.0,
    vertical_spacing: float = 0.0,
) -> Iterator[Tuple[float, float]]:
    """
    Maps an anchor onto concrete (x, y) placements for one page.

    Named anchors yield exactly one point. TILED yields a lazy, finite,
    row-major grid starting at the page origin; tiles overflowing the page
    edge are kept, clipping happens when drawing.

    The adjustment offset is added to every point, even when that moves the
    content off the page.
    """
    if horizontal_spacing < 0 or vertical_spacing < 0:
        raise InvalidInputError(
            f"Spacing must be >= 0, got ({horizontal_spacing}, {vertical_spacing})"
        )

    dx, dy = adjustment

    if position is WatermarkPosition.TILED:
        step_x = content_width + horizontal_spacing
        step_y = content_height + vertical_spacing
        if step_x <= 0 or step_y <= 0:
            raise InvalidInputError("Cannot tile a watermark with an empty extent and no spacing.")
        return _tile(page_width, page_height, step_x, step_y, dx, dy)

    fx, fy = _ANCHOR_FACTORS[position]
    x = (page_width - content_width) * fx
    y = (page_height - content_height) * fy
    return iter(((x + dx, y + dy),))


def _tile(
    page_width: float,
    page_height: float,
    step_x: float,
    step_y: float,
    dx: float,
    dy: float,
) -> Iterator[Tuple[float, float]]:
    # Grid points are index * step, never accumulated sums.
    row = 0
    while row * step_y < page_height:
        col = 0
        while col * step_x < page_width:
            yield col * step_x + dx, row * step_y + dy
            col += 1
        row += 1
