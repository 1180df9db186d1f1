"""Deterministic placement of branch nodes on the canvas."""

from dataclasses import dataclass

from convograph.models.graph import Position


@dataclass(frozen=True)
class BranchLayoutConfig:
    horizontal_spacing: float = 350.0  # between sibling branches
    vertical_spacing: float = 200.0  # between a node and its child
    viewport_padding: float = 100.0
    max_viewport_width: float = 10000.0
    max_viewport_height: float = 10000.0


BRANCH_LAYOUT = BranchLayoutConfig()


def branch_position(
    parent: Position,
    lane: int,
    depth: int = 0,
    viewport: tuple[float, float] | None = None,
    config: BranchLayoutConfig = BRANCH_LAYOUT,
) -> Position:
    """Place a child of ``parent``.

    Each sibling gets its own horizontal lane and each level of depth moves
    one row down, so siblings never land on top of each other. With a
    ``(width, height)`` viewport the position wraps to the next row when it
    would run off the right edge and is clamped inside the padding.
    """
    x = parent.x + lane * config.horizontal_spacing
    y = parent.y + (depth + 1) * config.vertical_spacing

    if viewport is not None:
        max_width = min(viewport[0], config.max_viewport_width)
        max_height = min(viewport[1], config.max_viewport_height)

        if x + config.viewport_padding > max_width:
            x = parent.x
            y += config.vertical_spacing
        if y + config.viewport_padding > max_height:
            y = max_height - config.viewport_padding

        x = max(config.viewport_padding, x)
        y = max(config.viewport_padding, y)

    return Position(x=x, y=y)
