"""
View Fitting
============
Validation of fit options and the camera math for fitting nodes into a
viewport. Drawing itself is left to the caller.
"""
from __future__ import annotations

from dataclasses import dataclass, field
import logging
import math
from typing import Any, Dict, Hashable, Iterable, List, Mapping, Optional, Sequence, Tuple

from netlayout.config import FIT_MARGIN, SMALLEST_ZOOM_LEVEL

logger = logging.getLogger(__name__)

_ALIASES = {
    "nodes": "nodes",
    "minZoomLevel": "min_zoom_level",
    "min_zoom_level": "min_zoom_level",
    "maxZoomLevel": "max_zoom_level",
    "max_zoom_level": "max_zoom_level",
}


@dataclass
class FitOptions:
    nodes: List[Hashable]
    min_zoom_level: float = SMALLEST_ZOOM_LEVEL
    max_zoom_level: float = 1.0
    extra: Dict[str, Any] = field(default_factory=dict)


@dataclass
class FitResult:
    center: Tuple[float, float]
    zoom_level: float


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool) and not math.isnan(value)


def normalize_fit_options(options: Optional[Mapping[str, Any]], all_node_ids: Sequence[Hashable]) -> FitOptions:
    """
    Fill in defaults and validate fit options.

    Args:
        options: Raw options (`nodes`, `minZoomLevel`, `maxZoomLevel`); None
            means all defaults. Other keys are passed through in `extra`.
        all_node_ids: Used when `nodes` is missing or empty.

    Returns:
        The normalized options.

    Raises:
        TypeError: If `nodes` is not a list.
        ValueError: If `min_zoom_level` is not a positive number or
            `max_zoom_level` is not a number >= `min_zoom_level`.
    """
    values: Dict[str, Any] = {
        "nodes": list(all_node_ids),
        "min_zoom_level": SMALLEST_ZOOM_LEVEL,
        "max_zoom_level": 1.0,
    }
    extra: Dict[str, Any] = {}
    for key, value in (options or {}).items():
        if key in _ALIASES:
            values[_ALIASES[key]] = value
        else:
            extra[key] = value

    if not isinstance(values["nodes"], list):
        raise TypeError("Nodes has to be a list of ids.")
    if not values["nodes"]:
        values["nodes"] = list(all_node_ids)

    min_zoom = values["min_zoom_level"]
    if not (_is_number(min_zoom) and min_zoom > 0):
        raise ValueError("Min zoom level has to be a number higher than zero.")

    max_zoom = values["max_zoom_level"]
    if not (_is_number(max_zoom) and min_zoom <= max_zoom):
        raise ValueError("Max zoom level has to be a number higher than min zoom level.")

    return FitOptions(nodes=values["nodes"], min_zoom_level=min_zoom, max_zoom_level=max_zoom, extra=extra)


def get_range(positions: Iterable[Tuple[float, float]]) -> Optional[Tuple[float, float, float, float]]:
    """Bounding box `(min_x, max_x, min_y, max_y)`, or None without positions."""
    xs, ys = [], []
    for x, y in positions:
        xs.append(x)
        ys.append(y)
    if not xs:
        return None
    return min(xs), max(xs), min(ys), max(ys)


def compute_fit(
    positions: Iterable[Tuple[float, float]],
    options: FitOptions,
    width: float,
    height: float,
) -> FitResult:
    """
    Centre and zoom level that fit `positions` into a `width` x `height` viewport.

    A margin of 10 % is kept around the bounding box. The zoom level is
    clamped to the option limits; a zero-sized viewport yields zoom 1.
    """
    bounds = get_range(positions)
    if bounds is None:
        center = (0.0, 0.0)
        x_distance = y_distance = 0.0
    else:
        min_x, max_x, min_y, max_y = bounds
        center = (0.5 * (min_x + max_x), 0.5 * (min_y + max_y))
        x_distance = abs(max_x - min_x) * FIT_MARGIN
        y_distance = abs(max_y - min_y) * FIT_MARGIN

    if width == 0 or height == 0:
        zoom = 1.0
    else:
        x_zoom = width / x_distance if x_distance > 0 else math.inf
        y_zoom = height / y_distance if y_distance > 0 else math.inf
        zoom = min(x_zoom, y_zoom)

    zoom = min(max(zoom, options.min_zoom_level), options.max_zoom_level)
    logger.debug(f"Fit: centre {center}, zoom {zoom:.4g}")
    return FitResult(center=center, zoom_level=zoom)
