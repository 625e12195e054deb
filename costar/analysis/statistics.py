"""Pure functions over star-history series.

A series is a sequence of :class:`~costar.analysis.models.TimeSeriesPoint`
sorted ascending by timestamp, where ``y`` is the cumulative star count. The
functions never mutate their input and never raise on sparse data: an
unanswerable question yields ``None`` (or ``0`` for interpolation) and a log
line instead.
"""

from __future__ import annotations

import bisect
import dataclasses
import math
import typing as typ

from costar.common.time import SECONDS_PER_DAY
from costar.logging import get_logger, log_debug, log_info, log_warning

if typ.TYPE_CHECKING:
    import collections.abc as cabc

    from .models import TimeSeriesPoint

logger = get_logger(__name__)

type Series = cabc.Sequence[TimeSeriesPoint]
type Range = tuple[float | None, float | None]

_UNBOUNDED: Range = (None, None)
_MIN_SLOPE_POINTS = 2
_MIN_INTERPOLATION_POINTS = 10
# extrapolation past the last point uses this many trailing points
_EXTRAPOLATION_SPAN = 9


@dataclasses.dataclass(frozen=True, slots=True)
class SeriesBounds:
    """Extremes of a series plus its endpoints."""

    first: TimeSeriesPoint
    last: TimeSeriesPoint
    min_x: int
    max_x: int
    min_y: int
    max_y: int

    @property
    def is_monotonic(self) -> bool:
        """Return True when the endpoints are also the extremes."""
        return (
            self.min_x == self.first.x
            and self.max_x == self.last.x
            and self.min_y == self.first.y
            and self.max_y == self.last.y
        )


def bounds(series: Series, *, check_monotonic: bool = True) -> SeriesBounds:
    """Return the bounding box and endpoints of a non-empty series.

    Parameters
    ----------
    series
        Points sorted ascending by ``x``.
    check_monotonic
        Log when the endpoints are not the extremes. Never raises.

    Raises
    ------
    ValueError
        If ``series`` is empty.

    """
    if not series:
        msg = "bounds() requires at least one point"
        raise ValueError(msg)

    xs = [point.x for point in series]
    ys = [point.y for point in series]
    result = SeriesBounds(
        first=series[0],
        last=series[-1],
        min_x=min(xs),
        max_x=max(xs),
        min_y=min(ys),
        max_y=max(ys),
    )
    if check_monotonic and not result.is_monotonic:
        log_info(logger, "Series is not monotonic: %s", result)
    return result


def clip(
    series: Series,
    x_range: Range = _UNBOUNDED,
    y_range: Range = _UNBOUNDED,
) -> list[TimeSeriesPoint]:
    """Return the points inside the inclusive ranges, preserving order.

    A ``None`` bound leaves that side open.
    """
    x_min, x_max = x_range
    y_min, y_max = y_range
    return [
        point
        for point in series
        if (x_min is None or point.x >= x_min)
        and (x_max is None or point.x <= x_max)
        and (y_min is None or point.y >= y_min)
        and (y_max is None or point.y <= y_max)
    ]


def slope(
    series: Series,
    left: float,
    right: float,
    series_start: float,
    name: str,
) -> float | None:
    """Return stars gained per day over ``[left, right]``.

    The denominator is the window width, not the span of the points inside it,
    so a window with a burst at one end still reports its average rate.

    Parameters
    ----------
    series
        Points sorted ascending by ``x``.
    left, right
        Window bounds in unix seconds.
    series_start
        ``x`` of the first point of the full series.
    name
        Window name used in log lines.

    Returns
    -------
    float | None
        Slope rounded to two decimals, or ``None`` when the window starts
        before the series, holds fewer than two points, spans less than a day,
        or gained less than one star.

    """
    if left < series_start:
        return None

    window = clip(series, (left, right))
    if len(window) < _MIN_SLOPE_POINTS:
        log_debug(logger, "Window %s holds %d points; no slope", name, len(window))
        return None

    window_bounds = bounds(window)
    dx_days = (right - left) / SECONDS_PER_DAY
    dy_stars = window_bounds.max_y - window_bounds.min_y
    if dx_days < 1 or dy_stars < 1:
        log_debug(
            logger,
            "Window %s is degenerate (%.2f days, %d stars); no slope",
            name,
            dx_days,
            dy_stars,
        )
        return None
    return round(dy_stars / dx_days, 2)


def interpolate_linear(
    prev: TimeSeriesPoint, nxt: TimeSeriesPoint, x: float
) -> int:
    """Interpolate (or extrapolate) the line through two points at ``x``."""
    if prev.x == nxt.x:
        return nxt.y
    alpha = (x - prev.x) / (nxt.x - prev.x)
    return math.floor(prev.y * (1 - alpha) + nxt.y * alpha + 0.5)


def interpolate(
    series: Series,
    x: float,
    *,
    name: str = "",
    min_points: int = _MIN_INTERPOLATION_POINTS,
) -> int:
    """Estimate the cumulative star count at ``x``.

    Returns 0 for sparse series and for ``x`` before the first point. Inside
    the series the two bracketing points are interpolated (an exact match
    returns its own value). Past the last point the trend of the trailing
    points is extrapolated.
    """
    if len(series) < min_points:
        log_warning(
            logger,
            "Interpolating %s on %d points; returning 0",
            name or "series",
            len(series),
        )
        return 0

    first = series[0]
    last = series[-1]
    if x < first.x:
        return 0
    if x > last.x:
        anchor = series[-min(_EXTRAPOLATION_SPAN, len(series))]
        return interpolate_linear(anchor, last, x)

    index = bisect.bisect_left(series, x, key=lambda point: point.x)
    match = series[index]
    if match.x == x:
        return match.y
    return interpolate_linear(series[index - 1], match, x)
