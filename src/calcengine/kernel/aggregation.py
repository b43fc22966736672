"""OHLCV aggregation of raw price samples into fixed-width time buckets."""

import math
from collections.abc import Iterable

from calcengine.cancellation import CancelToken, check
from calcengine.exceptions import InvalidPayloadError
from calcengine.models import OHLCVBar, PricePoint

#: Samples processed between cancellation checks.
CHECK_INTERVAL = 10_000


def bucket_key(timestamp: int, interval: int | float) -> int | float:
    """Start of the bucket containing ``timestamp``: floor(timestamp / interval) * interval."""
    if isinstance(interval, int):
        return (timestamp // interval) * interval
    return math.floor(timestamp / interval) * interval


def aggregate_price_data(
    prices: Iterable[PricePoint],
    interval: int | float,
    *,
    token: CancelToken | None = None,
) -> list[OHLCVBar]:
    """Group samples into OHLCV bars.

    Input need not be sorted. Within a bucket, open and close are the first
    and last samples in input order; high and low are the price extremes;
    volume is the sum of sample volumes.

    Args:
        prices: Price samples.
        interval: Bucket width in timestamp units, > 0.
        token: Optional cancel token.

    Returns:
        One bar per non-empty bucket, sorted by bucket timestamp ascending.
    """
    if isinstance(interval, bool) or not isinstance(interval, (int, float)):
        raise InvalidPayloadError(f"interval must be a number, got {interval!r}")
    if not math.isfinite(interval) or interval <= 0:
        raise InvalidPayloadError(f"interval must be > 0, got {interval}")

    bars: dict[int | float, OHLCVBar] = {}
    for n, point in enumerate(prices):
        if n % CHECK_INTERVAL == 0:
            check(token)
        key = bucket_key(point.timestamp, interval)
        bar = bars.get(key)
        if bar is None:
            bars[key] = OHLCVBar(
                timestamp=key,
                open=point.price,
                high=point.price,
                low=point.price,
                close=point.price,
                volume=point.volume,
            )
            continue
        bar.high = max(bar.high, point.price)
        bar.low = min(bar.low, point.price)
        bar.close = point.price
        bar.volume += point.volume

    return [bars[key] for key in sorted(bars)]
