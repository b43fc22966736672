"""Technical indicators over float64 price series (pure math, no I/O).

All functions return a list with one entry per input value. Positions
without enough history hold ``nan``.
"""

import math
from typing import Any

import numpy as np
from numpy.lib.stride_tricks import sliding_window_view

from calcengine.exceptions import InvalidPayloadError
from calcengine.kernel.series import to_series
from calcengine.models import BollingerBands

_BLOCK_ELEMENTS = 1 << 18


def _validate_period(period: Any) -> int:
    # bool is an int subclass; reject it explicitly
    if isinstance(period, bool) or not isinstance(period, (int, np.integer)):
        raise InvalidPayloadError(f"period must be an integer, got {period!r}")
    if period < 1:
        raise InvalidPayloadError(f"period must be >= 1, got {period}")
    return int(period)


def _rolling_mean(arr: np.ndarray, period: int) -> np.ndarray:
    result = np.full(len(arr), np.nan)
    if period <= len(arr):
        result[period - 1 :] = sliding_window_view(arr, period).mean(axis=1)
    return result


def calculate_ma(data: Any, period: int) -> list[float]:
    """Simple moving average.

    Args:
        data: Numeric series (see ``to_series`` for accepted forms).
        period: Window length, >= 1.

    Returns:
        List of len(data) values; the first ``period - 1`` are nan. A period
        longer than the series yields all nan.
    """
    period = _validate_period(period)
    return _rolling_mean(to_series(data), period).tolist()


def _rsi_value(avg_gain: float, avg_loss: float) -> float:
    # No losses in the window: fully overbought
    if avg_loss == 0:
        return 100.0
    return 100.0 - 100.0 / (1.0 + avg_gain / avg_loss)


def calculate_rsi(data: Any, period: int = 14) -> list[float]:
    """Relative Strength Index with Wilder smoothing.

    Seeds the average gain/loss with the simple mean of the first ``period``
    deltas, then applies ``avg = (avg * (period - 1) + current) / period``
    for each later delta.

    Args:
        data: Price series.
        period: Lookback, >= 1. Defaults to 14.

    Returns:
        List of len(data) values in [0, 100]; the first ``period`` are nan.
        Series shorter than ``period + 1`` yield all nan.
    """
    period = _validate_period(period)
    prices = to_series(data)
    n = len(prices)
    result = [math.nan] * n
    if n < period + 1:
        return result

    deltas = np.diff(prices)
    gains = np.where(deltas > 0, deltas, 0.0)
    losses = np.where(deltas < 0, -deltas, 0.0)

    avg_gain = float(gains[:period].sum()) / period
    avg_loss = float(losses[:period].sum()) / period
    result[period] = _rsi_value(avg_gain, avg_loss)

    for i in range(period, len(deltas)):
        avg_gain = (avg_gain * (period - 1) + float(gains[i])) / period
        avg_loss = (avg_loss * (period - 1) + float(losses[i])) / period
        result[i + 1] = _rsi_value(avg_gain, avg_loss)

    return result


def _rolling_deviation(windows: np.ndarray, centre: np.ndarray) -> np.ndarray:
    # Squared deviations are built one row block at a time to bound peak memory
    rows, period = windows.shape
    step = max(1, _BLOCK_ELEMENTS // period)
    sd = np.empty(rows)
    for start in range(0, rows, step):
        block = windows[start : start + step]
        deviations = block - centre[start : start + step, None]
        np.square(deviations, out=deviations)
        sd[start : start + step] = deviations.sum(axis=1)
    sd /= period
    return np.sqrt(sd, out=sd)


def calculate_bollinger_bands(
    data: Any,
    period: int = 20,
    std_dev: float = 2.0,
) -> BollingerBands:
    """Bollinger Bands around a simple moving average.

    The band width uses the population standard deviation of each trailing
    window, measured around that window's moving average.

    Args:
        data: Price series.
        period: Window length, >= 1. Defaults to 20.
        std_dev: Band multiplier, finite and >= 0. Defaults to 2.

    Returns:
        BollingerBands with ``middle``, ``upper`` and ``lower`` series.
    """
    period = _validate_period(period)
    if isinstance(std_dev, bool) or not isinstance(std_dev, (int, float)):
        raise InvalidPayloadError(f"stdDev must be a number, got {std_dev!r}")
    if not math.isfinite(std_dev) or std_dev < 0:
        raise InvalidPayloadError(f"stdDev must be finite and >= 0, got {std_dev}")

    arr = to_series(data)
    middle = _rolling_mean(arr, period)
    upper = np.full(len(arr), np.nan)
    lower = np.full(len(arr), np.nan)

    if period <= len(arr):
        windows = sliding_window_view(arr, period)
        centre = middle[period - 1 :]
        sd = _rolling_deviation(windows, centre)
        upper[period - 1 :] = centre + std_dev * sd
        lower[period - 1 :] = centre - std_dev * sd

    return BollingerBands(
        middle=middle.tolist(),
        upper=upper.tolist(),
        lower=lower.tolist(),
    )
