"""Message and record types exchanged with the computation engine.

Numeric values are plain floats (IEEE-754 double precision). Missing
indicator values are represented as ``float("nan")``.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, is_dataclass
from enum import Enum
from typing import Any

from calcengine.exceptions import InvalidPayloadError


class TaskType(str, Enum):
    """Recognized task kinds."""

    CALCULATE_MA = "calculateMA"
    CALCULATE_RSI = "calculateRSI"
    CALCULATE_BOLLINGER_BANDS = "calculateBollingerBands"
    SORT_LARGE_ARRAY = "sortLargeArray"
    FILTER_LARGE_DATASET = "filterLargeDataset"
    AGGREGATE_PRICE_DATA = "aggregatePriceData"


class ResponseType(str, Enum):
    """Response tags. Only RESULT and ERROR are terminal."""

    RESULT = "result"
    ERROR = "error"
    PROGRESS = "progress"


@dataclass
class PricePoint:
    """A single price/volume sample."""

    timestamp: int  # epoch ms
    price: float
    volume: float


@dataclass
class OHLCVBar:
    """An aggregated OHLCV bar for one time bucket."""

    timestamp: int  # bucket start
    open: float
    high: float
    low: float
    close: float
    volume: float


@dataclass
class BollingerBands:
    """Three equal-length band series."""

    middle: list[float]
    upper: list[float]
    lower: list[float]


@dataclass
class TaskRequest:
    """One unit of work submitted to the engine.

    ``type`` is kept as the raw string so unrecognized kinds reach the
    dispatcher and are answered with an error response.
    """

    id: str
    type: str
    payload: Any = None

    @classmethod
    def from_message(cls, message: Any) -> TaskRequest:
        """Decode a ``{id, type, payload}`` mapping.

        Raises:
            InvalidPayloadError: If the message is not a mapping or lacks a string id.
        """
        if not isinstance(message, dict):
            raise InvalidPayloadError("Task message must be an object")
        task_id = message.get("id")
        if not isinstance(task_id, str):
            raise InvalidPayloadError("Task message requires a string 'id'")
        raw_type = message.get("type")
        task_type = raw_type.value if isinstance(raw_type, TaskType) else str(raw_type)
        return cls(id=task_id, type=task_type, payload=message.get("payload"))


@dataclass
class TaskResponse:
    """A response correlated to its request by ``id``."""

    id: str
    type: ResponseType
    result: Any = None
    error: str | None = None
    progress: float | None = None

    @classmethod
    def ok(cls, task_id: str, result: Any) -> TaskResponse:
        return cls(id=task_id, type=ResponseType.RESULT, result=result)

    @classmethod
    def failed(cls, task_id: str, error: str) -> TaskResponse:
        return cls(id=task_id, type=ResponseType.ERROR, error=error)

    @classmethod
    def in_progress(cls, task_id: str, progress: float) -> TaskResponse:
        return cls(id=task_id, type=ResponseType.PROGRESS, progress=progress)

    @property
    def is_terminal(self) -> bool:
        return self.type is not ResponseType.PROGRESS

    def to_message(self) -> dict[str, Any]:
        """Render as a plain dict carrying only the fields of this response type."""
        message: dict[str, Any] = {"id": self.id, "type": self.type.value}
        if self.type is ResponseType.RESULT:
            message["result"] = _plain(self.result)
        elif self.type is ResponseType.ERROR:
            message["error"] = self.error
        else:
            message["progress"] = self.progress
        return message


def _plain(value: Any) -> Any:
    if is_dataclass(value) and not isinstance(value, type):
        return asdict(value)
    if isinstance(value, list):
        return [_plain(v) for v in value]
    return value
