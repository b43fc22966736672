"""Payload schemas for each task type.

Payloads are validated with pydantic before any kernel function runs, so a
malformed request fails fast with a message naming the offending field.
Numeric series are decoded into float64 arrays during validation;
comparator and predicate arguments are resolved to callables.
"""

from dataclasses import asdict, is_dataclass
from typing import Any, TypeVar

import numpy as np
from pydantic import AliasChoices, BaseModel, ConfigDict, Field, ValidationError, field_validator

from calcengine.exceptions import InvalidPayloadError
from calcengine.kernel.rules import build_comparator, build_predicate
from calcengine.kernel.series import to_series
from calcengine.models import PricePoint

M = TypeVar("M", bound=BaseModel)


class _Payload(BaseModel):
    model_config = ConfigDict(
        arbitrary_types_allowed=True,
        populate_by_name=True,
        allow_inf_nan=False,
    )


class _SeriesPayload(_Payload):
    data: np.ndarray

    @field_validator("data", mode="before")
    @classmethod
    def _decode_series(cls, value: Any) -> np.ndarray:
        return to_series(value)


class MAPayload(_SeriesPayload):
    period: int = Field(ge=1)


class RSIPayload(_SeriesPayload):
    period: int | None = Field(default=None, ge=1)


class BollingerPayload(_SeriesPayload):
    period: int | None = Field(default=None, ge=1)
    std_dev: float | None = Field(
        default=None,
        ge=0,
        validation_alias=AliasChoices("stdDev", "std_dev"),
    )


class _ItemsPayload(_Payload):
    data: list[Any]

    @field_validator("data", mode="before")
    @classmethod
    def _items(cls, value: Any) -> Any:
        if isinstance(value, np.ndarray):
            return value.tolist()
        return value


class SortPayload(_ItemsPayload):
    comparator: Any = Field(
        default=None,
        validation_alias=AliasChoices("comparator", "compareFn"),
    )

    @field_validator("comparator")
    @classmethod
    def _resolve_comparator(cls, value: Any) -> Any:
        return build_comparator(value)


class FilterPayload(_ItemsPayload):
    predicate: Any = Field(validation_alias=AliasChoices("predicate", "predicateFn"))

    @field_validator("predicate")
    @classmethod
    def _resolve_predicate(cls, value: Any) -> Any:
        return build_predicate(value)


class PricePointModel(_Payload):
    timestamp: int
    price: float
    volume: float = Field(ge=0)

    def to_point(self) -> PricePoint:
        return PricePoint(timestamp=self.timestamp, price=self.price, volume=self.volume)


class AggregatePayload(_Payload):
    prices: list[PricePointModel]
    interval: int | float = Field(gt=0)

    @field_validator("prices", mode="before")
    @classmethod
    def _unwrap_points(cls, value: Any) -> Any:
        if isinstance(value, list):
            return [
                asdict(p) if is_dataclass(p) and not isinstance(p, type) else p
                for p in value
            ]
        return value

    def points(self) -> list[PricePoint]:
        return [p.to_point() for p in self.prices]


def parse_payload(task_type: str, model: type[M], payload: Any) -> M:
    """Validate a raw payload against ``model``.

    Raises:
        InvalidPayloadError: With the task type, field path and reason of the
            first validation failure.
    """
    try:
        return model.model_validate(payload)
    except ValidationError as exc:
        first = exc.errors()[0]
        location = ".".join(str(part) for part in first["loc"]) or "payload"
        raise InvalidPayloadError(
            f"Invalid {task_type} payload: {location}: {first['msg']}"
        ) from exc
