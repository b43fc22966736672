"""Task dispatcher: the boundary between callers and the computation kernel.

Decodes a task message, validates its payload, runs the matching kernel
function to completion and answers with exactly one terminal response
(``result`` or ``error``) carrying the request id. Interim ``progress``
responses may be emitted before it.

Failures never escape ``dispatch``: unknown task types, malformed
payloads, cancellations and kernel exceptions all become ``error``
responses, and the dispatcher stays usable for the next task.
"""

from __future__ import annotations

import time
from collections.abc import Callable
from typing import Any

from calcengine.cancellation import CancelToken
from calcengine.config import EngineSettings
from calcengine.exceptions import EngineError, UnknownTaskTypeError
from calcengine.kernel import (
    aggregate_price_data,
    calculate_bollinger_bands,
    calculate_ma,
    calculate_rsi,
    filter_large_dataset,
    sort_large_array,
)
from calcengine.logging import get_logger, task_context
from calcengine.models import TaskRequest, TaskResponse, TaskType
from calcengine.payloads import (
    AggregatePayload,
    BollingerPayload,
    FilterPayload,
    MAPayload,
    RSIPayload,
    SortPayload,
    parse_payload,
)

logger = get_logger(__name__)

Emit = Callable[[TaskResponse], None]
Progress = Callable[[float], None]
Handler = Callable[[Any, CancelToken | None, Progress], Any]


class TaskDispatcher:
    """Routes task messages to kernel functions through a fixed handler table.

    Args:
        settings: Kernel tuning (sort thresholds, indicator defaults).
        emit: Optional sink receiving every response, progress included,
            in the order produced.
    """

    def __init__(
        self,
        settings: EngineSettings | None = None,
        emit: Emit | None = None,
    ) -> None:
        self._settings = settings or EngineSettings()
        self._emit = emit
        self._handlers: dict[TaskType, Handler] = {
            TaskType.CALCULATE_MA: self._calculate_ma,
            TaskType.CALCULATE_RSI: self._calculate_rsi,
            TaskType.CALCULATE_BOLLINGER_BANDS: self._calculate_bollinger_bands,
            TaskType.SORT_LARGE_ARRAY: self._sort_large_array,
            TaskType.FILTER_LARGE_DATASET: self._filter_large_dataset,
            TaskType.AGGREGATE_PRICE_DATA: self._aggregate_price_data,
        }

    @property
    def task_types(self) -> list[TaskType]:
        """Task types this dispatcher can answer."""
        return list(self._handlers)

    def dispatch(
        self,
        message: TaskRequest | dict,
        token: CancelToken | None = None,
    ) -> TaskResponse:
        """Run one task and return its terminal response.

        Args:
            message: A TaskRequest or a raw ``{id, type, payload}`` mapping.
            token: Optional cancel token threaded into long-running kernels.

        Returns:
            The terminal TaskResponse. It has also been passed to ``emit``.
        """
        try:
            request = (
                message if isinstance(message, TaskRequest) else TaskRequest.from_message(message)
            )
        except EngineError as exc:
            task_id = message.get("id") if isinstance(message, dict) else None
            response = TaskResponse.failed(task_id if isinstance(task_id, str) else "", str(exc))
            logger.warning("task_message_rejected", error=str(exc))
            self._send(response)
            return response

        with task_context(request.id, request.type):
            response = self._execute(request, token)
            self._send(response)
        return response

    def _execute(self, request: TaskRequest, token: CancelToken | None) -> TaskResponse:
        started = time.perf_counter()
        try:
            handler = self._resolve(request.type)

            def report(fraction: float) -> None:
                self._send(TaskResponse.in_progress(request.id, fraction))

            result = handler(request.payload, token, report)
        except EngineError as exc:
            logger.warning("task_failed", error=str(exc))
            return TaskResponse.failed(request.id, str(exc))
        except Exception as exc:
            response = TaskResponse.failed(request.id, str(exc) or type(exc).__name__)
            logger.warning("task_failed", error=response.error, exc_info=True)
            return response

        logger.debug(
            "task_completed",
            duration_ms=round((time.perf_counter() - started) * 1000, 3),
        )
        return TaskResponse.ok(request.id, result)

    def _resolve(self, raw_type: str) -> Handler:
        try:
            return self._handlers[TaskType(raw_type)]
        except (ValueError, KeyError):
            raise UnknownTaskTypeError(raw_type) from None

    def _send(self, response: TaskResponse) -> None:
        if self._emit is None:
            return
        try:
            self._emit(response)
        except Exception:
            logger.warning(
                "response_emit_failed",
                response_type=response.type.value,
                exc_info=True,
            )

    # -- handlers -----------------------------------------------------------

    def _calculate_ma(self, payload: Any, token: CancelToken | None, progress: Progress) -> Any:
        p = parse_payload(TaskType.CALCULATE_MA.value, MAPayload, payload)
        return calculate_ma(p.data, p.period)

    def _calculate_rsi(self, payload: Any, token: CancelToken | None, progress: Progress) -> Any:
        p = parse_payload(TaskType.CALCULATE_RSI.value, RSIPayload, payload)
        period = p.period if p.period is not None else self._settings.default_rsi_period
        return calculate_rsi(p.data, period)

    def _calculate_bollinger_bands(
        self, payload: Any, token: CancelToken | None, progress: Progress
    ) -> Any:
        p = parse_payload(TaskType.CALCULATE_BOLLINGER_BANDS.value, BollingerPayload, payload)
        period = p.period if p.period is not None else self._settings.default_bollinger_period
        std_dev = (
            p.std_dev if p.std_dev is not None else self._settings.default_bollinger_std_dev
        )
        return calculate_bollinger_bands(p.data, period, std_dev)

    def _sort_large_array(
        self, payload: Any, token: CancelToken | None, progress: Progress
    ) -> Any:
        p = parse_payload(TaskType.SORT_LARGE_ARRAY.value, SortPayload, payload)
        return sort_large_array(
            p.data,
            p.comparator,
            direct_threshold=self._settings.sort_direct_threshold,
            chunk_size=self._settings.sort_chunk_size,
            token=token,
            progress=progress,
        )

    def _filter_large_dataset(
        self, payload: Any, token: CancelToken | None, progress: Progress
    ) -> Any:
        p = parse_payload(TaskType.FILTER_LARGE_DATASET.value, FilterPayload, payload)
        return filter_large_dataset(p.data, p.predicate, token=token)

    def _aggregate_price_data(
        self, payload: Any, token: CancelToken | None, progress: Progress
    ) -> Any:
        p = parse_payload(TaskType.AGGREGATE_PRICE_DATA.value, AggregatePayload, payload)
        return aggregate_price_data(p.points(), p.interval, token=token)
