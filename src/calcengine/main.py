"""Entry point for running the engine as a standalone worker process.

Speaks JSON lines over stdio: one task message per stdin line, one
response per stdout line (progress responses first, then exactly one
terminal response per task). Tasks run one at a time, in arrival order.
Missing indicator values (NaN) are written as ``null``.

Logs go to stderr.
"""

import json
import math
import sys
from typing import Any, TextIO

from calcengine.config import AppSettings, EngineSettings
from calcengine.dispatcher import TaskDispatcher
from calcengine.logging import get_logger, setup_logging
from calcengine.models import TaskResponse


def _jsonable(value: Any) -> Any:
    if isinstance(value, float):
        return value if math.isfinite(value) else None
    if isinstance(value, dict):
        return {k: _jsonable(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_jsonable(v) for v in value]
    return value


def encode_response(response: TaskResponse) -> str:
    """Serialize a response as one JSON line (without the newline)."""
    return json.dumps(_jsonable(response.to_message()), allow_nan=False, default=str)


def serve(
    stdin: TextIO,
    stdout: TextIO,
    settings: EngineSettings | None = None,
) -> int:
    """Answer task messages from ``stdin`` until EOF.

    Args:
        stdin: Source of JSON task messages, one per line.
        stdout: Sink for JSON responses, one per line.
        settings: Kernel tuning.

    Returns:
        Number of tasks answered.
    """
    logger = get_logger("calcengine.main")

    def emit(response: TaskResponse) -> None:
        stdout.write(encode_response(response) + "\n")
        stdout.flush()

    dispatcher = TaskDispatcher(settings, emit=emit)
    answered = 0

    for line in stdin:
        if not line.strip():
            continue
        try:
            message = json.loads(line)
        except json.JSONDecodeError as exc:
            logger.warning("undecodable_task_message", error=str(exc))
            emit(TaskResponse.failed("", f"Invalid JSON message: {exc.msg}"))
            answered += 1
            continue
        dispatcher.dispatch(message)
        answered += 1

    return answered


def main() -> None:
    """Synchronous entry point."""
    settings = AppSettings()
    setup_logging(settings.log_level)
    logger = get_logger("calcengine.main")
    logger.info(
        "compute_worker_started",
        sort_direct_threshold=settings.engine.sort_direct_threshold,
        sort_chunk_size=settings.engine.sort_chunk_size,
    )
    answered = serve(sys.stdin, sys.stdout, settings.engine)
    logger.info("compute_worker_stopped", tasks_answered=answered)


if __name__ == "__main__":
    main()
