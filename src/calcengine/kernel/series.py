"""Numeric series decoding.

Every indicator works on a private float64 copy of its input. Inputs may be
plain sequences, numpy arrays, raw float64 buffers, or a reference to a
shared-memory block owned by the caller. Shared blocks are only read: the
engine attaches, copies the values out, and closes its handle before the
task continues.
"""

from collections.abc import Sequence
from dataclasses import dataclass
from multiprocessing import shared_memory
from typing import Any

import numpy as np

from calcengine.exceptions import InvalidPayloadError

_FLOAT64_SIZE = np.dtype(np.float64).itemsize


@dataclass(frozen=True)
class SharedSeries:
    """Reference to ``length`` float64 values in a named shared-memory block."""

    name: str
    length: int

    @classmethod
    def from_message(cls, message: dict) -> "SharedSeries":
        """Decode the ``{"shm": name, "length": n}`` wire form."""
        name = message.get("shm")
        length = message.get("length")
        if not isinstance(name, str) or not isinstance(length, int) or length < 0:
            raise InvalidPayloadError(
                "Shared series requires a string 'shm' name and a non-negative integer 'length'"
            )
        return cls(name=name, length=length)


def share_series(values: Sequence[float]) -> tuple[shared_memory.SharedMemory, SharedSeries]:
    """Copy values into a new shared-memory block.

    Caller-side helper. The caller owns the returned block and must
    ``close()`` and ``unlink()`` it once the task has answered.
    """
    arr = np.asarray(values, dtype=np.float64)
    shm = shared_memory.SharedMemory(create=True, size=max(arr.nbytes, _FLOAT64_SIZE))
    view = np.ndarray(arr.shape, dtype=np.float64, buffer=shm.buf)
    view[:] = arr
    del view
    return shm, SharedSeries(name=shm.name, length=len(arr))


def _read_shared(ref: SharedSeries) -> np.ndarray:
    try:
        shm = shared_memory.SharedMemory(name=ref.name)
    except FileNotFoundError as exc:
        raise InvalidPayloadError(f"Shared series '{ref.name}' does not exist") from exc
    try:
        if ref.length * _FLOAT64_SIZE > shm.size:
            raise InvalidPayloadError(
                f"Shared series '{ref.name}' holds fewer than {ref.length} values"
            )
        view = np.ndarray((ref.length,), dtype=np.float64, buffer=shm.buf)
        values = view.copy()
        del view
    finally:
        shm.close()
    return values


def to_series(source: Any) -> np.ndarray:
    """Convert any supported numeric input into a fresh float64 array.

    Raises:
        InvalidPayloadError: If the input cannot be read as a 1-D numeric series.
    """
    if isinstance(source, SharedSeries):
        return _read_shared(source)
    if isinstance(source, dict) and "shm" in source:
        return _read_shared(SharedSeries.from_message(source))
    if isinstance(source, (bytes, bytearray, memoryview)):
        raw = memoryview(source).cast("B")
        if raw.nbytes % _FLOAT64_SIZE:
            raise InvalidPayloadError("Buffer length is not a multiple of 8 bytes")
        return np.frombuffer(raw, dtype=np.float64).copy()
    if isinstance(source, (str, dict)) or source is None:
        raise InvalidPayloadError(
            f"Expected a numeric series, got {type(source).__name__}"
        )

    try:
        arr = np.array(source, dtype=np.float64)
    except (TypeError, ValueError) as exc:
        raise InvalidPayloadError(f"Series contains non-numeric values: {exc}") from exc

    if arr.ndim != 1:
        raise InvalidPayloadError(f"Expected a 1-D series, got {arr.ndim} dimensions")
    return arr
