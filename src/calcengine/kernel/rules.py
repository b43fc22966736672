"""Closed vocabulary of sort comparators and filter predicates.

Callers either pass a ready-made Python callable (in-process use) or a
tagged spec dict (message use). Specs are resolved through fixed lookup
tables; caller-supplied code is never compiled or evaluated.

Comparator specs::

    {"kind": "natural"}
    {"kind": "reverse"}
    {"kind": "field", "field": "price", "descending": true}

Predicate specs::

    {"op": "gt", "value": 10}                      # also gte, lt, lte, eq, ne
    {"op": "between", "low": 1, "high": 5, "field": "price"}
    {"op": "finite"}
    {"op": "index_range", "start": 0, "stop": 100}
    {"op": "every_nth", "step": 5, "offset": 0}
    {"op": "all", "predicates": [...]}             # also any
    {"op": "not", "predicate": {...}}
"""

import math
import operator
from collections.abc import Callable
from typing import Any

from calcengine.exceptions import InvalidPayloadError

Comparator = Callable[[Any, Any], int]
Predicate = Callable[[Any, int], bool]

_MISSING = object()


def natural_order(a: Any, b: Any) -> int:
    """Three-way comparison using the items' own ordering."""
    if a < b:
        return -1
    if b < a:
        return 1
    return 0


def _read_field(item: Any, field: str) -> Any:
    if isinstance(item, dict):
        value = item.get(field, _MISSING)
    else:
        value = getattr(item, field, _MISSING)
    if value is _MISSING:
        raise InvalidPayloadError(f"Item has no field '{field}'")
    return value


def _require(spec: dict, key: str, kind: str) -> Any:
    if key not in spec:
        raise InvalidPayloadError(f"'{kind}' requires '{key}'")
    return spec[key]


# ---------------------------------------------------------------------------
# Comparators
# ---------------------------------------------------------------------------


def _reverse_comparator(spec: dict) -> Comparator:
    return lambda a, b: natural_order(b, a)


def _field_comparator(spec: dict) -> Comparator:
    field = _require(spec, "field", "field")
    if not isinstance(field, str):
        raise InvalidPayloadError("'field' comparator requires a string 'field'")
    descending = bool(spec.get("descending", False))

    def compare(a: Any, b: Any) -> int:
        result = natural_order(_read_field(a, field), _read_field(b, field))
        return -result if descending else result

    return compare


_COMPARATORS: dict[str, Callable[[dict], Comparator]] = {
    "natural": lambda spec: natural_order,
    "reverse": _reverse_comparator,
    "field": _field_comparator,
}


def build_comparator(spec: Any) -> Comparator | None:
    """Resolve a comparator argument.

    Args:
        spec: None (natural ordering), a callable ``(a, b) -> int``, or a
            comparator spec dict.

    Returns:
        A comparator callable, or None for natural ordering.

    Raises:
        InvalidPayloadError: For unknown kinds or malformed specs.
    """
    if spec is None or callable(spec):
        return spec
    if not isinstance(spec, dict):
        raise InvalidPayloadError(
            f"comparator must be a callable or a spec object, got {type(spec).__name__}"
        )
    kind = spec.get("kind", "natural")
    builder = _COMPARATORS.get(kind)
    if builder is None:
        raise InvalidPayloadError(
            f"Unknown comparator kind '{kind}' (expected one of {sorted(_COMPARATORS)})"
        )
    if kind == "natural":
        return None
    return builder(spec)


# ---------------------------------------------------------------------------
# Predicates
# ---------------------------------------------------------------------------

_BINARY_OPS: dict[str, Callable[[Any, Any], bool]] = {
    "gt": operator.gt,
    "gte": operator.ge,
    "lt": operator.lt,
    "lte": operator.le,
    "eq": operator.eq,
    "ne": operator.ne,
}


def _subject(spec: dict) -> Callable[[Any], Any]:
    field = spec.get("field")
    if field is None:
        return lambda item: item
    if not isinstance(field, str):
        raise InvalidPayloadError("'field' must be a string")
    return lambda item: _read_field(item, field)


def _binary_predicate(op: str, spec: dict) -> Predicate:
    compare = _BINARY_OPS[op]
    value = _require(spec, "value", op)
    subject = _subject(spec)
    return lambda item, index: bool(compare(subject(item), value))


def _between_predicate(spec: dict) -> Predicate:
    low = _require(spec, "low", "between")
    high = _require(spec, "high", "between")
    subject = _subject(spec)
    return lambda item, index: bool(low <= subject(item) <= high)


def _finite_predicate(spec: dict) -> Predicate:
    subject = _subject(spec)

    def predicate(item: Any, index: int) -> bool:
        value = subject(item)
        return isinstance(value, (int, float)) and math.isfinite(value)

    return predicate


def _int_param(spec: dict, key: str, op: str, default: Any = _MISSING) -> int | None:
    value = spec.get(key, default)
    if value is _MISSING:
        raise InvalidPayloadError(f"'{op}' requires '{key}'")
    if value is None:
        return None
    if isinstance(value, bool) or not isinstance(value, int):
        raise InvalidPayloadError(f"'{op}' parameter '{key}' must be an integer")
    return value


def _index_range_predicate(spec: dict) -> Predicate:
    start = _int_param(spec, "start", "index_range", default=0)
    stop = _int_param(spec, "stop", "index_range", default=None)
    if stop is None:
        return lambda item, index: index >= start
    return lambda item, index: start <= index < stop


def _every_nth_predicate(spec: dict) -> Predicate:
    step = _int_param(spec, "step", "every_nth")
    offset = _int_param(spec, "offset", "every_nth", default=0)
    if step is None or step < 1:
        raise InvalidPayloadError("'every_nth' requires 'step' >= 1")
    return lambda item, index: index >= offset and (index - offset) % step == 0


def _children(spec: dict, op: str) -> list[Predicate]:
    children = _require(spec, "predicates", op)
    if not isinstance(children, list):
        raise InvalidPayloadError(f"'{op}' requires a list of 'predicates'")
    return [build_predicate(child) for child in children]


def _all_predicate(spec: dict) -> Predicate:
    children = _children(spec, "all")
    return lambda item, index: all(p(item, index) for p in children)


def _any_predicate(spec: dict) -> Predicate:
    children = _children(spec, "any")
    return lambda item, index: any(p(item, index) for p in children)


def _not_predicate(spec: dict) -> Predicate:
    inner = build_predicate(_require(spec, "predicate", "not"))
    return lambda item, index: not inner(item, index)


_PREDICATES: dict[str, Callable[[dict], Predicate]] = {
    **{op: (lambda spec, op=op: _binary_predicate(op, spec)) for op in _BINARY_OPS},
    "between": _between_predicate,
    "finite": _finite_predicate,
    "index_range": _index_range_predicate,
    "every_nth": _every_nth_predicate,
    "all": _all_predicate,
    "any": _any_predicate,
    "not": _not_predicate,
}


def build_predicate(spec: Any) -> Predicate:
    """Resolve a predicate argument.

    Args:
        spec: A callable ``(item, index) -> bool`` or a predicate spec dict.

    Raises:
        InvalidPayloadError: For a missing predicate, unknown ops or malformed specs.
    """
    if callable(spec):
        return spec
    if not isinstance(spec, dict):
        raise InvalidPayloadError(
            f"predicate must be a callable or a spec object, got {type(spec).__name__}"
        )
    op = spec.get("op")
    builder = _PREDICATES.get(op)
    if builder is None:
        raise InvalidPayloadError(
            f"Unknown predicate op '{op}' (expected one of {sorted(_PREDICATES)})"
        )
    return builder(spec)
