"""
Normalization at the persistence boundary.

Stored documents may come from older, buggier writers: fields can be missing,
null or of the wrong type, and timestamps can be datetimes, ISO strings,
epoch numbers or {"seconds": ...} maps. Everything read from the database
goes through a DocumentSchema so callers always see a complete document
with timestamps as epoch milliseconds.
"""

import math
import time
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional, Tuple, Union

# Epoch values at or above this are taken as milliseconds, below as seconds
_MILLIS_THRESHOLD = 100_000_000_000


def now_millis() -> int:
    return int(time.time() * 1000)


def _datetime_millis(value: datetime) -> int:
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return int(value.timestamp() * 1000)


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _number_millis(value: Union[int, float]) -> int:
    if not math.isfinite(value):
        raise ValueError(f"Not a finite timestamp: {value}")
    if abs(value) >= _MILLIS_THRESHOLD:
        return int(value)
    return int(value * 1000)


def _parse(value: Any) -> Optional[int]:
    if isinstance(value, datetime):
        return _datetime_millis(value)
    if _is_number(value):
        return _number_millis(value)
    if isinstance(value, dict):
        if "$date" in value:
            return _parse(value["$date"])
        seconds = value.get("seconds", value.get("_seconds"))
        if not _is_number(seconds):
            return None
        nanos = value.get("nanoseconds", value.get("_nanoseconds"))
        if not _is_number(nanos):
            nanos = 0
        millis = seconds * 1000 + nanos // 1_000_000
        if not math.isfinite(millis):
            raise ValueError(f"Not a finite timestamp: {value}")
        return int(millis)
    if isinstance(value, str):
        text = value.strip()
        try:
            return _number_millis(float(text))
        except ValueError:
            pass
        return _datetime_millis(datetime.fromisoformat(text.replace("Z", "+00:00")))
    return None


def parse_epoch_millis(value: Any) -> Optional[int]:
    """Epoch milliseconds for a stored timestamp, or None when it cannot be read."""
    if value is None or isinstance(value, bool):
        return None
    try:
        return _parse(value)
    except (ValueError, OverflowError, TypeError):
        return None


def to_epoch_millis(value: Any, default: Optional[int] = None) -> int:
    """
    Canonical epoch-millisecond value for any stored timestamp shape.

    Missing or unparseable values (including infinities and out-of-range
    dates) become `default`, or the current time when no default is given.
    """
    millis = parse_epoch_millis(value)
    if millis is None:
        return default if default is not None else now_millis()
    return millis


class DocumentSchema:
    """
    Field list with defaults, built up with chained calls:

        schema = (DocumentSchema("conversation")
                  .field("title", "Untitled Conversation", str)
                  .field("messages", list, list)
                  .timestamp("createdAt"))

    A default may be a value or a zero-argument callable (use `list`, not
    `[]`, for mutable defaults). When `kind` is given, stored values of any
    other type are replaced by the default as well. A `required` field also
    counts as missing when it is empty; a field whose default is None is
    optional and never reported missing.
    """

    def __init__(self, name: str):
        self.name = name
        self._fields: List[Tuple[str, Any, Optional[Union[type, Tuple[type, ...]]], bool]] = []
        self._timestamps: List[str] = []

    def field(
        self,
        name: str,
        default: Any = None,
        kind: Optional[Union[type, Tuple[type, ...]]] = None,
        required: bool = False,
    ) -> "DocumentSchema":
        self._fields.append((name, default, kind, required))
        return self

    def timestamp(self, name: str) -> "DocumentSchema":
        self._timestamps.append(name)
        return self

    @staticmethod
    def _resolve(default: Any) -> Any:
        return default() if callable(default) else default

    def default_for(self, name: str, overrides: Optional[Dict[str, Any]] = None) -> Any:
        if overrides and name in overrides:
            return overrides[name]
        for field_name, default, _, _ in self._fields:
            if field_name == name:
                return self._resolve(default)
        if name in self._timestamps:
            return now_millis()
        raise KeyError(name)

    def missing_fields(self, doc: Dict[str, Any]) -> List[str]:
        """Fields that are absent, null, of the wrong type, or unreadable timestamps in `doc`."""
        missing = []
        for name, default, kind, required in self._fields:
            if default is None:
                continue
            value = doc.get(name)
            if value is None or (kind is not None and not isinstance(value, kind)) or (required and not value):
                missing.append(name)
        for name in self._timestamps:
            if parse_epoch_millis(doc.get(name)) is None:
                missing.append(name)
        return missing

    def normalize(self, doc: Dict[str, Any], defaults: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        """
        Complete, well-typed copy of `doc`. `_id` is exposed as a string `id`;
        `defaults` overrides the schema defaults for this call (e.g. the
        acting user's id).
        """
        result: Dict[str, Any] = {}
        if doc.get("_id") is not None:
            result["id"] = str(doc["_id"])
        elif doc.get("id") is not None:
            result["id"] = str(doc["id"])

        for name, default, kind, _ in self._fields:
            value = doc.get(name)
            if value is None or (kind is not None and not isinstance(value, kind)):
                value = defaults[name] if defaults and name in defaults else self._resolve(default)
            result[name] = value

        for name in self._timestamps:
            result[name] = to_epoch_millis(doc.get(name))

        return result


def normalize_many(
    schema: DocumentSchema,
    docs,
    defaults: Optional[Dict[str, Any]] = None,
    on_error: Optional[Callable[[Dict[str, Any], Exception], Dict[str, Any]]] = None,
) -> List[Dict[str, Any]]:
    """Normalize an iterable of documents; a document that cannot be normalized is replaced by `on_error(doc, exc)`."""
    results = []
    for doc in docs:
        try:
            results.append(schema.normalize(doc, defaults=defaults))
        except Exception as e:
            if on_error is None:
                raise
            results.append(on_error(doc, e))
    return results
