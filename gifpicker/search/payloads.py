"""Readers for Klipy's ``{"result", "data"}`` envelope and the blocks inside it.

Every reader raises ``KlipyPayloadError`` (a ``ValueError``) naming the path of the
offending value. Absent or null blocks read as empty.
"""

from __future__ import annotations

from typing import Any, Dict, List, Tuple

Row = Dict[str, Any]


class KlipyPayloadError(ValueError):
    """Klipy answered with a body the client cannot read."""


def _wrong_type(path: str, expected: str, value: object) -> KlipyPayloadError:
    return KlipyPayloadError(f"{path} should be {expected}, got '{type(value).__name__}'")


def _object(value: object, path: str) -> Row:
    if value is None:
        return {}
    if not isinstance(value, dict):
        raise _wrong_type(path, "an object", value)
    return value


def _rows(value: object, path: str) -> List[Row]:
    if value is None:
        return []
    if not isinstance(value, list):
        raise _wrong_type(path, "a list", value)
    for idx, row in enumerate(value):
        if not isinstance(row, dict):
            raise _wrong_type(f"{path}[{idx}]", "an object", row)
    return value


def to_int(value: object, default: int = 0) -> int:
    if value is None:
        return default
    try:
        return int(value)
    except (TypeError, ValueError):
        return default


def unwrap(payload: object, endpoint: str) -> object:
    """Return ``data`` from the envelope, or raise on ``result: false``."""
    if not isinstance(payload, dict):
        raise _wrong_type(f"Klipy {endpoint} payload", "an object", payload)
    if payload.get("result") is False:
        message = payload.get("message") or payload.get("error")
        detail = f": {message}" if isinstance(message, str) and message else ""
        raise KlipyPayloadError(f"Klipy {endpoint} returned result=false{detail}")
    if "data" not in payload:
        raise KlipyPayloadError(f"Klipy {endpoint} payload has no 'data' field")
    return payload["data"]


def read_page(data: object, context: str, requested_page: int) -> Tuple[List[Row], int, int]:
    """GIF rows, ``total`` and ``current_page`` of a paged block."""
    block = _object(data, f"{context}.data")
    rows = _rows(block.get("data"), f"{context}.data.data")
    return rows, to_int(block.get("total"), 0), to_int(block.get("current_page"), requested_page)


def read_categories(data: object) -> List[Row]:
    block = _object(data, "categories.data")
    return _rows(block.get("categories"), "categories.data.categories")


def read_strings(data: object, context: str) -> List[str]:
    """Autocomplete and suggestion lists; blank entries are dropped."""
    if data is None:
        return []
    if not isinstance(data, list):
        raise _wrong_type(f"{context}.data", "a list", data)
    return [str(value) for value in data if value]


def file_format(row: Row, size: str, kind: str) -> Row:
    """``row.file[size][kind]``, e.g. ``("hd", "gif")``; empty when Klipy omits it."""
    files = _object(row.get("file"), "gif.file")
    variant = _object(files.get(size), f"gif.file.{size}")
    return _object(variant.get(kind), f"gif.file.{size}.{kind}")
