"""Conversion between nested JSON documents and flat settings.

Importing walks the document depth-first with an explicit stack of member
iterators, so deeply nested files do not depend on the interpreter's
recursion limit. Exporting streams the document in a single pass over the
sorted flat keys: consecutive keys that share a segment prefix share the
enclosing objects, so only the difference between the previous and the
current key has to be closed and opened.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from typing import Any, Dict, Iterable, Iterator, List, Optional, Tuple

from confvault.settings.errors import ExportError, KeyConflictError, ParseError
from confvault.settings.flat_store import INT64_MAX, INT64_MIN, FlatStore, SettingValue
from confvault.settings.key_path import common_prefix_length, join_segments, split_key

logger = logging.getLogger(__name__)

DEFAULT_INDENT = 4


def parse_document(payload: bytes) -> Dict[str, Any]:
    try:
        document = json.loads(payload.decode("utf-8"))
    except UnicodeDecodeError as exc:
        raise ParseError(f"Settings document is not valid UTF-8: {exc}") from exc
    except json.JSONDecodeError as exc:
        raise ParseError(f"Settings document is damaged: {exc}") from exc
    if not isinstance(document, dict):
        raise ParseError(f"Settings document root is {type(document).__name__}, not an object")
    return document


def _import_leaf(store: FlatStore, segments: List[str], value: Any) -> None:
    key = join_segments(segments)
    if isinstance(value, bool) or not isinstance(value, (str, int)):
        logger.warning("Skipping %r: unsupported value type %s", key, type(value).__name__)
        return
    if isinstance(value, int) and not INT64_MIN <= value <= INT64_MAX:
        logger.warning("Skipping %r: integer %d does not fit in 64 bits", key, value)
        return
    if not split_key(key):
        logger.warning("Skipping value with an empty key path")
        return
    try:
        store.insert(key, value)
    except KeyConflictError as exc:
        logger.warning("Skipping %r: %s", key, exc)


def import_tree(document: Dict[str, Any], store: Optional[FlatStore] = None) -> FlatStore:
    """Flatten ``document`` into ``store`` (a new store when omitted).

    Strings and integers become settings keyed by their joined path; every
    other leaf kind is logged and dropped.
    """
    if store is None:
        store = FlatStore()
    segments: List[str] = []
    members: List[Iterator[Tuple[str, Any]]] = [iter(document.items())]
    while members:
        member = next(members[-1], None)
        if member is None:
            members.pop()
            if members:
                segments.pop()
            continue
        name, value = member
        if isinstance(value, dict):
            segments.append(name)
            members.append(iter(value.items()))
            continue
        _import_leaf(store, segments + [name], value)
    return store


class JsonTreeWriter:
    """Streaming pretty-printer for nested JSON objects.

    Alongside the text it keeps a mirror of the objects written so far, which
    is how duplicate member names are caught before they reach the output.
    """

    def __init__(self, indent: int = DEFAULT_INDENT) -> None:
        self._indent = " " * indent
        self._parts: List[str] = []
        self._counts: List[int] = []
        self._containers: List[Dict[str, Any]] = []
        self._root: Optional[Dict[str, Any]] = None

    @property
    def is_complete(self) -> bool:
        return self._root is not None and not self._counts

    @property
    def document(self) -> Dict[str, Any]:
        if not self.is_complete:
            raise ExportError("Incomplete json document")
        return self._root

    def start_object(self, key: Optional[str] = None) -> None:
        container: Dict[str, Any] = {}
        if not self._counts:
            if self._root is not None or key is not None:
                raise ExportError("Document root already written")
            self._root = container
        else:
            if key is None:
                raise ExportError("Nested object needs a key")
            self._begin_member(key)
            self._containers[-1][key] = container
        self._parts.append("{")
        self._counts.append(0)
        self._containers.append(container)

    def end_object(self) -> None:
        if not self._counts:
            raise ExportError("No open object to end")
        count = self._counts.pop()
        self._containers.pop()
        if count:
            self._parts.append("\n" + self._indent * len(self._counts))
        self._parts.append("}")

    def key_value(self, key: str, value: SettingValue) -> None:
        if not self._counts:
            raise ExportError("Value written outside of an object")
        self._begin_member(key)
        self._parts.append(json.dumps(value, ensure_ascii=False))
        self._containers[-1][key] = value

    def getvalue(self) -> str:
        return "".join(self._parts)

    def _begin_member(self, key: str) -> None:
        if key in self._containers[-1]:
            raise ExportError(f"Duplicate member {key!r}")
        if self._counts[-1]:
            self._parts.append(",")
        self._counts[-1] += 1
        self._parts.append("\n" + self._indent * len(self._counts))
        self._parts.append(json.dumps(key, ensure_ascii=False) + ": ")


@dataclass
class ExportResult:
    document: Dict[str, Any]
    payload: bytes


def export_entries(
    entries: Iterable[Tuple[str, SettingValue]], *, indent: int = DEFAULT_INDENT
) -> ExportResult:
    """Write ``entries`` as a nested document.

    ``entries`` must come in sorted key order; anything else can split a
    group of keys across two objects with the same name, which is reported as
    an ExportError.
    """
    writer = JsonTreeWriter(indent)
    writer.start_object()
    previous: Tuple[str, ...] = ()
    for key, value in entries:
        segments = split_key(key)
        if not segments:
            raise ExportError(f"Empty key path {key!r}")
        common = common_prefix_length(segments, previous)
        if previous and common in (len(previous), len(segments)):
            raise ExportError(f"Key {key!r} collides with {join_segments(previous)!r}")
        for _ in range(len(previous) - 1, common, -1):
            writer.end_object()
        for segment in segments[common:-1]:
            writer.start_object(segment)
        writer.key_value(segments[-1], value)
        previous = segments
    for _ in range(len(previous) - 1):
        writer.end_object()
    writer.end_object()

    if not writer.is_complete:
        raise ExportError("Incomplete json document")
    return ExportResult(document=writer.document, payload=writer.getvalue().encode("utf-8"))


def export_tree(store: FlatStore, *, indent: int = DEFAULT_INDENT) -> ExportResult:
    return export_entries(store.ordered_entries(), indent=indent)
