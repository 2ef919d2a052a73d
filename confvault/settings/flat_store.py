from __future__ import annotations

from bisect import bisect_left, insort
from typing import Callable, Dict, Iterator, List, Optional, Tuple, Union

from confvault.settings.errors import KeyConflictError
from confvault.settings.key_path import SEPARATOR, KeyPath

SettingValue = Union[str, int]
KeyLike = Union[str, KeyPath]

INT64_MIN = -(2**63)
INT64_MAX = 2**63 - 1


def to_key_path(key: KeyLike) -> KeyPath:
    if isinstance(key, KeyPath):
        return key
    return KeyPath.parse(key)


def check_value(value: object) -> SettingValue:
    # bool is an int subclass but never an Integer setting.
    if isinstance(value, bool) or not isinstance(value, (str, int)):
        raise TypeError(f"Unsupported setting value type: {type(value).__name__}")
    if isinstance(value, int) and not INT64_MIN <= value <= INT64_MAX:
        raise ValueError(f"Integer setting out of 64-bit range: {value}")
    return value


class FlatStore:
    """Settings indexed by canonical key, always iterated in sorted key order.

    The sorted order is what lets the tree exporter rebuild nesting in one
    pass, so the key list is kept sorted on every insert rather than sorted
    on demand.
    """

    def __init__(self, on_change: Optional[Callable[[], None]] = None) -> None:
        self._values: Dict[str, SettingValue] = {}
        self._keys: List[str] = []
        self._on_change = on_change

    def insert(self, key: KeyLike, value: SettingValue) -> None:
        path = to_key_path(key)
        value = check_value(value)
        canonical = path.canonical
        if canonical not in self._values:
            self._check_conflicts(path)
            insort(self._keys, canonical)
        self._values[canonical] = value
        self._changed()

    def get(self, key: KeyLike) -> Optional[SettingValue]:
        return self._values.get(to_key_path(key).canonical)

    def remove(self, key: KeyLike) -> bool:
        canonical = to_key_path(key).canonical
        if canonical not in self._values:
            return False
        del self._values[canonical]
        del self._keys[bisect_left(self._keys, canonical)]
        self._changed()
        return True

    def clear(self) -> None:
        self._values.clear()
        self._keys.clear()

    def ordered_entries(self, prefix: Optional[KeyLike] = None) -> Iterator[Tuple[str, SettingValue]]:
        if prefix is None:
            for key in self._keys:
                yield key, self._values[key]
            return
        head = to_key_path(prefix).canonical
        if head in self._values:
            yield head, self._values[head]
        start = head + SEPARATOR
        for idx in range(bisect_left(self._keys, start), len(self._keys)):
            key = self._keys[idx]
            if not key.startswith(start):
                break
            yield key, self._values[key]

    def keys(self) -> List[str]:
        return list(self._keys)

    def __contains__(self, key: object) -> bool:
        if not isinstance(key, (str, KeyPath)):
            return False
        try:
            return to_key_path(key).canonical in self._values
        except ValueError:
            return False

    def __iter__(self) -> Iterator[Tuple[str, SettingValue]]:
        return self.ordered_entries()

    def __len__(self) -> int:
        return len(self._keys)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, FlatStore):
            return NotImplemented
        return self._values == other._values

    def __repr__(self) -> str:
        return f"FlatStore({dict(self.ordered_entries())!r})"

    def _check_conflicts(self, path: KeyPath) -> None:
        canonical = path.canonical
        idx = canonical.find(SEPARATOR)
        while idx != -1:
            parent = canonical[:idx]
            if parent in self._values:
                raise KeyConflictError(f"Cannot add {canonical!r}: {parent!r} holds a value")
            idx = canonical.find(SEPARATOR, idx + 1)
        start = canonical + SEPARATOR
        idx = bisect_left(self._keys, start)
        if idx < len(self._keys) and self._keys[idx].startswith(start):
            raise KeyConflictError(
                f"Cannot add {path.canonical!r}: it already groups {self._keys[idx]!r}"
            )

    def _changed(self) -> None:
        if self._on_change is not None:
            self._on_change()
