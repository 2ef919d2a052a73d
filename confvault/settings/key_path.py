from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, Tuple

SEPARATOR = "/"


def split_key(key: str) -> Tuple[str, ...]:
    """Split a canonical key into segments.

    Whitespace around segments is stripped and empty segments are dropped, so
    ``" net//timeout "`` and ``"net/timeout"`` name the same setting.
    """
    segments = (segment.strip() for segment in key.split(SEPARATOR))
    return tuple(segment for segment in segments if segment)


def join_segments(segments: Iterable[str]) -> str:
    return SEPARATOR.join(segments)


@dataclass(frozen=True)
class KeyPath:
    segments: Tuple[str, ...]

    def __post_init__(self) -> None:
        if not self.segments:
            raise ValueError("Key path needs at least one segment")
        for segment in self.segments:
            if not segment:
                raise ValueError("Key path segments must not be empty")
            if SEPARATOR in segment:
                raise ValueError(f"Segment {segment!r} contains {SEPARATOR!r}")
            # split_key strips segments, so padded ones could not be read back.
            if segment != segment.strip():
                raise ValueError(f"Segment {segment!r} has surrounding whitespace")

    @classmethod
    def parse(cls, key: str) -> "KeyPath":
        return cls(split_key(key))

    @classmethod
    def of(cls, *segments: str) -> "KeyPath":
        return cls(tuple(segments))

    @property
    def canonical(self) -> str:
        return join_segments(self.segments)

    @property
    def depth(self) -> int:
        return len(self.segments)

    @property
    def name(self) -> str:
        return self.segments[-1]

    def parents(self) -> Tuple["KeyPath", ...]:
        return tuple(KeyPath(self.segments[:idx]) for idx in range(1, len(self.segments)))

    def child(self, segment: str) -> "KeyPath":
        return KeyPath(self.segments + (segment,))

    def __str__(self) -> str:
        return self.canonical


def common_prefix_length(left: Tuple[str, ...], right: Tuple[str, ...]) -> int:
    count = 0
    for a, b in zip(left, right):
        if a != b:
            break
        count += 1
    return count
