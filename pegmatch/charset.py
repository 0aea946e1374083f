"""Immutable sets of byte values used by character-class patterns."""

from __future__ import annotations

import enum
from dataclasses import dataclass
from typing import Iterable, Iterator, Optional, Tuple, Union

CHARSET_SIZE = 256
_FULL_BITS = (1 << CHARSET_SIZE) - 1

CharLike = Union[int, str, bytes]


class SetKind(enum.Enum):
    """Shape of a charset, as far as code generation cares."""

    EMPTY = "empty"
    SINGLE = "single"
    FULL = "full"
    GENERIC = "generic"


def _code(c: CharLike) -> int:
    """Return the byte value of a character given as int, str or bytes."""
    if isinstance(c, bool):
        raise TypeError("a boolean is not a character")
    if isinstance(c, int):
        value = c
    elif isinstance(c, (str, bytes, bytearray)):
        if len(c) != 1:
            raise ValueError(f"expected a single character, got {c!r}")
        value = ord(c) if isinstance(c, str) else c[0]
    else:
        raise TypeError(f"cannot use {type(c).__name__} as a character")
    if not 0 <= value < CHARSET_SIZE:
        raise ValueError(f"character {value} is outside the byte range")
    return value


@dataclass(frozen=True)
class Charset:
    """A set of byte values (0..255), stored as a 256-bit mask."""

    bits: int = 0

    def __post_init__(self) -> None:
        if not 0 <= self.bits <= _FULL_BITS:
            raise ValueError("charset bits out of range")

    @classmethod
    def empty(cls) -> Charset:
        return cls(0)

    @classmethod
    def full(cls) -> Charset:
        return cls(_FULL_BITS)

    @classmethod
    def from_chars(cls, chars: Iterable[CharLike]) -> Charset:
        """Build a set holding every character of ``chars``."""
        bits = 0
        for c in chars:
            bits |= 1 << _code(c)
        return cls(bits)

    @classmethod
    def from_range(cls, first: CharLike, last: CharLike) -> Charset:
        """Build the set of characters from ``first`` to ``last`` inclusive."""
        lo, hi = _code(first), _code(last)
        if lo > hi:
            return cls.empty()
        return cls(((1 << (hi - lo + 1)) - 1) << lo)

    def __contains__(self, c: object) -> bool:
        try:
            value = _code(c)  # type: ignore[arg-type]
        except (TypeError, ValueError):
            return False
        return bool((self.bits >> value) & 1)

    def __or__(self, other: object) -> Charset:
        if not isinstance(other, Charset):
            return NotImplemented
        return Charset(self.bits | other.bits)

    def __and__(self, other: object) -> Charset:
        if not isinstance(other, Charset):
            return NotImplemented
        return Charset(self.bits & other.bits)

    def __sub__(self, other: object) -> Charset:
        if not isinstance(other, Charset):
            return NotImplemented
        return Charset(self.bits & ~other.bits)

    def __invert__(self) -> Charset:
        return Charset(self.bits ^ _FULL_BITS)

    def isdisjoint(self, other: Charset) -> bool:
        return not (self.bits & other.bits)

    def classify(self) -> Tuple[SetKind, Optional[int]]:
        """Tell whether the set is empty, a single char, full, or generic.

        For a single-character set the character is returned too.
        """
        count = len(self)
        if count == 0:
            return SetKind.EMPTY, None
        if count == 1:
            return SetKind.SINGLE, self.bits.bit_length() - 1
        if count == CHARSET_SIZE:
            return SetKind.FULL, None
        return SetKind.GENERIC, None

    def __iter__(self) -> Iterator[int]:
        bits = self.bits
        for value in range(CHARSET_SIZE):
            if (bits >> value) & 1:
                yield value

    def __len__(self) -> int:
        return self.bits.bit_count()

    def __repr__(self) -> str:
        return f"Charset({bytes(self)!r})"