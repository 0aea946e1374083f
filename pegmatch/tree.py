"""Pattern trees: node kinds, capture kinds and the tree node itself."""

from __future__ import annotations

import dataclasses
import enum
from dataclasses import dataclass
from typing import Any, Dict, Iterator, Optional, Tuple

from .charset import Charset

VERSION = "1.0.1"

MAXBACK = 400
"""Default maximum size of the backtrack stack."""

MAXRULES = 250
"""Maximum number of rules in a grammar."""

MAXOFF = 0xF
"""Largest fixed length a full capture may record."""

MAXBEHIND = 0xFF
"""Maximum number of characters a look-behind may step back."""


class PatternError(Exception):
    """Raised for invalid patterns or failures while matching."""


class Tag(enum.IntEnum):
    CHAR = 0
    SET = 1
    ANY = 2
    TRUE = 3
    FALSE = 4
    REP = 5
    SEQ = 6
    CHOICE = 7
    NOT = 8
    AND = 9
    CALL = 10
    OPENCALL = 11
    RULE = 12
    GRAMMAR = 13
    BEHIND = 14
    CAPTURE = 15
    RUNTIME = 16


class CapKind(enum.IntEnum):
    CLOSE = 0
    POSITION = 1
    CONST = 2
    BACKREF = 3
    ARG = 4
    SIMPLE = 5
    TABLE = 6
    FUNCTION = 7
    QUERY = 8
    STRING = 9
    NUM = 10
    SUBST = 11
    FOLD = 12
    RUNTIME = 13
    GROUP = 14


NUM_SIBLINGS: Dict[Tag, int] = {
    Tag.CHAR: 0,
    Tag.SET: 0,
    Tag.ANY: 0,
    Tag.TRUE: 0,
    Tag.FALSE: 0,
    Tag.REP: 1,
    Tag.SEQ: 2,
    Tag.CHOICE: 2,
    Tag.NOT: 1,
    Tag.AND: 1,
    Tag.CALL: 0,
    Tag.OPENCALL: 0,
    Tag.RULE: 2,
    Tag.GRAMMAR: 1,
    Tag.BEHIND: 1,
    Tag.CAPTURE: 1,
    Tag.RUNTIME: 1,
}


@dataclass(eq=False, repr=False)
class Node:
    """One node of a pattern tree.

    ``sib1``/``sib2`` are the children. A CALL node's ``sib2`` refers to the
    RULE it calls, which is owned by the enclosing grammar, not by the call.
    ``n`` holds a character, a look-behind length or a rule count; ``cs`` the
    set of a SET node; ``cap`` a capture kind or a rule number; ``key`` the
    value attached to the node (rule name, capture value, function...), or
    ``None`` when there is none.
    """

    tag: Tag
    sib1: Optional[Node] = None
    sib2: Optional[Node] = None
    n: int = 0
    cs: Optional[Charset] = None
    cap: int = 0
    key: Any = None

    def children(self) -> Tuple[Node, ...]:
        """Return the children this node owns."""
        count = NUM_SIBLINGS[self.tag]
        if count == 0:
            return ()
        if count == 1:
            return (self.sib1,)  # type: ignore[return-value]
        return (self.sib1, self.sib2)  # type: ignore[return-value]

    def walk(self) -> Iterator[Node]:
        """Yield every owned node of the tree in pre-order."""
        stack = [self]
        while stack:
            node = stack.pop()
            yield node
            stack.extend(reversed(node.children()))

    def copy(self) -> Node:
        """Return a deep copy; calls into copied rules follow the copies."""
        memo: Dict[int, Node] = {
            id(old): dataclasses.replace(old) for old in self.walk()
        }
        for new in memo.values():
            if new.sib1 is not None:
                new.sib1 = memo.get(id(new.sib1), new.sib1)
            if new.sib2 is not None:
                new.sib2 = memo.get(id(new.sib2), new.sib2)
        return memo[id(self)]

    def __repr__(self) -> str:
        parts = [self.tag.name]
        if self.tag in (Tag.CHAR, Tag.BEHIND, Tag.GRAMMAR):
            parts.append(f"n={self.n}")
        if self.tag in (Tag.CAPTURE, Tag.RULE):
            parts.append(f"cap={self.cap}")
        if self.key is not None:
            parts.append(f"key={self.key!r}")
        return f"Node({', '.join(parts)})"