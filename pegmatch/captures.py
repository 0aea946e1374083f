"""Evaluation of the capture list produced by a successful match.

The matching machine records captures as a flat list of :class:`Capture`
entries. An entry with ``siz == 0`` opens a capture that is closed by a
later ``CLOSE`` entry. Any other entry is a full capture covering
``siz - 1`` characters from ``s``. This module turns such a list into the
values that a match returns.

Conventions for user functions (function, fold and match-time captures):
a returned ``None`` means no values, a tuple means several values, and
anything else is a single value. Positions handed to users are 1-based.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Any, Callable, List, Optional, Sequence, Tuple, Union

from .tree import CapKind, PatternError

Subject = Union[str, bytes]

MAX_STR_CAPS = 10
"""Most nested captures a string capture can refer to (%0 to %9)."""

_FORMAT_STR = re.compile(r"%(.?)", re.S)
_FORMAT_BYTES = re.compile(rb"%(.?)", re.S)


@dataclass
class Capture:
    """One entry of a capture list.

    ``s`` is the subject position where the capture starts (or, for a
    ``CLOSE`` entry, where the enclosing capture ends). ``siz`` is the
    length of a full capture plus one, or 0 for an open capture. ``key``
    is the value attached to the capture: a constant, a group name, a
    function, a format string, an argument number, a value produced by a
    match-time capture, and so on.
    """

    kind: CapKind
    s: Optional[int]
    siz: int = 0
    key: Any = None


def _results(value: Any) -> Tuple[Any, ...]:
    if value is None:
        return ()
    if isinstance(value, tuple):
        return value
    return (value,)


def _type_name(value: Any) -> str:
    if value is None:
        return "nil"
    if isinstance(value, bool):
        return "boolean"
    return type(value).__name__


def _number_text(value: Union[int, float]) -> str:
    if isinstance(value, int):
        return str(value)
    return "%.14g" % value


def _as_text(value: Any, like: Subject, what: str) -> Subject:
    """Convert a string-like value to the subject's own string type."""
    if isinstance(value, bool) or not isinstance(
        value, (str, bytes, bytearray, int, float)
    ):
        raise PatternError(f"invalid {what} value (a {_type_name(value)})")
    if isinstance(value, (int, float)):
        value = _number_text(value)
    if isinstance(like, str):
        if isinstance(value, (bytes, bytearray)):
            return bytes(value).decode("utf-8", errors="surrogateescape")
        return value
    if isinstance(value, str):
        return value.encode("utf-8", errors="surrogateescape")
    return bytes(value)


def _store(table: dict, key: Any, value: Any) -> None:
    if value is None:
        table.pop(key, None)
    else:
        table[key] = value


def _close_addr(cap: Capture) -> int:
    return cap.s + cap.siz - 1  # type: ignore[operator]


class _CapState:
    def __init__(self, caps: List[Capture], subject: Subject,
                 args: Tuple[Any, ...]) -> None:
        self.caps = caps
        self.subject = subject
        self.args = args
        self.i = 0

    @property
    def cur(self) -> Capture:
        return self.caps[self.i]

    def at_close(self) -> bool:
        return self.i >= len(self.caps) or self.caps[self.i].kind == CapKind.CLOSE

    def empty_text(self) -> Subject:
        return self.subject[:0]

    # -- navigation -------------------------------------------------------

    def find_open(self, index: int) -> int:
        """Go back from a close entry to its matching open entry."""
        pending = 0
        while True:
            index -= 1
            cap = self.caps[index]
            if cap.kind == CapKind.CLOSE:
                pending += 1
            elif cap.siz == 0:
                if pending == 0:
                    return index
                pending -= 1

    def next_cap(self) -> None:
        """Skip the current capture with everything nested in it."""
        index = self.i
        if self.caps[index].siz == 0:
            pending = 0
            while True:
                index += 1
                cap = self.caps[index]
                if cap.kind == CapKind.CLOSE:
                    if pending == 0:
                        break
                    pending -= 1
                elif cap.siz == 0:
                    pending += 1
        self.i = index + 1

    def find_back(self, index: int, name: Any) -> int:
        """Find the closest preceding named group called ``name``."""
        while index > 0:
            index -= 1
            cap = self.caps[index]
            if cap.kind == CapKind.CLOSE:
                index = self.find_open(index)
                cap = self.caps[index]
            elif cap.siz == 0:
                continue  # opening of an enclosing capture
            if cap.kind == CapKind.GROUP and cap.key == name:
                return index
        raise PatternError(f"back reference '{name}' not found")

    # -- values -----------------------------------------------------------

    def nested_values(self, add_extra: bool) -> List[Any]:
        """Values of the captures nested in the current one.

        The whole match is added when ``add_extra`` is set or when there
        would be no value at all, so the result is never empty.
        """
        opening = self.cur
        self.i += 1
        if opening.siz != 0:
            start = opening.s
            return [self.subject[start:start + opening.siz - 1]]
        values: List[Any] = []
        while not self.at_close():
            values.extend(self.push())
        if add_extra or not values:
            values.append(self.subject[opening.s:self.cur.s])
        self.i += 1
        return values

    def one_nested_value(self) -> Any:
        return self.nested_values(False)[0]

    def push(self) -> List[Any]:
        """Evaluate the current capture and return all its values."""
        cap = self.cur
        kind = cap.kind
        if kind == CapKind.POSITION:
            self.i += 1
            return [cap.s + 1]
        if kind in (CapKind.CONST, CapKind.RUNTIME):
            self.i += 1
            return [cap.key]
        if kind == CapKind.ARG:
            self.i += 1
            arg = cap.key
            if arg > len(self.args):
                raise PatternError(f"reference to absent extra argument #{arg}")
            return [self.args[arg - 1]]
        if kind == CapKind.SIMPLE:
            values = self.nested_values(True)
            return [values[-1], *values[:-1]]
        if kind in (CapKind.STRING, CapKind.SUBST):
            out: List[Subject] = []
            if kind == CapKind.STRING:
                self.string_cap(out)
            else:
                self.subst_cap(out)
            return [self.empty_text().join(out)]
        if kind == CapKind.GROUP:
            if cap.key is None:
                return self.nested_values(False)
            self.next_cap()
            return []
        if kind == CapKind.BACKREF:
            return self.backref_cap()
        if kind == CapKind.TABLE:
            return self.table_cap()
        if kind == CapKind.FUNCTION:
            return self.function_cap()
        if kind == CapKind.NUM:
            return self.num_cap()
        if kind == CapKind.QUERY:
            return self.query_cap()
        if kind == CapKind.FOLD:
            return self.fold_cap()
        raise ValueError(f"unexpected capture kind {kind!r}")

    def backref_cap(self) -> List[Any]:
        current = self.i
        self.i = self.find_back(current, self.cur.key)
        values = self.nested_values(False)
        self.i = current + 1
        return values

    def table_cap(self) -> List[Any]:
        table: dict = {}
        opening = self.cur
        self.i += 1
        if opening.siz != 0:
            return [table]
        count = 0
        while not self.at_close():
            cap = self.cur
            if cap.kind == CapKind.GROUP and cap.key is not None:
                _store(table, cap.key, self.one_nested_value())
            else:
                values = self.push()
                for position, value in enumerate(values, start=count + 1):
                    _store(table, position, value)
                count += len(values)
        self.i += 1
        return [table]

    def query_cap(self) -> List[Any]:
        table = self.cur.key
        key = self.one_nested_value()
        try:
            value = table[key]
        except (KeyError, IndexError, TypeError):
            value = None
        return [] if value is None else [value]

    def fold_cap(self) -> List[Any]:
        opening = self.cur
        func: Callable[..., Any] = opening.key
        self.i += 1
        if opening.siz != 0 or self.at_close():
            raise PatternError("no initial value for fold capture")
        values = self.push()
        if not values:
            raise PatternError("no initial value for fold capture")
        acc = values[0]
        while not self.at_close():
            results = _results(func(acc, *self.push()))
            acc = results[0] if results else None
        self.i += 1
        return [acc]

    def function_cap(self) -> List[Any]:
        func: Callable[..., Any] = self.cur.key
        values = self.nested_values(False)
        return list(_results(func(*values)))

    def num_cap(self) -> List[Any]:
        wanted = self.cur.key
        if wanted == 0:
            self.next_cap()
            return []
        values = self.nested_values(False)
        if len(values) < wanted:
            raise PatternError(f"no capture '{wanted}'")
        return [values[wanted - 1]]

    # -- string building --------------------------------------------------

    def str_caps(self, pieces: List[Union[slice, int]]) -> None:
        """Collect the pieces a string capture may refer to.

        A slice stands for text of the subject; an int is the index of a
        nested capture to evaluate when it is used.
        """
        slot = len(pieces)
        pieces.append(slice(0, 0))
        opening = self.cur
        self.i += 1
        if opening.siz == 0:
            while not self.at_close():
                if len(pieces) >= MAX_STR_CAPS:
                    self.next_cap()
                elif self.cur.kind == CapKind.SIMPLE:
                    self.str_caps(pieces)
                else:
                    pieces.append(self.i)
                    self.next_cap()
            self.i += 1
        pieces[slot] = slice(opening.s, _close_addr(self.caps[self.i - 1]))

    def string_cap(self, out: List[Subject]) -> None:
        fmt = _as_text(self.cur.key, self.subject, "format")
        pieces: List[Union[slice, int]] = []
        self.str_caps(pieces)
        last = len(pieces) - 1
        pattern = _FORMAT_STR if isinstance(fmt, str) else _FORMAT_BYTES
        digits = "0123456789" if isinstance(fmt, str) else b"0123456789"
        done = 0
        for found in pattern.finditer(fmt):
            out.append(fmt[done:found.start()])
            done = found.end()
            ch = found.group(1)
            if not ch:
                out.append(fmt[:0] + ("\0" if isinstance(fmt, str) else b"\0"))
            elif ch not in digits:
                out.append(ch)
            else:
                index = int(ch)
                if index > last:
                    raise PatternError(f"invalid capture index ({index})")
                piece = pieces[index]
                if isinstance(piece, slice):
                    out.append(self.subject[piece])
                else:
                    current = self.i
                    self.i = piece
                    if not self.add_one_string(out, "capture"):
                        raise PatternError(f"no values in capture index {index}")
                    self.i = current
        out.append(fmt[done:])

    def subst_cap(self, out: List[Subject]) -> None:
        opening = self.cur
        curr = opening.s
        if opening.siz != 0:
            out.append(self.subject[curr:curr + opening.siz - 1])
        else:
            self.i += 1
            while not self.at_close():
                nxt = self.cur.s
                out.append(self.subject[curr:nxt])
                if self.add_one_string(out, "replacement"):
                    curr = _close_addr(self.caps[self.i - 1])
                else:
                    curr = nxt
            out.append(self.subject[curr:self.cur.s])
        self.i += 1

    def add_one_string(self, out: List[Subject], what: str) -> bool:
        """Add the first value of the current capture; tell if there was one."""
        kind = self.cur.kind
        if kind == CapKind.STRING:
            self.string_cap(out)
            return True
        if kind == CapKind.SUBST:
            self.subst_cap(out)
            return True
        values = self.push()
        if not values:
            return False
        out.append(_as_text(values[0], self.subject, what))
        return True


def get_captures(caplist: List[Capture], subject: Subject, end: int,
                 args: Sequence[Any] = ()) -> Tuple[Any, ...]:
    """Return the values of all captures in ``caplist``.

    ``end`` is the 0-based position where the match ended; when the
    captures produce no value the 1-based position after the match,
    ``end + 1``, is returned instead. ``args`` are the extra arguments of
    the match, used by argument captures. The list may end at a ``CLOSE``
    entry or simply at its end.
    """
    state = _CapState(caplist, subject, tuple(args))
    values: List[Any] = []
    while not state.at_close():
        values.extend(state.push())
    if not values:
        return (end + 1,)
    return tuple(values)


def runtime_capture(caplist: List[Capture], close: int, subject: Subject,
                    pos: int, args: Sequence[Any] = ()) -> Tuple[int, Tuple[Any, ...]]:
    """Call the function of a match-time capture.

    ``close`` is the index where the capture closes; a ``CLOSE`` entry at
    ``pos`` is stored there. The function of the open group matching it is
    called with the subject, the 1-based current position and the values
    of the nested captures. Returns the number of entries, from the open
    group up to ``close``, that the call consumed, and the function's
    results.
    """
    closing = Capture(CapKind.CLOSE, pos, 1)
    if close == len(caplist):
        caplist.append(closing)
    else:
        caplist[close] = closing
    state = _CapState(caplist, subject, tuple(args))
    opened = state.find_open(close)
    group = caplist[opened]
    if group.kind != CapKind.GROUP:
        raise ValueError("match-time capture does not start with a group")
    state.i = opened
    nested = state.nested_values(False)
    results = _results(group.key(subject, pos + 1, *nested))
    return close - opened, results