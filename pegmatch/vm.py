"""The matching machine: runs compiled code against a subject."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, List, Optional, Sequence, Tuple, Union

from .captures import Capture, runtime_capture
from .compiler import Instruction, Opcode
from .tree import MAXBACK, CapKind, PatternError

Subject = Union[str, bytes]

_MAX_FULL_SPAN = 255
"""A closed capture becomes a full capture only when shorter than this."""

_MAX_DYN_RESULTS = 32767


@dataclass
class _Frame:
    """A backtrack entry (``s`` set) or a return address (``s`` is None).

    A frame whose ``p`` is None is the bottom entry: reaching it gives up.
    """

    p: Optional[int]
    s: Optional[int]
    caplevel: int = 0


def _codes(subject: Subject) -> Sequence[int]:
    if isinstance(subject, (bytes, bytearray)):
        return subject
    return [ord(ch) for ch in subject]


def _dynamic_position(first: Any, current: int, limit: int) -> int:
    """Turn the first result of a match-time function into a new position."""
    if first is True:
        return current
    if isinstance(first, float) and first.is_integer():
        first = int(first)
    if not isinstance(first, int) or isinstance(first, bool):
        raise PatternError("invalid position returned by match-time capture")
    position = first - 1
    if position < current or position > limit:
        raise PatternError("invalid position returned by match-time capture")
    return position


def execute(
    code: List[Instruction],
    subject: Subject,
    init: int = 0,
    args: Sequence[Any] = (),
    max_stack: int = MAXBACK,
) -> Optional[Tuple[int, List[Capture]]]:
    """Match ``code`` against ``subject`` starting at 0-based ``init``.

    Returns the 0-based position where the match ended together with the
    capture list, or None when the pattern does not match. ``args`` are the
    extra arguments of the match; ``max_stack`` limits the backtrack stack.
    """
    data = _codes(subject)
    end = len(data)
    if not 0 <= init <= end:
        raise ValueError(f"initial position {init} outside the subject")
    args = tuple(args)
    capacity = max(MAXBACK, max_stack)
    stack: List[_Frame] = [_Frame(None, init, 0)]
    caps: List[Capture] = []
    s = init
    p = 0

    def push(frame: _Frame) -> None:
        if len(stack) >= capacity:
            raise PatternError(
                f"backtrack stack overflow (current limit is {max_stack})"
            )
        stack.append(frame)

    while True:
        inst = code[p]
        op = inst.code
        fail = False

        if op == Opcode.END:
            return s, caps
        if op == Opcode.RET:
            p = stack.pop().p  # type: ignore[assignment]
        elif op == Opcode.ANY:
            if s < end:
                s += 1
                p += 1
            else:
                fail = True
        elif op == Opcode.TESTANY:
            p = p + 1 if s < end else inst.target  # type: ignore[assignment]
        elif op == Opcode.CHAR:
            if s < end and data[s] == inst.aux:
                s += 1
                p += 1
            else:
                fail = True
        elif op == Opcode.TESTCHAR:
            if s < end and data[s] == inst.aux:
                p += 1
            else:
                p = inst.target  # type: ignore[assignment]
        elif op == Opcode.SET:
            if s < end and (inst.cs.bits >> data[s]) & 1:  # type: ignore[union-attr]
                s += 1
                p += 1
            else:
                fail = True
        elif op == Opcode.TESTSET:
            if s < end and (inst.cs.bits >> data[s]) & 1:  # type: ignore[union-attr]
                p += 1
            else:
                p = inst.target  # type: ignore[assignment]
        elif op == Opcode.BEHIND:
            if inst.aux > s:
                fail = True
            else:
                s -= inst.aux
                p += 1
        elif op == Opcode.SPAN:
            bits = inst.cs.bits  # type: ignore[union-attr]
            while s < end and (bits >> data[s]) & 1:
                s += 1
            p += 1
        elif op == Opcode.JMP:
            p = inst.target  # type: ignore[assignment]
        elif op == Opcode.CHOICE:
            push(_Frame(inst.target, s, len(caps)))
            p += 1
        elif op == Opcode.CALL:
            push(_Frame(p + 1, None))
            p = inst.target  # type: ignore[assignment]
        elif op == Opcode.COMMIT:
            stack.pop()
            p = inst.target  # type: ignore[assignment]
        elif op == Opcode.PARTIALCOMMIT:
            top = stack[-1]
            top.s = s
            top.caplevel = len(caps)
            p = inst.target  # type: ignore[assignment]
        elif op == Opcode.BACKCOMMIT:
            frame = stack.pop()
            s = frame.s  # type: ignore[assignment]
            del caps[frame.caplevel:]
            p = inst.target  # type: ignore[assignment]
        elif op == Opcode.FAILTWICE:
            stack.pop()
            fail = True
        elif op == Opcode.FAIL:
            fail = True
        elif op == Opcode.CLOSERUNTIME:
            close = len(caps)
            consumed, results = runtime_capture(caps, close, subject, s, args)
            opened = close - consumed
            start = caps[opened].s
            del caps[opened:]
            if not results or results[0] is None or results[0] is False:
                fail = True
            else:
                s = _dynamic_position(results[0], s, end)
                values = results[1:]
                if values:
                    if len(values) >= _MAX_DYN_RESULTS:
                        raise PatternError(
                            "too many results in match-time capture"
                        )
                    caps.append(Capture(CapKind.GROUP, start, 0, None))
                    caps.extend(
                        Capture(CapKind.RUNTIME, s, 1, value) for value in values
                    )
                    caps.append(Capture(CapKind.CLOSE, s, 1))
                p += 1
        elif op == Opcode.CLOSECAPTURE:
            last = caps[-1]
            if last.siz == 0 and s - last.s < _MAX_FULL_SPAN:  # type: ignore[operator]
                last.siz = s - last.s + 1  # type: ignore[operator]
            else:
                caps.append(
                    Capture(inst.kind or CapKind.CLOSE, s, 1, inst.key)
                )
            p += 1
        elif op == Opcode.OPENCAPTURE:
            caps.append(Capture(inst.kind, s, 0, inst.key))  # type: ignore[arg-type]
            p += 1
        elif op == Opcode.FULLCAPTURE:
            caps.append(
                Capture(inst.kind, s - inst.aux, inst.aux + 1, inst.key)  # type: ignore[arg-type]
            )
            p += 1
        else:
            raise ValueError(f"cannot execute instruction {op.name}")

        if fail:
            while True:
                frame = stack.pop()
                if frame.s is not None:
                    break
            if frame.p is None:
                return None
            del caps[frame.caplevel:]
            s = frame.s
            p = frame.p