"""Readable listings of charsets, compiled code, trees and capture lists."""

from __future__ import annotations

from typing import Iterator, List, Tuple

from .captures import Capture
from .charset import Charset
from .compiler import Instruction, Opcode
from .tree import Node, Tag

_CAP_NAMES = (
    "close", "position", "constant", "backref",
    "argument", "simple", "table", "function",
    "query", "string", "num", "substitution", "fold",
    "runtime", "group",
)

_OP_NAMES = (
    "any", "char", "set",
    "testany", "testchar", "testset",
    "span", "behind",
    "ret", "end",
    "choice", "jmp", "call", "open_call",
    "commit", "partial_commit", "back_commit", "failtwice", "fail", "giveup",
    "fullcapture", "opencapture", "closecapture", "closeruntime",
)

_TAG_NAMES = (
    "char", "set", "any",
    "true", "false",
    "rep",
    "seq", "choice",
    "not", "and",
    "call", "opencall", "rule", "grammar",
    "behind",
    "capture", "run-time",
)


def _runs(cs: Charset) -> Iterator[Tuple[int, int]]:
    start = prev = None
    for c in cs:
        if prev is not None and c == prev + 1:
            prev = c
            continue
        if start is not None:
            yield start, prev  # type: ignore[misc]
        start = prev = c
    if start is not None:
        yield start, prev  # type: ignore[misc]


def format_charset(cs: Charset) -> str:
    """Show a charset as bracketed hexadecimal ranges."""
    parts = []
    for first, last in _runs(cs):
        if first == last:
            parts.append(f"({first:02x})")
        else:
            parts.append(f"({first:02x}-{last:02x})")
    return "[" + "".join(parts) + "]"


def _cap_name(kind: object) -> str:
    return _CAP_NAMES[int(kind)]  # type: ignore[arg-type]


def format_instruction(code: List[Instruction], index: int) -> str:
    """Show the instruction at ``index`` of ``code`` as one line."""
    inst = code[index]
    op = inst.code
    line = f"{index:02d}: {_OP_NAMES[op]} "
    jump = f"-> {inst.target}"
    if op == Opcode.CHAR:
        line += f"'{chr(inst.aux)}'"
    elif op == Opcode.TESTCHAR:
        line += f"'{chr(inst.aux)}'" + jump
    elif op == Opcode.FULLCAPTURE:
        line += (f"{_cap_name(inst.kind)} (size = {inst.aux})  "
                 f"(idx = {inst.key!r})")
    elif op == Opcode.OPENCAPTURE:
        line += f"{_cap_name(inst.kind)} (idx = {inst.key!r})"
    elif op in (Opcode.SET, Opcode.SPAN):
        line += format_charset(inst.cs)  # type: ignore[arg-type]
    elif op == Opcode.TESTSET:
        line += format_charset(inst.cs) + jump  # type: ignore[arg-type]
    elif op == Opcode.OPENCALL:
        line += f"-> {inst.key}"
    elif op == Opcode.BEHIND:
        line += str(inst.aux)
    elif op in (Opcode.JMP, Opcode.CALL, Opcode.COMMIT, Opcode.CHOICE,
                Opcode.PARTIALCOMMIT, Opcode.BACKCOMMIT, Opcode.TESTANY):
        line += jump
    return line


def format_program(code: List[Instruction]) -> str:
    """List every instruction of ``code``, one per line."""
    return "".join(
        format_instruction(code, index) + "\n" for index in range(len(code))
    )


def _tree_lines(tree: Node, indent: int, out: List[str]) -> None:
    out.append(" " * indent + _TAG_NAMES[tree.tag])
    tag = tree.tag
    if tag == Tag.CHAR:
        c = tree.n
        out.append(f" '{chr(c)}'\n" if 32 <= c < 127 else f" ({c:02X})\n")
    elif tag == Tag.SET:
        out.append(format_charset(tree.cs) + "\n")  # type: ignore[arg-type]
    elif tag in (Tag.OPENCALL, Tag.CALL):
        if tree.sib2 is not None:
            out.append(f" key: {tree.key!r}  (rule: {tree.sib2.cap})\n")
        else:
            out.append(f" key: {tree.key!r}\n")
    elif tag == Tag.BEHIND:
        out.append(f" {tree.n}\n")
        _tree_lines(tree.sib1, indent + 2, out)  # type: ignore[arg-type]
    elif tag == Tag.CAPTURE:
        out.append(f" kind: '{_cap_name(tree.cap)}'  key: {tree.key!r}\n")
        _tree_lines(tree.sib1, indent + 2, out)  # type: ignore[arg-type]
    elif tag == Tag.RULE:
        out.append(f" n: {tree.cap}  key: {tree.key!r}\n")
        _tree_lines(tree.sib1, indent + 2, out)  # type: ignore[arg-type]
    elif tag == Tag.GRAMMAR:
        out.append(f" {tree.n}\n")
        rule = tree.sib1
        for _ in range(tree.n):
            _tree_lines(rule, indent + 2, out)  # type: ignore[arg-type]
            rule = rule.sib2  # type: ignore[union-attr]
    else:
        out.append("\n")
        for child in tree.children():
            _tree_lines(child, indent + 2, out)


def format_tree(tree: Node, indent: int = 0) -> str:
    """Show a pattern tree, one node per line, children indented."""
    out: List[str] = []
    _tree_lines(tree, indent, out)
    return "".join(out)


def format_captures(caplist: List[Capture]) -> str:
    """List the entries of a capture list up to its first unset entry."""
    lines = [">======"]
    for cap in caplist:
        if cap.s is None:
            break
        lines.append(
            f"{_cap_name(cap.kind)} (idx: {cap.key!r} - size: {cap.siz}) -> {cap.s}"
        )
    lines.append("=======")
    return "\n".join(lines) + "\n"