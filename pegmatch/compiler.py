"""Compilation of pattern trees into code for the matching machine."""

from __future__ import annotations

import dataclasses
import enum
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from .analysis import (
    fixed_len,
    get_first,
    has_captures,
    head_fail,
    need_follow,
    to_charset,
)
from .charset import Charset, SetKind
from .tree import MAXBEHIND, MAXOFF, CapKind, Node, Tag


class Opcode(enum.IntEnum):
    """Instructions of the matching machine."""

    ANY = 0  # if no char, fail
    CHAR = 1  # if char != aux, fail
    SET = 2  # if char not in cs, fail
    TESTANY = 3  # if no char, jump to target
    TESTCHAR = 4  # if char != aux, jump to target
    TESTSET = 5  # if char not in cs, jump to target
    SPAN = 6  # read a span of chars in cs
    BEHIND = 7  # walk back aux characters (fail if not possible)
    RET = 8  # return from a rule
    END = 9  # end of pattern
    CHOICE = 10  # stack a choice; next fail will jump to target
    JMP = 11  # jump to target
    CALL = 12  # call rule at target
    OPENCALL = 13  # call rule number key (must be closed into a CALL)
    COMMIT = 14  # pop choice and jump to target
    PARTIALCOMMIT = 15  # update top choice to current position and jump
    BACKCOMMIT = 16  # "fails" but jump to its own target
    FAILTWICE = 17  # pop one choice and then fail
    FAIL = 18  # go back to saved state on choice and jump to saved target
    GIVEUP = 19  # internal use
    FULLCAPTURE = 20  # complete capture of last aux chars
    OPENCAPTURE = 21  # start a capture
    CLOSECAPTURE = 22
    CLOSERUNTIME = 23


LABELLED = frozenset({
    Opcode.TESTANY, Opcode.TESTCHAR, Opcode.TESTSET, Opcode.CHOICE,
    Opcode.JMP, Opcode.CALL, Opcode.OPENCALL, Opcode.COMMIT,
    Opcode.PARTIALCOMMIT, Opcode.BACKCOMMIT,
})
"""Opcodes that carry a jump target."""


@dataclass
class Instruction:
    """One instruction of compiled code.

    ``aux`` holds a character, a look-behind length or the size of a full
    capture; ``kind`` the capture kind of capture instructions; ``key`` the
    value attached to a capture (or the rule number of an open call);
    ``target`` the absolute index jumped to; ``cs`` the set of set
    instructions.
    """

    code: Opcode
    aux: int = 0
    key: Any = None
    kind: Optional[CapKind] = None
    target: Optional[int] = None
    cs: Optional[Charset] = None


class _Compiler:
    def __init__(self) -> None:
        self.code: List[Instruction] = []

    # -- emission helpers -------------------------------------------------

    def here(self) -> int:
        return len(self.code)

    def add(self, op: Opcode, aux: int = 0, **fields: Any) -> int:
        self.code.append(Instruction(op, aux, **fields))
        return len(self.code) - 1

    def add_offset(self, op: Opcode) -> int:
        return self.add(op)

    def add_capture(self, op: Opcode, kind: CapKind, key: Any, size: int) -> int:
        return self.add(op, size, kind=CapKind(kind), key=key)

    def jump_to_there(self, instruction: Optional[int], target: int) -> None:
        if instruction is not None:
            self.code[instruction].target = target

    def jump_to_here(self, instruction: Optional[int]) -> None:
        self.jump_to_there(instruction, self.here())

    # -- character instructions ------------------------------------------

    def code_char(self, c: int, tt: Optional[int]) -> None:
        if tt is not None:
            test = self.code[tt]
            if test.code == Opcode.TESTCHAR and test.aux == c:
                self.add(Opcode.ANY)
                return
        self.add(Opcode.CHAR, c)

    def code_charset(self, cs: Charset, tt: Optional[int]) -> None:
        kind, c = cs.classify()
        if kind == SetKind.SINGLE:
            self.code_char(c, tt)  # type: ignore[arg-type]
        elif kind == SetKind.GENERIC:
            if (tt is not None and self.code[tt].code == Opcode.TESTSET
                    and self.code[tt].cs == cs):
                self.add(Opcode.ANY)
            else:
                self.add(Opcode.SET, cs=cs)
        elif kind == SetKind.EMPTY:
            self.add(Opcode.FAIL)
        else:
            self.add(Opcode.ANY)

    def code_test_set(self, cs: Charset, e: int) -> Optional[int]:
        """Emit a test that jumps away when the next char is not in ``cs``."""
        if e:
            return None
        kind, c = cs.classify()
        if kind == SetKind.EMPTY:
            return self.add_offset(Opcode.JMP)
        if kind == SetKind.FULL:
            return self.add_offset(Opcode.TESTANY)
        if kind == SetKind.SINGLE:
            return self.add(Opcode.TESTCHAR, c)  # type: ignore[arg-type]
        return self.add(Opcode.TESTSET, cs=cs)

    # -- constructions ----------------------------------------------------

    def code_behind(self, tree: Node) -> None:
        if tree.n > 0:
            self.add(Opcode.BEHIND, tree.n)
        self.codegen(tree.sib1, False, None, Charset.full())  # type: ignore[arg-type]

    def code_choice(self, p1: Node, p2: Node, opt: bool, fl: Charset) -> None:
        full = Charset.full()
        empty_p2 = p2.tag == Tag.TRUE
        cs1, e1 = get_first(p1, full)
        if head_fail(p1) or (not e1 and cs1.isdisjoint(get_first(p2, fl)[0])):
            test = self.code_test_set(cs1, 0)
            jmp = None
            self.codegen(p1, False, test, fl)
            if not empty_p2:
                jmp = self.add_offset(Opcode.JMP)
            self.jump_to_here(test)
            self.codegen(p2, opt, None, fl)
            self.jump_to_here(jmp)
        elif opt and empty_p2:
            self.jump_to_here(self.add_offset(Opcode.PARTIALCOMMIT))
            self.codegen(p1, True, None, full)
        else:
            test = self.code_test_set(cs1, e1)
            pchoice = self.add_offset(Opcode.CHOICE)
            self.codegen(p1, empty_p2, test, full)
            pcommit = self.add_offset(Opcode.COMMIT)
            self.jump_to_here(pchoice)
            self.jump_to_here(test)
            self.codegen(p2, opt, None, fl)
            self.jump_to_here(pcommit)

    def code_and(self, tree: Node, tt: Optional[int]) -> None:
        full = Charset.full()
        n = fixed_len(tree)
        if n is not None and n <= MAXBEHIND and not has_captures(tree):
            self.codegen(tree, False, tt, full)
            if n > 0:
                self.add(Opcode.BEHIND, n)
        else:
            pchoice = self.add_offset(Opcode.CHOICE)
            self.codegen(tree, False, tt, full)
            pcommit = self.add_offset(Opcode.BACKCOMMIT)
            self.jump_to_here(pchoice)
            self.add(Opcode.FAIL)
            self.jump_to_here(pcommit)

    def code_capture(self, tree: Node, tt: Optional[int], fl: Charset) -> None:
        body: Node = tree.sib1  # type: ignore[assignment]
        length = fixed_len(body)
        if length is not None and length <= MAXOFF and not has_captures(body):
            self.codegen(body, False, tt, fl)
            self.add_capture(Opcode.FULLCAPTURE, tree.cap, tree.key, length)
        else:
            self.add_capture(Opcode.OPENCAPTURE, tree.cap, tree.key, 0)
            self.codegen(body, False, tt, fl)
            self.add_capture(Opcode.CLOSECAPTURE, CapKind.CLOSE, None, 0)

    def code_runtime(self, tree: Node, tt: Optional[int]) -> None:
        self.add_capture(Opcode.OPENCAPTURE, CapKind.GROUP, tree.key, 0)
        self.codegen(tree.sib1, False, tt, Charset.full())  # type: ignore[arg-type]
        self.add_capture(Opcode.CLOSERUNTIME, CapKind.CLOSE, None, 0)

    def code_rep(self, tree: Node, opt: bool, fl: Charset) -> None:
        full = Charset.full()
        st = to_charset(tree)
        if st is not None:
            self.add(Opcode.SPAN, cs=st)
            return
        st, e1 = get_first(tree, full)
        if head_fail(tree) or (not e1 and st.isdisjoint(fl)):
            test = self.code_test_set(st, 0)
            self.codegen(tree, False, test, full)
            jmp = self.add_offset(Opcode.JMP)
            self.jump_to_here(test)
            self.jump_to_there(jmp, test)  # type: ignore[arg-type]
        else:
            test = self.code_test_set(st, e1)
            pchoice = None
            if opt:
                self.jump_to_here(self.add_offset(Opcode.PARTIALCOMMIT))
            else:
                pchoice = self.add_offset(Opcode.CHOICE)
            l2 = self.here()
            self.codegen(tree, False, None, full)
            commit = self.add_offset(Opcode.PARTIALCOMMIT)
            self.jump_to_there(commit, l2)
            self.jump_to_here(pchoice)
            self.jump_to_here(test)

    def code_not(self, tree: Node) -> None:
        full = Charset.full()
        st, e = get_first(tree, full)
        test = self.code_test_set(st, e)
        if head_fail(tree):
            self.add(Opcode.FAIL)
        else:
            pchoice = self.add_offset(Opcode.CHOICE)
            self.codegen(tree, False, None, full)
            self.add(Opcode.FAILTWICE)
            self.jump_to_here(pchoice)
        self.jump_to_here(test)

    def correct_calls(self, positions: Dict[int, int], start: int, end: int) -> None:
        """Turn open calls into calls (or tail-call jumps) to their rules."""
        code = self.code
        for i in range(start, end):
            inst = code[i]
            if inst.code != Opcode.OPENCALL:
                continue
            rule = positions[inst.key]
            if code[_final_target(code, i + 1)].code == Opcode.RET:
                inst.code = Opcode.JMP
            else:
                inst.code = Opcode.CALL
            self.jump_to_there(i, rule)

    def code_grammar(self, grammar: Node) -> None:
        full = Charset.full()
        positions: Dict[int, int] = {}
        first_call = self.add_offset(Opcode.CALL)
        jump_to_end = self.add_offset(Opcode.JMP)
        start = self.here()
        self.jump_to_here(first_call)
        rule: Node = grammar.sib1  # type: ignore[assignment]
        while rule.tag == Tag.RULE:
            positions[rule.cap] = self.here()
            self.codegen(rule.sib1, False, None, full)  # type: ignore[arg-type]
            self.add(Opcode.RET)
            rule = rule.sib2  # type: ignore[assignment]
        self.jump_to_here(jump_to_end)
        self.correct_calls(positions, start, self.here())

    def code_call(self, call: Node) -> None:
        rule: Node = call.sib2  # type: ignore[assignment]
        self.add(Opcode.OPENCALL, key=rule.cap)

    def code_seq1(self, p1: Node, p2: Node, tt: Optional[int],
                  fl: Charset) -> Optional[int]:
        if need_follow(p1):
            fl1, _ = get_first(p2, fl)
            self.codegen(p1, False, tt, fl1)
        else:
            self.codegen(p1, False, tt, Charset.full())
        if fixed_len(p1) != 0:
            return None
        return tt

    def codegen(self, tree: Node, opt: bool, tt: Optional[int],
                fl: Charset) -> None:
        while True:
            tag = tree.tag
            if tag == Tag.SEQ:
                tt = self.code_seq1(tree.sib1, tree.sib2, tt, fl)  # type: ignore[arg-type]
                tree = tree.sib2  # type: ignore[assignment]
                continue
            if tag == Tag.CHAR:
                self.code_char(tree.n, tt)
            elif tag == Tag.ANY:
                self.add(Opcode.ANY)
            elif tag == Tag.SET:
                self.code_charset(tree.cs, tt)  # type: ignore[arg-type]
            elif tag == Tag.TRUE:
                pass
            elif tag == Tag.FALSE:
                self.add(Opcode.FAIL)
            elif tag == Tag.CHOICE:
                self.code_choice(tree.sib1, tree.sib2, opt, fl)  # type: ignore[arg-type]
            elif tag == Tag.REP:
                self.code_rep(tree.sib1, opt, fl)  # type: ignore[arg-type]
            elif tag == Tag.BEHIND:
                self.code_behind(tree)
            elif tag == Tag.NOT:
                self.code_not(tree.sib1)  # type: ignore[arg-type]
            elif tag == Tag.AND:
                self.code_and(tree.sib1, tt)  # type: ignore[arg-type]
            elif tag == Tag.CAPTURE:
                self.code_capture(tree, tt, fl)
            elif tag == Tag.RUNTIME:
                self.code_runtime(tree, tt)
            elif tag == Tag.GRAMMAR:
                self.code_grammar(tree)
            elif tag == Tag.CALL:
                self.code_call(tree)
            else:
                raise ValueError(f"cannot compile node {tag.name}")
            return

    def peephole(self) -> None:
        """Send jumps straight to their final destinations."""
        code = self.code
        i = 0
        while i < len(code):
            inst = code[i]
            if inst.code in LABELLED and inst.code != Opcode.JMP:
                if inst.target is not None:
                    inst.target = _final_label(code, i)
            elif inst.code == Opcode.JMP:
                ft = _final_target(code, i)
                dest = code[ft]
                if dest.code in (Opcode.RET, Opcode.FAIL, Opcode.FAILTWICE,
                                 Opcode.END):
                    code[i] = dataclasses.replace(dest)
                elif dest.code in (Opcode.COMMIT, Opcode.PARTIALCOMMIT,
                                   Opcode.BACKCOMMIT):
                    code[i] = dataclasses.replace(dest, target=_final_label(code, ft))
                    continue  # re-optimize the new instruction's label
                else:
                    inst.target = ft
            i += 1


def _final_target(code: List[Instruction], i: int) -> int:
    while code[i].code == Opcode.JMP:
        i = code[i].target  # type: ignore[assignment]
    return i


def _final_label(code: List[Instruction], i: int) -> int:
    return _final_target(code, code[i].target)  # type: ignore[arg-type]


def compile_tree(tree: Node) -> List[Instruction]:
    """Compile a fixed pattern tree into a list of instructions ending in END."""
    compiler = _Compiler()
    compiler.codegen(tree, False, None, Charset.full())
    compiler.add(Opcode.END)
    compiler.peephole()
    return compiler.code