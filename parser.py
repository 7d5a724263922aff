from __future__ import annotations
from dataclasses import dataclass, field
from typing import Dict, List

from lexer import BFSyntaxError, InstructionSet, Lexer, Op, locate


LOOP_OPEN = "["
LOOP_CLOSE = "]"


def validate(program: str, filename: str = "<string>") -> None:
    """Check that every loop-open has a loop-close and vice versa.

    This is a single counting pass, not a stack walk: on imbalance it reports
    the most recently seen bracket of the surplus kind, which is always *an*
    offending bracket but not necessarily the innermost unmatched one.
    """
    depth = 0
    last_open = -1
    last_close = -1
    for index, ch in enumerate(program):
        if ch == LOOP_OPEN:
            depth += 1
            last_open = index
        elif ch == LOOP_CLOSE:
            depth -= 1
            last_close = index
    if depth > 0:
        raise BFSyntaxError(
            f"Unmatched '{LOOP_OPEN}'",
            offset=last_open,
            char=LOOP_OPEN,
            location=locate(last_open, program, filename),
        )
    if depth < 0:
        raise BFSyntaxError(
            f"Unmatched '{LOOP_CLOSE}'",
            offset=last_close,
            char=LOOP_CLOSE,
            location=locate(last_close, program, filename),
        )


def match_bracket(start_index: int, program: str) -> int:
    """Find the partner of the bracket at ``start_index`` by depth counting.

    Loop-closes scan backwards; anything else scans forwards. Returns 0 when no
    partner exists, which cannot happen once ``validate`` has passed.
    """
    depth = 0
    if program[start_index] == LOOP_CLOSE:
        indices = range(start_index, -1, -1)
    else:
        indices = range(start_index, len(program))
    for i in indices:
        ch = program[i]
        if ch == LOOP_OPEN:
            depth += 1
        elif ch == LOOP_CLOSE:
            depth -= 1
        if depth == 0:
            return i
    return 0


def build_jump_table(program: str, filename: str = "<string>") -> Dict[int, int]:
    """Precompute every bracket pair in one pass.

    Agrees with ``match_bracket`` for every bracket of a balanced program.
    Also rejects brackets that balance by count but close before they open.
    """
    table: Dict[int, int] = {}
    stack: List[int] = []
    for index, ch in enumerate(program):
        if ch == LOOP_OPEN:
            stack.append(index)
        elif ch == LOOP_CLOSE:
            if not stack:
                raise BFSyntaxError(
                    f"Unmatched '{LOOP_CLOSE}'",
                    offset=index,
                    char=LOOP_CLOSE,
                    location=locate(index, program, filename),
                )
            start = stack.pop()
            table[start] = index
            table[index] = start
    if stack:
        raise BFSyntaxError(
            f"Unmatched '{LOOP_OPEN}'",
            offset=stack[-1],
            char=LOOP_OPEN,
            location=locate(stack[-1], program, filename),
        )
    return table


@dataclass
class Program:
    source: str
    filename: str
    ops: List[Op]
    jumps: Dict[int, int] = field(default_factory=dict)

    def __len__(self) -> int:
        return len(self.ops)


class Parser:
    def __init__(self, source: str, filename: str, *, instruction_set: InstructionSet = InstructionSet.BASE) -> None:
        self.source = source
        self.filename = filename
        self.instruction_set = instruction_set

    def parse(self) -> Program:
        ops = Lexer(self.source, self.filename, self.instruction_set).tokenize()
        validate(self.source, self.filename)
        return Program(source=self.source, filename=self.filename, ops=ops, jumps=build_jump_table(self.source, self.filename))
