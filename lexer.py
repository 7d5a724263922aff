from __future__ import annotations
from dataclasses import dataclass
from enum import Enum
from typing import Dict, List, Optional, Tuple


class BFError(Exception):
    """Base class for interpreter errors."""

    def __init__(self, message: str, *, location: Optional[SourceLocation] = None) -> None:
        super().__init__(message)
        self.message = message
        self.location = location

    def __str__(self) -> str:
        if self.location is None:
            return self.message
        return f"{self.message} at {self.location.file}:{self.location.line}:{self.location.column}"


class BFSyntaxError(BFError):
    """Raised when a program has an unmatched bracket."""

    def __init__(self, message: str, *, offset: int, char: str, location: Optional[SourceLocation] = None) -> None:
        super().__init__(message, location=location)
        self.offset = offset
        self.char = char


class BFParsingError(BFError):
    """Raised when a character of the program cannot be decoded."""

    def __init__(self, message: str, *, offset: int, location: Optional[SourceLocation] = None) -> None:
        super().__init__(message, location=location)
        self.offset = offset


class BFFileError(BFError):
    """Raised when program source cannot be read from its origin."""

    def __init__(self, message: str, *, path: str) -> None:
        super().__init__(message)
        self.path = path


@dataclass
class SourceLocation:
    file: str
    line: int
    column: int
    offset: int
    char: str


class Op(Enum):
    RIGHT = ">"
    LEFT = "<"
    INC = "+"
    DEC = "-"
    OUTPUT = "."
    INPUT = ","
    LOOP_OPEN = "["
    LOOP_CLOSE = "]"
    PRINT_DECIMAL = ":"
    ACCUMULATE = ";"
    INERT = ""


BASE_OPS: Tuple[Op, ...] = (
    Op.RIGHT,
    Op.LEFT,
    Op.INC,
    Op.DEC,
    Op.OUTPUT,
    Op.INPUT,
    Op.LOOP_OPEN,
    Op.LOOP_CLOSE,
)

EXTENDED_OPS: Tuple[Op, ...] = BASE_OPS + (Op.PRINT_DECIMAL, Op.ACCUMULATE)


class InstructionSet(Enum):
    BASE = "base"
    EXTENDED = "extended"

    @property
    def table(self) -> Dict[str, Op]:
        return _TABLES[self]

    def classify(self, ch: str) -> Op:
        return self.table.get(ch, Op.INERT)


_TABLES: Dict[InstructionSet, Dict[str, Op]] = {
    InstructionSet.BASE: {op.value: op for op in BASE_OPS},
    InstructionSet.EXTENDED: {op.value: op for op in EXTENDED_OPS},
}


def resolve_location(offset: int, program: str) -> Tuple[int, int]:
    """Map an offset into ``program`` to a 1-based (line, column) pair."""
    line = program.count("\n", 0, offset) + 1
    column = offset - program.rfind("\n", 0, offset)
    return line, column


def locate(offset: int, program: str, filename: str) -> SourceLocation:
    line, column = resolve_location(offset, program)
    char = program[offset] if 0 <= offset < len(program) else ""
    return SourceLocation(file=filename, line=line, column=column, offset=offset, char=char)


class Lexer:
    """Turns program text into the per-offset instruction list used by the engine.

    Every offset of the source maps to exactly one ``Op`` so cursor positions,
    bracket offsets and diagnostic locations all share one index space.
    """

    def __init__(self, text: str, filename: str, instruction_set: InstructionSet = InstructionSet.BASE) -> None:
        self.text = text
        self.filename = filename
        self.instruction_set = instruction_set

    def tokenize(self) -> List[Op]:
        table = self.instruction_set.table
        ops: List[Op] = []
        ops_append = ops.append
        for index, ch in enumerate(self.text):
            if "\ud800" <= ch <= "\udfff":
                raise BFParsingError(
                    f"Character at offset {index} is not a valid Unicode scalar value",
                    offset=index,
                    location=locate(index, self.text, self.filename),
                )
            ops_append(table.get(ch, Op.INERT))
        return ops


def decode_source(data: bytes, filename: str) -> str:
    """Decode UTF-8 program bytes, reporting the first bad byte as a parsing error."""
    try:
        return data.decode("utf-8")
    except UnicodeDecodeError as exc:
        prefix = data[: exc.start].decode("utf-8")
        offset = len(prefix)
        line, column = resolve_location(offset, prefix)
        location = SourceLocation(file=filename, line=line, column=column, offset=offset, char="")
        raise BFParsingError(
            f"Byte 0x{data[exc.start]:02x} cannot be decoded as UTF-8",
            offset=offset,
            location=location,
        ) from exc


def load_source(path: str) -> str:
    try:
        with open(path, "rb") as handle:
            data = handle.read()
    except OSError as exc:
        raise BFFileError(f"Failed to read {path}: {exc.strerror or exc}", path=path) from exc
    return decode_source(data, path)
