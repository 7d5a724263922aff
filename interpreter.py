from __future__ import annotations
import json
import sys
from collections import deque
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Deque, Dict, List, Optional, Union

import numpy as np
from numpy.typing import NDArray

from lexer import BFError, InstructionSet, Op, SourceLocation, locate
from parser import Parser, Program


TAPE_SIZE = 65536
POINTER_MAX = TAPE_SIZE - 1
CELL_MAX = 255
MAX_ITERATIONS = 65535
# Verbose mode keeps only the tail of the state log.
STATE_LOG_LIMIT = 32

Tape = NDArray[np.uint8]
InputProvider = Callable[[], Optional[str]]
OutputSink = Callable[[bytes], None]


class ArithmeticMode(Enum):
    SAFE = "safe"
    UNSAFE = "unsafe"


class BFRuntimeError(BFError):
    """Raised for faults during execution."""

    def __init__(self, message: str, *, location: Optional[SourceLocation] = None) -> None:
        super().__init__(message, location=location)
        self.step_index: Optional[int] = None


class BFOverflowError(BFRuntimeError):
    """The pointer or a cell would exceed its range in safe mode."""

    def __init__(self, message: str, *, target: Union[str, int], location: Optional[SourceLocation] = None) -> None:
        super().__init__(message, location=location)
        self.target = target


class BFUnderflowError(BFRuntimeError):
    """The pointer or a cell would drop below zero in safe mode."""

    def __init__(self, message: str, *, target: Union[str, int], location: Optional[SourceLocation] = None) -> None:
        super().__init__(message, location=location)
        self.target = target


class BFIterationError(BFRuntimeError):
    def __init__(self, message: str, *, limit: int, location: Optional[SourceLocation] = None) -> None:
        super().__init__(message, location=location)
        self.limit = limit


class BFInternalError(BFRuntimeError):
    pass


def new_tape() -> Tape:
    return np.zeros(TAPE_SIZE, dtype=np.uint8)


@dataclass
class ExecutionResult:
    pointer: int
    tape: Tape
    output: bytes = b""


@dataclass
class StateEntry:
    step_index: int
    state_id: str
    offset: Optional[int]
    instruction: str
    pointer: int
    cell: int


class StateLogger:
    def __init__(self, limit: int = STATE_LOG_LIMIT) -> None:
        self.entries: Deque[StateEntry] = deque(maxlen=limit)
        self.next_state_index = 0

    def record(self, *, offset: Optional[int], instruction: str, pointer: int, cell: int) -> StateEntry:
        step_index = self.next_state_index
        entry = StateEntry(
            step_index=step_index,
            state_id=f"s_{step_index:06d}",
            offset=offset,
            instruction=instruction,
            pointer=pointer,
            cell=cell,
        )
        self.entries.append(entry)
        self.next_state_index += 1
        return entry

    def reset(self) -> None:
        self.entries.clear()
        self.next_state_index = 0
        self.record(offset=None, instruction="<seed>", pointer=0, cell=0)


def _read_stdin_char() -> Optional[str]:
    return sys.stdin.read(1)


def _write_stdout(data: bytes) -> None:
    stream = sys.stdout
    stream.flush()
    buffer = getattr(stream, "buffer", None)
    if buffer is None:
        # Text-only stream: one character per byte.
        stream.write(data.decode("latin-1"))
        stream.flush()
        return
    buffer.write(data)
    buffer.flush()


class Interpreter:
    def __init__(
        self,
        *,
        filename: str = "<string>",
        instruction_set: InstructionSet = InstructionSet.BASE,
        mode: ArithmeticMode = ArithmeticMode.SAFE,
        max_iterations: int = MAX_ITERATIONS,
        verbose: bool = False,
        input_provider: Optional[InputProvider] = None,
        output_sink: Optional[OutputSink] = None,
    ) -> None:
        self.filename = filename
        self.instruction_set = instruction_set
        self.mode = mode
        self.max_iterations = max_iterations
        self.verbose = verbose
        self.input_provider = input_provider or _read_stdin_char
        self.output_sink = output_sink or _write_stdout
        self.logger = StateLogger()
        self.source = ""
        self.step_count = 0
        self.cursor: Optional[int] = None

    def parse(self, source: str) -> Program:
        return Parser(source, self.filename, instruction_set=self.instruction_set).parse()

    def run(self, source: str, pointer: int = 0, tape: Optional[Tape] = None) -> ExecutionResult:
        """Execute ``source`` against a copy of ``tape`` starting at ``pointer``.

        The caller's tape is never modified; the final state is returned in the
        result so a REPL can commit it only when the run succeeds.
        """
        self.source = source
        self.step_count = 0
        self.cursor = None
        self.logger.reset()
        program = self.parse(source)
        work = new_tape() if tape is None else np.array(tape, dtype=np.uint8, copy=True)
        if work.shape != (TAPE_SIZE,):
            raise ValueError(f"tape must hold exactly {TAPE_SIZE} cells")
        if not 0 <= pointer <= POINTER_MAX:
            raise ValueError(f"pointer must be within [0, {POINTER_MAX}]")
        output = bytearray()
        try:
            pointer = self._execute(program, pointer, work, output)
        except BFRuntimeError as error:
            error.step_index = self.step_count
            raise
        except Exception as exc:
            # Surface unexpected Python-level failures through the same error path.
            loc = locate(self.cursor, source, self.filename) if self.cursor is not None else None
            wrapped = BFInternalError(f"Internal interpreter error: {exc}", location=loc)
            wrapped.step_index = self.step_count
            raise wrapped from exc
        return ExecutionResult(pointer=pointer, tape=work, output=bytes(output))

    def _execute(self, program: Program, pointer: int, tape: Tape, output: bytearray) -> int:
        ops: List[Op] = program.ops
        jumps: Dict[int, int] = program.jumps
        safe = self.mode is ArithmeticMode.SAFE
        verbose = self.verbose
        record = self.logger.record
        emit = self._emit
        # One counter per active loop; the innermost loop is last.
        loop_counters: List[int] = []
        n = len(ops)
        i = 0

        while i < n:
            op = ops[i]
            if op is Op.INERT:
                i += 1
                continue
            self.step_count += 1
            self.cursor = i
            if verbose:
                record(offset=i, instruction=op.value, pointer=pointer, cell=int(tape[pointer]))

            if op is Op.RIGHT:
                if pointer == POINTER_MAX:
                    if safe:
                        raise BFOverflowError(
                            f"Pointer overflow: cannot move right of cell {POINTER_MAX}",
                            target="pointer",
                            location=self._locate(i),
                        )
                    pointer = 0
                else:
                    pointer += 1
            elif op is Op.LEFT:
                if pointer == 0:
                    if safe:
                        raise BFUnderflowError(
                            "Pointer underflow: cannot move left of cell 0",
                            target="pointer",
                            location=self._locate(i),
                        )
                    pointer = POINTER_MAX
                else:
                    pointer -= 1
            elif op is Op.INC:
                tape[pointer] = self._add(int(tape[pointer]), 1, pointer, i)
            elif op is Op.DEC:
                tape[pointer] = self._add(int(tape[pointer]), -1, pointer, i)
            elif op is Op.OUTPUT:
                emit(bytes((int(tape[pointer]),)), output)
            elif op is Op.PRINT_DECIMAL:
                emit(str(int(tape[pointer])).encode("ascii"), output)
            elif op is Op.INPUT:
                data = self._read_input()
                if data:
                    if safe:
                        tape[pointer] = data[0]
                    else:
                        for k, byte in enumerate(b for b in data if b != 0):
                            tape[(pointer + k) % TAPE_SIZE] = byte
            elif op is Op.ACCUMULATE:
                data = self._read_input()
                if data:
                    if safe:
                        tape[pointer] = self._add(int(tape[pointer]), data[0], pointer, i)
                    else:
                        for k, byte in enumerate(b for b in data if b != 0):
                            index = (pointer + k) % TAPE_SIZE
                            tape[index] = (int(tape[index]) + byte) % (CELL_MAX + 1)
            elif op is Op.LOOP_OPEN:
                if tape[pointer] == 0:
                    i = jumps[i]
                else:
                    loop_counters.append(0)
            elif op is Op.LOOP_CLOSE:
                if tape[pointer] != 0:
                    if not loop_counters:
                        loop_counters.append(0)
                    loop_counters[-1] += 1
                    if loop_counters[-1] > self.max_iterations:
                        raise BFIterationError(
                            f"Loop exceeded the maximum of {self.max_iterations} iterations",
                            limit=self.max_iterations,
                            location=self._locate(i),
                        )
                    i = jumps[i]
                elif loop_counters:
                    loop_counters.pop()
            i += 1

        return pointer

    def _add(self, value: int, delta: int, index: int, offset: int) -> int:
        result = value + delta
        if result > CELL_MAX:
            if self.mode is ArithmeticMode.SAFE:
                raise BFOverflowError(
                    f"Cell {index} overflow: value would exceed {CELL_MAX}",
                    target=index,
                    location=self._locate(offset),
                )
            return result % (CELL_MAX + 1)
        if result < 0:
            if self.mode is ArithmeticMode.SAFE:
                raise BFUnderflowError(
                    f"Cell {index} underflow: value would drop below 0",
                    target=index,
                    location=self._locate(offset),
                )
            return result % (CELL_MAX + 1)
        return result

    def _emit(self, data: bytes, output: bytearray) -> None:
        output.extend(data)
        self.output_sink(data)

    def _read_input(self) -> bytes:
        # A failed or empty read leaves the tape untouched.
        try:
            ch = self.input_provider()
        except (EOFError, OSError):
            return b""
        if not ch:
            return b""
        try:
            return ch[0].encode("utf-8")
        except UnicodeEncodeError:
            return b""

    def _locate(self, offset: int) -> SourceLocation:
        return locate(offset, self.source, self.filename)


@dataclass
class TracebackFrame:
    location: Optional[SourceLocation]
    state_entries: List[StateEntry] = field(default_factory=list)


class TracebackFormatter:
    def __init__(self, interpreter: Interpreter) -> None:
        self.interpreter = interpreter

    def build_frame(self, error: BFError) -> TracebackFrame:
        entries = list(self.interpreter.logger.entries) if self.interpreter.verbose else []
        return TracebackFrame(location=error.location, state_entries=entries)

    def format_text(self, error: BFError, verbose: bool) -> str:
        frame = self.build_frame(error)
        lines = ["Traceback (most recent call last):"]
        if frame.location:
            lines.append(
                f"  File \"{frame.location.file}\", line {frame.location.line}, column {frame.location.column}"
            )
            # Same line rule as resolve_location: only "\n" ends a line.
            source_lines = self.interpreter.source.split("\n")
            if 0 < frame.location.line <= len(source_lines):
                lines.append(f"    {source_lines[frame.location.line - 1]}")
                lines.append("    " + " " * (frame.location.column - 1) + "^")
        else:
            lines.append("  <unknown location>")
        step_index = getattr(error, "step_index", None)
        if step_index is not None:
            lines.append(f"    Failing step: {step_index}")
        if verbose:
            for entry in frame.state_entries:
                where = "-" if entry.offset is None else str(entry.offset)
                lines.append(
                    f"    {entry.state_id} offset={where} op={entry.instruction} ptr={entry.pointer} cell={entry.cell}"
                )
        lines.append(f"{error.__class__.__name__}: {error.message}")
        return "\n".join(lines)

    def to_json(self, error: BFError) -> str:
        frame = self.build_frame(error)
        data: Dict[str, Any] = {
            "error": {
                "type": error.__class__.__name__,
                "message": error.message,
                "failing_step_index": getattr(error, "step_index", None),
            },
        }
        if frame.location:
            data["error"]["source_location"] = {
                "file": frame.location.file,
                "line": frame.location.line,
                "column": frame.location.column,
                "offset": frame.location.offset,
            }
        data["states"] = [
            {
                "state_id": entry.state_id,
                "step_index": entry.step_index,
                "offset": entry.offset,
                "instruction": entry.instruction,
                "pointer": entry.pointer,
                "cell": entry.cell,
            }
            for entry in frame.state_entries
        ]
        return json.dumps(data, indent=2)
