"""BF-Lang entry point and REPL wiring."""

from __future__ import annotations
import argparse
import sys
from typing import Callable, List, Optional

from helptext import TOPICS, explain
from interpreter import (
    MAX_ITERATIONS,
    ArithmeticMode,
    BFRuntimeError,
    Interpreter,
    Tape,
    TracebackFormatter,
    new_tape,
)
from lexer import BFError, BFFileError, BFParsingError, BFSyntaxError, InstructionSet, load_source


PROMPT = "\x1b[38;2;153;221;255m>>>\033[0m "
CONTINUATION_PROMPT = "\x1b[38;2;153;221;255m..>\033[0m "


def _report(interpreter: Interpreter, error: BFError, *, traceback_json: bool = False) -> None:
    if isinstance(error, BFSyntaxError):
        print(f"SyntaxError: {error}", file=sys.stderr)
        return
    if isinstance(error, BFParsingError):
        print(f"ParsingError: {error}", file=sys.stderr)
        return
    if isinstance(error, BFFileError):
        print(f"FileError: {error}", file=sys.stderr)
        return
    formatter = TracebackFormatter(interpreter)
    print(formatter.format_text(error, verbose=interpreter.verbose), file=sys.stderr)
    if traceback_json:
        print(formatter.to_json(error), file=sys.stderr)


def _open_depth(text: str) -> int:
    return text.count("[") - text.count("]")


def run_repl(interpreter: Interpreter, read_line: Callable[[str], str] = input) -> int:
    print("\x1b[38;2;153;221;255mBF-Lang\033[0m REPL. Each line runs against the same tape; an open '[' continues onto the next line.")
    pointer = 0
    tape: Tape = new_tape()
    buffer: List[str] = []

    while True:
        try:
            line = read_line(PROMPT if not buffer else CONTINUATION_PROMPT)
        except EOFError:
            print()
            break

        if buffer and line.strip() == "":
            source_text = "\n".join(buffer)
            buffer.clear()
        else:
            buffer.append(line)
            source_text = "\n".join(buffer)
            if _open_depth(source_text) > 0:
                continue
            buffer.clear()

        try:
            result = interpreter.run(source_text, pointer, tape)
        except BFError as error:
            # The committed state stays as it was before this line.
            _report(interpreter, error)
            continue
        pointer, tape = result.pointer, result.tape
        if result.output and not result.output.endswith(b"\n"):
            print()

    return 0


def build_arg_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="BF-Lang reference interpreter")
    parser.add_argument("program", nargs="?", help="Source file path or literal source with -source")
    parser.add_argument("-source", "--source", dest="source_mode", action="store_true", help="Treat program argument as literal source text")
    parser.add_argument("-extended", "--extended", dest="extended", action="store_true", help="Enable the ':' and ';' instructions")
    parser.add_argument("-unsafe", "--unsafe", dest="unsafe", action="store_true", help="Wrap pointer and cell values instead of failing")
    parser.add_argument("--max-iterations", type=int, default=MAX_ITERATIONS, help="Maximum back-jumps of a single loop")
    parser.add_argument("-verbose", "--verbose", dest="verbose", action="store_true", help="Include recent states in error reports")
    parser.add_argument("--traceback-json", action="store_true", help="Also emit JSON error report")
    parser.add_argument("--explain", choices=sorted(TOPICS), help="Print the explanation for an error kind and exit")
    return parser


def _make_interpreter(args: argparse.Namespace, filename: str) -> Interpreter:
    return Interpreter(
        filename=filename,
        instruction_set=InstructionSet.EXTENDED if args.extended else InstructionSet.BASE,
        mode=ArithmeticMode.UNSAFE if args.unsafe else ArithmeticMode.SAFE,
        max_iterations=args.max_iterations,
        verbose=args.verbose,
    )


def run_cli(argv: Optional[List[str]] = None) -> int:
    args = build_arg_parser().parse_args(argv)

    if args.explain:
        print(explain(args.explain))
        return 0

    if args.max_iterations < 0:
        print("--max-iterations must be non-negative", file=sys.stderr)
        return 1

    if args.program is None:
        if args.source_mode:
            print("-source requires a program string", file=sys.stderr)
            return 1
        return run_repl(_make_interpreter(args, "<repl>"))

    filename = "<string>" if args.source_mode else args.program
    interpreter = _make_interpreter(args, filename)
    try:
        source_text = args.program if args.source_mode else load_source(filename)
        interpreter.run(source_text, 0, new_tape())
    except BFRuntimeError as error:
        _report(interpreter, error, traceback_json=args.traceback_json)
        return 1
    except BFError as error:
        _report(interpreter, error)
        return 1
    return 0


def main() -> None:
    raise SystemExit(run_cli())


if __name__ == "__main__":
    main()
