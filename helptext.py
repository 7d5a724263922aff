"""Static explanations shown by ``bflang --explain``."""

from __future__ import annotations
from typing import Dict


GENERAL = """\
The language uses the characters '>', '<', '+', '-', '.', ',', '[' and ']'.
Any other characters are ignored.

At the start of a program a tape of 65536 byte cells is created, all zero,
together with a data pointer at cell 0.

  > : move the data pointer one cell to the right
  < : move the data pointer one cell to the left
  + : increment the cell at the data pointer
  - : decrement the cell at the data pointer
  . : output the cell at the data pointer as a byte
  , : read one character and store its first UTF-8 byte in the cell
  [ : if the cell is zero, jump past the matching ]
  ] : if the cell is non-zero, jump back to just after the matching [

With --extended two more instructions are active:
  : : print the cell as a decimal number
  ; : read one character and add its byte to the cell

Error kinds: syntax, overflow, parsing, iteration, file, internal."""

OVERFLOW = """\
An overflow or underflow error means a value left its range in safe mode.
At the data pointer, the pointer moved left of cell 0 (underflow) or right of
cell 65535 (overflow). At a cell index, the cell was taken below 0 (underflow)
or above 255 (overflow). Run with --unsafe to wrap around instead."""

SYNTAX = """\
A syntax error means the program is invalid. For a mismatched bracket, check
that the program contains as many '[' as ']' and that they nest."""

FILE = """\
A file error means the program could not be read from the supplied file.
Ensure that the file exists and that you have permission to read it."""

PARSING = """\
A parsing error means a character of the program could not be interpreted.
Ensure that the file is valid UTF-8 text."""

ITERATION = """\
An iteration error means a loop ran more times than allowed. Check the
program for loops that never bring their cell to zero, or raise the limit
with --max-iterations."""

INTERNAL = """\
An internal error means the interpreter itself failed. Please report it
together with the program that triggered it."""

TOPICS: Dict[str, str] = {
    "general": GENERAL,
    "overflow": OVERFLOW,
    "underflow": OVERFLOW,
    "syntax": SYNTAX,
    "file": FILE,
    "parsing": PARSING,
    "iteration": ITERATION,
    "internal": INTERNAL,
}


def explain(topic: str) -> str:
    return TOPICS[topic.lower()]
