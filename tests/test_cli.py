"""Tests for the command line entry point and the REPL."""

import json

import pytest

from bflang import run_cli, run_repl
from helptext import TOPICS, explain
from interpreter import ArithmeticMode, Interpreter
from lexer import InstructionSet


def _lines(*lines):
    feed = iter(lines)

    def read_line(prompt):
        try:
            return next(feed)
        except StopIteration:
            raise EOFError

    return read_line


class TestRunCli:
    def test_literal_source(self, capsys):
        assert run_cli(["-source", "+" * 65 + "."]) == 0
        assert capsys.readouterr().out == "A"

    def test_file_source(self, tmp_path, capsys):
        path = tmp_path / "hello.bf"
        path.write_text("+" * 72 + ".", encoding="utf-8")
        assert run_cli([str(path)]) == 0
        assert capsys.readouterr().out == "H"

    def test_missing_file(self, tmp_path, capsys):
        assert run_cli([str(tmp_path / "missing.bf")]) == 1
        assert capsys.readouterr().err.startswith("FileError: Failed to read")

    def test_undecodable_file(self, tmp_path, capsys):
        path = tmp_path / "bad.bf"
        path.write_bytes(b"+\xff")
        assert run_cli([str(path)]) == 1
        assert "ParsingError:" in capsys.readouterr().err

    def test_syntax_error(self, capsys):
        assert run_cli(["-source", "+["]) == 1
        assert capsys.readouterr().err.strip() == "SyntaxError: Unmatched '[' at <string>:1:2"

    def test_misordered_brackets(self, capsys):
        assert run_cli(["-source", "+]+["]) == 1
        assert capsys.readouterr().err.strip() == "SyntaxError: Unmatched ']' at <string>:1:2"

    def test_runtime_error_traceback(self, capsys):
        assert run_cli(["-source", "<"]) == 1
        err = capsys.readouterr().err
        assert 'File "<string>", line 1, column 1' in err
        assert "BFUnderflowError: Pointer underflow" in err

    def test_traceback_json(self, capsys):
        assert run_cli(["-source", "<", "--traceback-json"]) == 1
        err = capsys.readouterr().err
        payload = json.loads(err[err.index("{"):])
        assert payload["error"]["type"] == "BFUnderflowError"

    def test_unsafe_flag(self, capsys):
        assert run_cli(["-unsafe", "-source", "--", "-" * 191 + "."]) == 0
        assert capsys.readouterr().out == "A"

    def test_extended_flag(self, capsys):
        assert run_cli(["-source", "+++:", "--extended"]) == 0
        assert capsys.readouterr().out == "3"

    def test_max_iterations_flag(self, capsys):
        assert run_cli(["-source", "+[]", "--max-iterations", "5"]) == 1
        assert "BFIterationError" in capsys.readouterr().err

    def test_negative_max_iterations(self, capsys):
        assert run_cli(["-source", "+", "--max-iterations", "-1"]) == 1

    def test_source_mode_needs_program(self, capsys):
        assert run_cli(["-source"]) == 1
        assert "-source requires a program string" in capsys.readouterr().err

    def test_explain(self, capsys):
        assert run_cli(["--explain", "iteration"]) == 0
        assert "iteration error" in capsys.readouterr().out

    def test_explain_rejects_unknown_topic(self):
        with pytest.raises(SystemExit):
            run_cli(["--explain", "nonsense"])


class TestHelpText:
    def test_every_topic_has_text(self):
        for topic in TOPICS:
            assert explain(topic).strip()

    def test_lookup_is_case_insensitive(self):
        assert explain("Overflow") == explain("overflow")


class TestRepl:
    def _interpreter(self, out, **kwargs):
        return Interpreter(filename="<repl>", output_sink=out.extend, **kwargs)

    def test_state_carries_across_lines(self, capsys):
        out = bytearray()
        interpreter = self._interpreter(out, instruction_set=InstructionSet.EXTENDED)
        assert run_repl(interpreter, _lines("+++", ">++", "<:")) == 0
        assert bytes(out) == b"3"

    def test_error_keeps_committed_state(self, capsys):
        out = bytearray()
        interpreter = self._interpreter(out, instruction_set=InstructionSet.EXTENDED)
        run_repl(interpreter, _lines("+++", "++<", "++:"))
        assert bytes(out) == b"5"
        assert "BFUnderflowError" in capsys.readouterr().err

    def test_open_loop_continues_on_next_line(self, capsys):
        out = bytearray()
        interpreter = self._interpreter(out, instruction_set=InstructionSet.EXTENDED)
        run_repl(interpreter, _lines("+++++", "[", "-]", ":"))
        assert bytes(out) == b"0"

    def test_blank_line_flushes_unbalanced_buffer(self, capsys):
        out = bytearray()
        interpreter = self._interpreter(out)
        run_repl(interpreter, _lines("[", ""))
        assert "SyntaxError: Unmatched '['" in capsys.readouterr().err

    def test_unsafe_mode_in_repl(self, capsys):
        out = bytearray()
        interpreter = self._interpreter(out, mode=ArithmeticMode.UNSAFE)
        run_repl(interpreter, _lines("<", "+."))
        assert bytes(out) == b"\x01"
