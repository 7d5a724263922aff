"""Tests for bracket validation, matching and the jump table."""

import pytest

from lexer import BFSyntaxError, InstructionSet, Op
from parser import Parser, build_jump_table, match_bracket, validate


class TestValidate:
    def test_balanced(self):
        validate("[[]]")

    def test_no_brackets(self):
        validate("+-.,<>")

    def test_unmatched_open_reports_last_open(self):
        with pytest.raises(BFSyntaxError) as info:
            validate("[[]")
        assert info.value.offset == 1
        assert info.value.char == "["

    def test_unmatched_close(self):
        with pytest.raises(BFSyntaxError) as info:
            validate("]")
        assert info.value.offset == 0
        assert info.value.char == "]"

    def test_unmatched_close_reports_last_close(self):
        with pytest.raises(BFSyntaxError) as info:
            validate("[]]+]]")
        assert info.value.offset == 5

    def test_order_is_not_checked_only_counts(self):
        # The counting pass accepts this; depth ends at zero.
        validate("][")

    def test_location_is_resolved(self):
        with pytest.raises(BFSyntaxError) as info:
            validate("++\n+]", "prog.bf")
        loc = info.value.location
        assert (loc.file, loc.line, loc.column) == ("prog.bf", 2, 2)
        assert str(info.value) == "Unmatched ']' at prog.bf:2:2"


class TestMatchBracket:
    def test_forward_and_backward(self):
        program = "[>+<-]"
        assert match_bracket(0, program) == 5
        assert match_bracket(5, program) == 0

    def test_nested(self):
        program = "+[[-]>[-]]"
        assert match_bracket(1, program) == 9
        assert match_bracket(9, program) == 1
        assert match_bracket(2, program) == 4
        assert match_bracket(6, program) == 8
        assert match_bracket(8, program) == 6

    def test_no_partner_falls_back_to_zero(self):
        assert match_bracket(1, "+[+") == 0


class TestJumpTable:
    @pytest.mark.parametrize(
        "program",
        ["[]", "[>+<-]", "+[[-]>[-]]", "[[[]]][[]]", "a[b[c]d]e"],
    )
    def test_agrees_with_match_bracket(self, program):
        table = build_jump_table(program)
        for index, ch in enumerate(program):
            if ch in "[]":
                assert table[index] == match_bracket(index, program)

    def test_rejects_unbalanced(self):
        with pytest.raises(BFSyntaxError):
            build_jump_table("[")
        with pytest.raises(BFSyntaxError):
            build_jump_table("][")

    def test_close_before_open_carries_location(self):
        with pytest.raises(BFSyntaxError) as info:
            build_jump_table("+\n]+[", "prog.bf")
        loc = info.value.location
        assert info.value.offset == 2
        assert (loc.file, loc.line, loc.column) == ("prog.bf", 2, 1)


class TestParser:
    def test_parse_builds_program(self):
        program = Parser("+[-]:", "<string>", instruction_set=InstructionSet.EXTENDED).parse()
        assert len(program) == 5
        assert program.ops[-1] is Op.PRINT_DECIMAL
        assert program.jumps == {1: 3, 3: 1}

    def test_parse_validates(self):
        with pytest.raises(BFSyntaxError):
            Parser("+[", "<string>").parse()

    def test_parse_rejects_misordered_brackets_with_location(self):
        with pytest.raises(BFSyntaxError) as info:
            Parser("+]+[", "<string>").parse()
        assert info.value.char == "]"
        assert str(info.value) == "Unmatched ']' at <string>:1:2"
