"""
Driver tests for the `polytac` command.
"""

import pytest

from polytac import main


@pytest.fixture
def answers(monkeypatch):
    """Feed scripted replies to input() and record the prompts."""
    prompts = []

    def install(*replies):
        queue = list(replies)

        def fake_input(prompt=""):
            prompts.append(prompt)
            if not queue:
                raise EOFError
            return queue.pop(0)

        monkeypatch.setattr("builtins.input", fake_input)
        return prompts

    return install


class TestArithmeticMode:

    def test_emits_instructions(self, capsys):
        assert main(["1 + 2 * 3", "-m", "arithmetic"]) == 0
        out = capsys.readouterr().out
        assert out == "Generated Instructions:\nMUL 2 3 -> t0\nADD 1 t0 -> t1\n"

    def test_bare_literal_emits_heading_only(self, capsys):
        main(["5", "-m", "1"])
        assert capsys.readouterr().out == "Generated Instructions:\n"

    def test_extended_call(self, capsys):
        main(["raghav(a, b)", "-m", "1", "-x"])
        assert capsys.readouterr().out.splitlines()[1] == "FUSED_BINARY a b -> t0"


class TestPolynomialMode:

    def test_values_from_flags(self, capsys):
        main(["2x + 1", "-m", "polynomial", "--var", "x=3"])
        assert capsys.readouterr().out == (
            "Instructions and results:\n"
            "MUL 2 x -> t0 = 6\n"
            "ADD t0 1 -> t1 = 7\n"
            "Final result: 7\n"
        )

    def test_prompts_in_discovery_order(self, capsys, answers):
        prompts = answers("2", "y*x + y", "4", "0.5")
        main([])
        assert prompts == [
            "Select mode (1: arithmetic, 2: polynomial): ",
            "Enter polynomial expression: ",
            "Enter value for y: ",
            "Enter value for x: ",
        ]
        assert capsys.readouterr().out.splitlines()[-1] == "Final result: 6"

    def test_only_unbound_variables_prompted(self, capsys, answers):
        prompts = answers("5")
        main(["a + b", "-m", "2", "--var", "a=1"])
        assert prompts == ["Enter value for b: "]
        assert "Final result: 6" in capsys.readouterr().out

    def test_bare_variable(self, capsys, answers):
        answers("9")
        main(["z", "-m", "2"])
        assert capsys.readouterr().out == "Instructions and results:\nFinal result: 9\n"

    def test_division_by_zero_is_a_value(self, capsys):
        main(["1/0", "-m", "2"])
        assert capsys.readouterr().out.splitlines()[-1] == "Final result: inf"


class TestFailures:
    """Errors are reported once on stderr and the driver still exits cleanly."""

    def test_syntax_error(self, capsys):
        assert main(["(2+3", "-m", "1"]) == 0
        captured = capsys.readouterr()
        assert captured.out == ""
        assert captured.err.strip() == "Syntax error (col 5): missing closing parenthesis"

    def test_undefined_multi_letter_variable(self, capsys):
        assert main(["2 xy", "-m", "2"]) == 0
        assert "undefined variable 'xy'" in capsys.readouterr().err

    def test_bad_prompted_value(self, capsys, answers):
        answers("abc")
        assert main(["x + 1", "-m", "2"]) == 0
        assert "invalid value for x" in capsys.readouterr().err

    def test_unknown_mode(self, capsys, answers):
        answers("7")
        assert main(["1"]) == 0
        assert "unknown mode '7'" in capsys.readouterr().err

    def test_end_of_input(self, capsys, answers):
        answers()
        assert main([]) == 0
        assert "unexpected end of input" in capsys.readouterr().err

    def test_bad_var_flag(self, capsys):
        with pytest.raises(SystemExit):
            main(["x", "-m", "2", "--var", "x"])
        assert "expected NAME=VALUE" in capsys.readouterr().err

    def test_depth_flag(self, capsys):
        main(["((1))", "-m", "1", "--max-depth", "2"])
        assert "maximum depth of 2" in capsys.readouterr().err

    def test_raised_depth_flag_with_deep_nesting(self, capsys):
        deep = "(" * 3000 + "1" + ")" * 3000
        assert main([deep, "-m", "1", "--max-depth", "100000"]) == 0
        captured = capsys.readouterr()
        assert captured.out == ""
        assert "recursion limit" in captured.err
