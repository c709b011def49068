# =============================================================================
# test_interpreter.py - Postfix Interpreter Unit Tests
# =============================================================================
# Tests for the stack virtual machine, driven by hand-written postfix
# programs in their textual form.
#
# Test coverage includes:
#   - Literals, variables, assignment
#   - Arithmetic with int/float narrowing, IEEE division
#   - Comparisons and boolean logic
#   - readln classification and writeln rendering
#   - Jumps
#   - Runtime failures: underflow, undefined names, operand types,
#     instruction ceiling, cancellation
# =============================================================================

import pytest
from mlang.interpreter import (
    DEFAULT_MAX_INSTRUCTIONS,
    Interpreter,
    VariableRef,
    format_value,
    run_program,
)
from mlang.literals import classify_input, format_float
from mlang.postfix import PostfixProgram
from mlang.tables import TableEntry
from mlang.errors import (
    ExecutionCancelledError,
    InterpreterError,
    OperandTypeError,
    RuntimeLimitExceededError,
    StackUnderflowError,
    UndefinedReferenceError,
)


# =============================================================================
# Helper Functions
# =============================================================================

def run_text(code: str, names=("x",), inputs=(), max_instructions=DEFAULT_MAX_INSTRUCTIONS) -> list[str]:
    """Run a textual postfix program and return its output lines."""
    return run_program(PostfixProgram.from_text(code), names, inputs, max_instructions)


# =============================================================================
# Arithmetic Tests
# =============================================================================

class TestArithmetic:
    """Test arithmetic with float computation and int narrowing."""

    @pytest.mark.parametrize("code,output", [
        ("1 2 + ~WL .", "3"),
        ("5 7 - ~WL .", "-2"),
        ("6 7 * ~WL .", "42"),
        ("7 2 / ~WL .", "3.5"),
        ("4 2 / ~WL .", "2"),
        ("1.5 2 * ~WL .", "3"),
        ("0.1 0.2 + ~WL .", "0.30000000000000004"),
        ("1E+20 10 * ~WL .", "1E+21"),
        ("1 3 / ~WL .", "0.3333333333333333"),
    ])
    def test_arithmetic(self, code, output):
        assert run_text(code) == [output]

    def test_division_by_zero(self):
        assert run_text("1 0 / ~WL .") == ["Infinity"]
        assert run_text("0 1 - 0 / ~WL .") == ["-Infinity"]
        assert run_text("0 0 / ~WL .") == ["NaN"]

    def test_integral_literal_is_int(self):
        interp = Interpreter()
        interp.load(PostfixProgram.from_text("@x 150.0 := ."), ["x"])
        interp.run(lambda line: None, lambda: "")
        assert interp.variables["x"] == 150
        assert isinstance(interp.variables["x"], int)

    def test_result_narrowed_to_int(self):
        interp = Interpreter()
        interp.load(PostfixProgram.from_text("@x 2.5 2 * := ."), ["x"])
        interp.run(lambda line: None, lambda: "")
        assert interp.variables["x"] == 5
        assert isinstance(interp.variables["x"], int)


# =============================================================================
# Comparison and Logic Tests
# =============================================================================

class TestLogic:
    """Test comparisons and boolean operators."""

    @pytest.mark.parametrize("code,output", [
        ("2 3 < ~WL .", "true"),
        ("2 3 > ~WL .", "false"),
        ("3 3 <= ~WL .", "true"),
        ("3 3.5 >= ~WL .", "false"),
        ("2 2.0 == ~WL .", "true"),
        ("2 3 != ~WL .", "true"),
        ("true false && ~WL .", "false"),
        ("true false || ~WL .", "true"),
        ("true ! ~WL .", "false"),
        ("true true == ~WL .", "true"),
        ("true false != ~WL .", "true"),
    ])
    def test_logic(self, code, output):
        assert run_text(code) == [output]

    def test_logic_requires_bools(self):
        with pytest.raises(OperandTypeError):
            run_text("1 true && ~WL .")

    def test_not_requires_bool(self):
        with pytest.raises(OperandTypeError):
            run_text("1 ! ~WL .")

    def test_arithmetic_rejects_bools(self):
        with pytest.raises(OperandTypeError):
            run_text("1 true + ~WL .")


# =============================================================================
# Variable and I/O Tests
# =============================================================================

class TestVariablesAndIO:
    """Test the variable store, readln and writeln."""

    def test_variables_start_at_zero(self):
        assert run_text("x ~WL .") == ["0"]

    def test_assignment(self):
        assert run_text("@x 5 := x ~WL .") == ["5"]

    def test_identifier_entries_accepted(self):
        output = run_program(PostfixProgram.from_text("y ~WL ."), [TableEntry(1, "y")])
        assert output == ["0"]

    @pytest.mark.parametrize("line,output", [
        ("42", "42"),
        ("  42  ", "42"),
        ("-7", "-7"),
        ("2.5", "2.5"),
        ("1e3", "1000"),
        ("TRUE", "true"),
        ("false", "false"),
        ("abc", "0"),
        ("", "0"),
    ])
    def test_read_classification(self, line, output):
        assert run_text("@x ~RL x ~WL .", inputs=[line]) == [output]

    def test_read_order(self):
        code = "@x ~RL @y ~RL x y - ~WL ."
        assert run_text(code, names=("x", "y"), inputs=["10", "3"]) == ["7"]

    def test_classify_input_types(self):
        assert classify_input("3") == 3 and isinstance(classify_input("3"), int)
        assert isinstance(classify_input("3.0"), float)
        assert classify_input("True") is True
        assert classify_input("inf") == 0

    def test_format_value(self):
        assert format_value(True) == "true"
        assert format_value(3) == "3"
        assert format_value(2.5) == "2.5"
        assert format_value(1e-05) == "1E-05"

    def test_format_float(self):
        assert format_float(100.0) == "100"
        assert format_float(1.5e-05) == "1.5E-05"
        assert format_float(-2.5) == "-2.5"

    def test_writes_each_value(self):
        assert run_text("1 ~WL 2 ~WL .") == ["1", "2"]


# =============================================================================
# Jump Tests
# =============================================================================

class TestJumps:
    """Test conditional and unconditional jumps."""

    BRANCH = "{cond} 7 @F 1 ~WL 9 @! 2 ~WL ."

    def test_jump_if_false_taken(self):
        assert run_text(self.BRANCH.format(cond="false")) == ["2"]

    def test_jump_if_false_not_taken(self):
        assert run_text(self.BRANCH.format(cond="true")) == ["1"]

    def test_loop(self):
        # x := 0; while (x < 3) { writeln x; x := x + 1 }
        code = "@x 0 := x 3 < 17 @F x ~WL @x x 1 + := 3 @! ."
        assert run_text(code) == ["0", "1", "2"]

    def test_jump_requires_bool_condition(self):
        with pytest.raises(OperandTypeError):
            run_text("1 4 @F .")

    def test_jump_target_must_be_int(self):
        with pytest.raises(OperandTypeError):
            run_text("2.5 @! .")

    def test_jump_target_out_of_range(self):
        with pytest.raises(InterpreterError):
            run_text("99 @! .")


# =============================================================================
# Runtime Failure Tests
# =============================================================================

class TestRuntimeFailures:
    """Test that every failure aborts execution with a descriptive error."""

    def test_stack_underflow(self):
        with pytest.raises(StackUnderflowError) as exc_info:
            run_text("+ .")
        assert exc_info.value.instruction_index == 0
        assert "instruction #0" in str(exc_info.value)

    def test_undefined_variable(self):
        with pytest.raises(UndefinedReferenceError) as exc_info:
            run_text("y ~WL .")
        assert exc_info.value.name == "y"

    def test_placeholder_is_undefined(self):
        with pytest.raises(UndefinedReferenceError):
            run_text("? .")

    def test_assign_needs_reference(self):
        with pytest.raises(OperandTypeError):
            run_text("1 2 := .")

    def test_runtime_limit(self):
        with pytest.raises(RuntimeLimitExceededError) as exc_info:
            run_text("0 @!", max_instructions=1000)
        assert exc_info.value.limit == 1000

    def test_default_limit(self):
        assert Interpreter().max_instructions == 1_000_000

    def test_invalid_limit(self):
        with pytest.raises(ValueError):
            Interpreter(max_instructions=0)

    def test_missing_halt(self):
        with pytest.raises(InterpreterError):
            run_text("1 ~WL")

    def test_output_before_failure_is_kept(self):
        lines = []
        interp = Interpreter()
        interp.load(PostfixProgram.from_text("1 ~WL + ."), [])
        with pytest.raises(StackUnderflowError):
            interp.run(lines.append, lambda: "")
        assert lines == ["1"]


# =============================================================================
# Lifecycle Tests
# =============================================================================

class TestLifecycle:
    """Test load/run/cancel behaviour."""

    def test_cancel(self):
        interp = Interpreter()
        interp.load(PostfixProgram.from_text("@x ~RL x ~WL ."), ["x"])

        def read_and_cancel() -> str:
            interp.cancel()
            return "1"

        lines = []
        with pytest.raises(ExecutionCancelledError):
            interp.run(lines.append, read_and_cancel)
        assert lines == []

    def test_load_resets_state(self):
        interp = Interpreter()
        program = PostfixProgram.from_text("@x x 1 + := x ~WL .")
        outputs = []
        for _ in range(2):
            interp.load(program, ["x"])
            lines = []
            interp.run(lines.append, lambda: "")
            outputs.append(lines)
        assert outputs == [["1"], ["1"]]

    def test_run_again_without_load(self):
        interp = Interpreter()
        interp.load(PostfixProgram.from_text("@x x 1 + := x ~WL ."), ["x"])
        outputs = []
        for _ in range(2):
            lines = []
            assert interp.run(lines.append, lambda: "") == 8
            outputs.append(lines)
        assert outputs == [["1"], ["2"]]

    def test_load_clears_cancel(self):
        interp = Interpreter()
        interp.cancel()
        interp.load(PostfixProgram.from_text("."), [])
        assert interp.run(lambda line: None, lambda: "") == 1

    def test_run_returns_instruction_count(self):
        interp = Interpreter()
        interp.load(PostfixProgram.from_text("7 2 / ~WL ."), [])
        assert interp.run(lambda line: None, lambda: "") == 5
        assert interp.executed == 5
        assert interp.stack == ()

    def test_text_slots_accepted(self):
        interp = Interpreter()
        interp.load(["1", "~WL", "."], [])
        lines = []
        interp.run(lines.append, lambda: "")
        assert lines == ["1"]

    def test_variable_ref(self):
        assert str(VariableRef("x")) == "@x"
