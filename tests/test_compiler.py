# =============================================================================
# test_compiler.py - End-to-End Pipeline Tests
# =============================================================================
# Tests for the MLangCompiler facade: scan, parse and run whole programs
# and check the failure reporting of each stage.
# =============================================================================

import pytest
from mlang import __version__
from mlang.compiler import (
    CompilerOptions,
    CompilerResult,
    MLangCompiler,
    compile_source,
    run_source,
)
from mlang.errors import (
    InvalidLexemeError,
    MLangSyntaxError,
    RuntimeLimitExceededError,
    TypeMismatchError,
    UndeclaredUseError,
)
from mlang.interpreter import DEFAULT_MAX_INSTRUCTIONS


FACTORIAL = """
program var
  int n, i, factorial;
begin
  readln n;
  factorial := 1;
  for i := 1 to n step 1 begin
    factorial := factorial * i;
  end next;
  writeln factorial;
end.
"""


# =============================================================================
# Whole Program Tests
# =============================================================================

class TestPrograms:
    """Test complete programs through the whole pipeline."""

    def test_factorial(self):
        assert run_source(FACTORIAL, ["5"]) == ["120"]

    def test_factorial_of_zero(self):
        assert run_source(FACTORIAL, ["0"]) == ["1"]

    def test_division_yields_float(self):
        assert run_source("program var begin writeln 7 / 2 end.") == ["3.5"]

    def test_float_widening(self):
        source = "program var float f; begin f := 3; writeln f / 2 end."
        assert run_source(source) == ["1.5"]

    def test_read_two_values(self):
        source = "program var int a, b; begin readln a, b; writeln a + b end."
        assert run_source(source, ["2", "3"]) == ["5"]

    def test_bool_output(self):
        source = "program var bool p; begin p := 1 < 2; writeln p, !p end."
        assert run_source(source) == ["true", "false"]

    def test_step(self):
        source = "program var int i; begin for i := 1 to 10 step 3 writeln i next end."
        assert run_source(source) == ["1", "4", "7", "10"]

    def test_empty_for_range(self):
        source = "program var int i; begin for i := 5 to 1 writeln i next; writeln i end."
        assert run_source(source) == ["5"]

    def test_nested_for(self):
        source = """
        program var int i, j, s;
        begin
          for i := 1 to 2
            for j := 1 to 4 s := s + i next
          next;
          writeln s
        end.
        """
        assert run_source(source) == ["12"]

    def test_while_with_if(self):
        source = """
        program var int x;
        begin
          while (x < 3) begin
            if (x == 1) writeln 100 else writeln x;
            x := x + 1
          end
        end.
        """
        assert run_source(source) == ["0", "100", "2"]

    def test_logic(self):
        source = """
        program var bool p, q;
        begin
          p := true; q := false;
          writeln p && q, p || q, p == q
        end.
        """
        assert run_source(source) == ["false", "true", "false"]

    def test_number_bases(self):
        source = "program var begin writeln 1010B, 17O, 0FFH, 99D end."
        assert run_source(source) == ["10", "15", "255", "99"]

    def test_rerun_is_deterministic(self):
        compiler = MLangCompiler()
        result = compiler.compile_source(FACTORIAL)
        outputs = []
        for _ in range(2):
            lines = []
            compiler.run(result, lines.append, lambda: "4")
            outputs.append(lines)
        assert outputs == [["24"], ["24"]]


# =============================================================================
# Failure Reporting Tests
# =============================================================================

class TestFailures:
    """Test that each stage reports its single error."""

    def test_scan_failure(self):
        result = compile_source("program var begin writeln 1 $ end.")
        assert not result.success
        assert result.stage == "scan"
        assert isinstance(result.error, InvalidLexemeError)
        assert result.program is None

    def test_syntax_failure(self):
        result = compile_source("program var begin writeln 1 end")
        assert result.stage == "parse"
        assert isinstance(result.error, MLangSyntaxError)
        assert "error:" in result.message

    def test_type_mismatch(self):
        result = compile_source("program var bool b; begin b := 1 end.")
        assert result.stage == "parse"
        assert isinstance(result.error, TypeMismatchError)

    def test_undeclared(self):
        result = compile_source("program var begin x := 1 end.")
        assert isinstance(result.error, UndeclaredUseError)
        assert "undeclared identifier 'x'" in result.message

    def test_run_source_raises_build_error(self):
        with pytest.raises(UndeclaredUseError):
            run_source("program var begin writeln x end.")

    def test_endless_loop(self):
        source = "program var begin while (true) writeln 1 end."
        with pytest.raises(RuntimeLimitExceededError):
            run_source(source, max_instructions=500)

    def test_run_failed_result(self):
        compiler = MLangCompiler()
        result = compiler.compile_source("program")
        with pytest.raises(ValueError):
            compiler.run(result, print, lambda: "")

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            MLangCompiler().compile_file(str(tmp_path / "missing.m"))

    def test_compile_file(self, tmp_path):
        path = tmp_path / "hello.m"
        path.write_text("program var begin writeln 42 end.", encoding="utf-8")
        result = MLangCompiler().compile_file(str(path))
        assert result.success
        assert result.filename == str(path)
        assert result.program.texts() == ["42", "~WL", "."]

    def test_success_message_empty(self):
        result = compile_source("program var begin end.")
        assert result.success
        assert result.message == ""
        assert result.stage == ""


# =============================================================================
# Configuration Tests
# =============================================================================

class TestOptions:
    """Test CompilerOptions defaults and environment overrides."""

    def test_defaults(self):
        options = CompilerOptions()
        assert options.max_instructions == DEFAULT_MAX_INSTRUCTIONS
        assert options.echo_input is False
        assert options.strict_tail is True

    def test_from_env(self, monkeypatch):
        monkeypatch.setenv("MLANG_MAX_INSTRUCTIONS", "250")
        monkeypatch.setenv("MLANG_ECHO_INPUT", "yes")
        options = CompilerOptions.from_env()
        assert options.max_instructions == 250
        assert options.echo_input is True

    def test_from_env_ignores_invalid(self, monkeypatch):
        monkeypatch.setenv("MLANG_MAX_INSTRUCTIONS", "lots")
        monkeypatch.delenv("MLANG_ECHO_INPUT", raising=False)
        options = CompilerOptions.from_env()
        assert options.max_instructions == DEFAULT_MAX_INSTRUCTIONS
        assert options.echo_input is False

    def test_from_env_rejects_non_positive(self, monkeypatch):
        monkeypatch.setenv("MLANG_MAX_INSTRUCTIONS", "0")
        assert CompilerOptions.from_env().max_instructions == DEFAULT_MAX_INSTRUCTIONS

    def test_lenient_tail(self):
        source = "program var begin end . writeln"
        assert not compile_source(source).success
        compiler = MLangCompiler(CompilerOptions(strict_tail=False))
        assert compiler.compile_source(source).success

    def test_instruction_limit_option(self):
        compiler = MLangCompiler(CompilerOptions(max_instructions=10))
        result = compiler.compile_source("program var begin while (true) writeln 1 end.")
        with pytest.raises(RuntimeLimitExceededError):
            compiler.run(result, lambda line: None, lambda: "")

    def test_cancel_without_run(self):
        MLangCompiler().cancel()

    def test_result_defaults(self):
        result = CompilerResult()
        assert not result.success
        assert result.tokens == []

    def test_version(self):
        assert __version__ == "1.0.0"
