"""
M-Language Toolchain Facade
===========================

This module provides the main programmatic interface of the toolchain.
It orchestrates the complete pipeline:

    Source -> Scan -> Parse/Check/Generate -> Postfix program -> Run

Usage
-----
Command line:
    $ mlc run factorial.m --input numbers.txt

Programmatic:
    >>> from mlang import run_source
    >>> run_source("program var begin writeln 7/2 end.")
    ['3.5']

Pipeline
--------
1. **Scanning**: source text to tokens plus identifier/number tables
2. **Parsing**: syntax check, type check and postfix generation in one pass
3. **Execution**: the stack machine runs the postfix program

Error Handling
--------------
Every stage stops at its first error. compile_source() reports scan and
parse errors through CompilerResult; runtime errors are raised by run().

Configuration
-------------
CompilerOptions.from_env() honours these optional variables:
    MLANG_MAX_INSTRUCTIONS: Interpreter instruction ceiling (integer)
    MLANG_ECHO_INPUT: Echo consumed input lines in the shell (1/true/yes)
"""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterable, Optional
import logging
import os

from mlang.errors import MLangError
from mlang.interpreter import (
    DEFAULT_MAX_INSTRUCTIONS,
    InputSource,
    Interpreter,
    OutputSink,
)
from mlang.lexer import scan
from mlang.parser import parse
from mlang.postfix import PostfixProgram
from mlang.tables import TableEntry, Token

logger = logging.getLogger(__name__)


@dataclass
class CompilerOptions:
    """
    Toolchain configuration options.

    Attributes:
        max_instructions: Interpreter instruction ceiling
        echo_input: Echo each consumed input line (used by the shell)
        strict_tail: Reject tokens after the closing 'end .'
    """
    max_instructions: int = DEFAULT_MAX_INSTRUCTIONS
    echo_input: bool = False
    strict_tail: bool = True

    @classmethod
    def from_env(cls) -> "CompilerOptions":
        """
        Create CompilerOptions from environment variables.

        Invalid values are ignored with a warning.
        """
        options = cls()

        if limit := os.environ.get("MLANG_MAX_INSTRUCTIONS"):
            try:
                value = int(limit)
                if value <= 0:
                    raise ValueError(limit)
                options.max_instructions = value
            except ValueError:
                logger.warning(f"Ignoring invalid MLANG_MAX_INSTRUCTIONS={limit!r}")

        if echo := os.environ.get("MLANG_ECHO_INPUT"):
            options.echo_input = echo.strip().lower() in ("1", "true", "yes")

        return options


@dataclass
class CompilerResult:
    """
    Result of scanning and parsing one source text.

    Attributes:
        filename: Source filename
        success: True if both stages succeeded
        stage: Stage that failed ('scan' or 'parse'), empty on success
        tokens: Scanner tokens
        identifiers: Identifier table
        numbers: Number table
        program: Postfix program (only on success)
        error: The single error of a failed build
    """
    filename: str = ""
    success: bool = False
    stage: str = ""
    tokens: list[Token] = field(default_factory=list)
    identifiers: tuple[TableEntry, ...] = ()
    numbers: tuple[TableEntry, ...] = ()
    program: Optional[PostfixProgram] = None
    error: Optional[MLangError] = None

    @property
    def message(self) -> str:
        return str(self.error) if self.error else ""


class MLangCompiler:
    """
    Pipeline driver for the M language.

    Example:
        compiler = MLangCompiler()
        result = compiler.compile_file("factorial.m")
        if result.success:
            compiler.run(result, print, input)

    Attributes:
        options: Toolchain configuration options
    """

    def __init__(self, options: Optional[CompilerOptions] = None):
        self.options = options or CompilerOptions()
        self._interpreter: Optional[Interpreter] = None

    def compile_source(self, source: str, filename: str = "<input>") -> CompilerResult:
        """
        Scan and parse source text.

        Returns:
            CompilerResult; scan and parse errors are reported in it
        """
        result = CompilerResult(filename=filename)

        scanned = scan(source)
        if not scanned.success:
            result.stage = "scan"
            result.error = scanned.error
            logger.debug(f"{filename}: scan failed")
            return result

        result.tokens = scanned.tokens
        result.identifiers = scanned.identifiers
        result.numbers = scanned.numbers

        parsed = parse(
            scanned.tokens,
            scanned.identifiers,
            scanned.numbers,
            strict_tail=self.options.strict_tail,
        )
        if not parsed.success:
            result.stage = "parse"
            result.error = parsed.error
            logger.debug(f"{filename}: parse failed")
            return result

        result.program = parsed.program
        result.success = True
        return result

    def compile_file(self, filepath: str) -> CompilerResult:
        """
        Scan and parse a source file.

        Raises:
            FileNotFoundError: If source file not found
        """
        path = Path(filepath)
        if not path.exists():
            raise FileNotFoundError(f"Source file not found: {filepath}")

        return self.compile_source(path.read_text(encoding="utf-8"), filepath)

    def run(self, result: CompilerResult, output: OutputSink, input: InputSource) -> int:
        """
        Execute a successfully compiled program.

        Returns:
            Number of instructions executed

        Raises:
            ValueError: If the result holds no program
            InterpreterError: On runtime failure
        """
        if not result.success or result.program is None:
            raise ValueError("cannot run a program that failed to compile")

        self._interpreter = Interpreter(self.options.max_instructions)
        self._interpreter.load(result.program, result.identifiers)
        return self._interpreter.run(output, input)

    def cancel(self) -> None:
        """Cancel the run in progress, if any."""
        if self._interpreter is not None:
            self._interpreter.cancel()


# =============================================================================
# Convenience Functions
# =============================================================================

def compile_source(source: str, filename: str = "<input>") -> CompilerResult:
    """Scan and parse source text with default options."""
    return MLangCompiler().compile_source(source, filename)


def run_source(
    source: str,
    inputs: Iterable[str] = (),
    max_instructions: int = DEFAULT_MAX_INSTRUCTIONS,
) -> list[str]:
    """
    Compile and run source text against canned input lines.

    Args:
        source: Program text
        inputs: Lines returned by successive readln reads
        max_instructions: Interpreter instruction ceiling

    Returns:
        The output lines

    Raises:
        MLangError: The scan, parse or runtime error
    """
    compiler = MLangCompiler(CompilerOptions(max_instructions=max_instructions))
    result = compiler.compile_source(source)
    if not result.success:
        raise result.error

    lines = iter(inputs)
    output: list[str] = []
    compiler.run(result, output.append, lambda: next(lines, ""))
    return output
