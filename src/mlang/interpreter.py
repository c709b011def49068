"""
M-Language Postfix Interpreter
==============================

This module implements the stack virtual machine that executes postfix
programs produced by the parser.

Runtime Values
--------------
The value stack holds a closed set of variants:

| Variant     | Python type  | Produced by                       |
|-------------|--------------|-----------------------------------|
| Integer     | int          | integral literals and results     |
| Float       | float        | fractional literals and results   |
| Boolean     | bool         | true/false, comparisons, && || !  |
| VariableRef | VariableRef  | '@name' address instructions      |

bool is tested before int everywhere because bool subclasses int.

Arithmetic
----------
Operands are widened to float for + - * / and the result is narrowed
back to int when it is integral and fits 64 bits. Division by zero
follows IEEE rules (inf, -inf, nan). Comparisons are done in float;
&&, || and ! accept booleans only.

I/O
---
run() takes two callables: one receiving each output line and one
returning the next input line. readln blocks inside the input callable
for as long as it takes; running the interpreter off the main thread is
the embedder's business.

Example Usage
-------------
>>> from mlang.postfix import PostfixProgram
>>> interp = Interpreter()
>>> interp.load(PostfixProgram.from_text("7 2 / ~WL ."), [])
>>> lines = []
>>> interp.run(lines.append, lambda: "")
5
>>> lines
['3.5']
"""

from dataclasses import dataclass
from typing import Callable, Iterable, Union
import logging
import math

from mlang.errors import (
    InterpreterError,
    StackUnderflowError,
    UndefinedReferenceError,
    RuntimeLimitExceededError,
    OperandTypeError,
    ExecutionCancelledError,
)
from mlang.literals import classify_input, format_float, narrow, parse_number
from mlang.postfix import Instruction, OpCode, PostfixProgram
from mlang.tables import TableEntry

logger = logging.getLogger(__name__)

# Instruction ceiling guarding against endless loops
DEFAULT_MAX_INSTRUCTIONS = 1_000_000


@dataclass(frozen=True)
class VariableRef:
    """Write-target reference pushed by an address instruction."""
    name: str

    def __str__(self) -> str:
        return f"@{self.name}"


Value = Union[int, float, bool, VariableRef]

OutputSink = Callable[[str], None]
InputSource = Callable[[], str]


def format_value(value: Value) -> str:
    """Render a runtime value the way writeln prints it."""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float):
        return format_float(value)
    return str(value)


def _is_number(value: Value) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _divide(left: float, right: float) -> float:
    """IEEE division: x/0 is +-inf, 0/0 is nan."""
    if right != 0.0:
        return left / right
    if left == 0.0 or math.isnan(left):
        return math.nan
    return math.copysign(math.inf, left) * math.copysign(1.0, right)


ARITHMETIC: dict[str, Callable[[float, float], float]] = {
    "+": lambda a, b: a + b,
    "-": lambda a, b: a - b,
    "*": lambda a, b: a * b,
    "/": _divide,
}

COMPARISONS: dict[str, Callable[[float, float], bool]] = {
    "==": lambda a, b: a == b,
    "!=": lambda a, b: a != b,
    "<": lambda a, b: a < b,
    ">": lambda a, b: a > b,
    "<=": lambda a, b: a <= b,
    ">=": lambda a, b: a >= b,
}


# =============================================================================
# Interpreter
# =============================================================================

class Interpreter:
    """
    Stack machine executing one loaded postfix program.

    Each load() fully resets the runtime state. Runs are synchronous;
    cancel() may be called from another thread and takes effect before
    the next instruction.

    Usage:
        interp = Interpreter(max_instructions=100_000)
        interp.load(result.program, scanned.identifiers)
        interp.run(print, input)
    """

    def __init__(self, max_instructions: int = DEFAULT_MAX_INSTRUCTIONS):
        if max_instructions <= 0:
            raise ValueError("max_instructions must be positive")
        self.max_instructions = max_instructions
        self._code: list[Instruction] = []
        self._variables: dict[str, Value] = {}
        self._stack: list[Value] = []
        self._ip = 0
        self._executed = 0
        self._cancelled = False

    # =========================================================================
    # Public Interface
    # =========================================================================

    def load(
        self,
        program: Union[PostfixProgram, Iterable[Instruction], Iterable[str]],
        identifiers: Iterable[Union[TableEntry, str]],
    ) -> None:
        """
        Load a program and reset all runtime state.

        Args:
            program: Postfix program, instruction objects or textual slots
            identifiers: Identifier table entries (or plain names); every
                name starts out as integer zero
        """
        code = []
        for slot in program:
            code.append(slot if isinstance(slot, Instruction) else Instruction.from_text(slot))
        self._code = code

        self._variables = {}
        for entry in identifiers:
            name = entry.value if isinstance(entry, TableEntry) else entry
            self._variables[name] = 0

        self._stack = []
        self._ip = 0
        self._executed = 0
        self._cancelled = False
        logger.debug(
            f"Loaded {len(self._code)} instructions, {len(self._variables)} variables"
        )

    def run(self, output: OutputSink, input: InputSource) -> int:
        """
        Execute until the halt instruction.

        Every run starts at instruction 0 with an empty stack. Variables
        keep their values until the next load().

        Args:
            output: Called with each written line
            input: Called for each readln target; returns one line

        Returns:
            Number of instructions executed

        Raises:
            InterpreterError: On any runtime failure; execution stops
        """
        self._stack = []
        self._ip = 0
        self._executed = 0

        while True:
            if self._cancelled:
                raise ExecutionCancelledError(self._ip)
            if self._executed >= self.max_instructions:
                raise RuntimeLimitExceededError(self.max_instructions, self._ip)
            if not 0 <= self._ip < len(self._code):
                raise InterpreterError(
                    "execution ran past the end of the program",
                    self._ip,
                    hint="a program must end with the halt instruction '.'",
                )

            index = self._ip
            instruction = self._code[index]
            self._ip += 1
            self._executed += 1

            if instruction.opcode == OpCode.HALT:
                break
            self._execute(instruction, index, output, input)

        logger.debug(f"Program finished after {self._executed} instructions")
        return self._executed

    def cancel(self) -> None:
        """Request the current run to stop before its next instruction."""
        self._cancelled = True

    @property
    def variables(self) -> dict[str, Value]:
        """Snapshot of the variable store."""
        return dict(self._variables)

    @property
    def stack(self) -> tuple[Value, ...]:
        """Snapshot of the value stack, bottom first."""
        return tuple(self._stack)

    @property
    def executed(self) -> int:
        """Instructions executed by the current/last run."""
        return self._executed

    # =========================================================================
    # Instruction Execution
    # =========================================================================

    def _execute(
        self,
        instruction: Instruction,
        index: int,
        output: OutputSink,
        input: InputSource,
    ) -> None:
        opcode = instruction.opcode

        if opcode == OpCode.ADDRESS:
            self._stack.append(VariableRef(instruction.operand))

        elif opcode in (OpCode.NUMBER, OpCode.TARGET):
            value = parse_number(instruction.operand)
            if value is None:
                raise UndefinedReferenceError(instruction.operand, index)
            self._stack.append(value)

        elif opcode == OpCode.BOOL:
            self._stack.append(instruction.operand == "true")

        elif opcode == OpCode.VARIABLE:
            name = instruction.operand
            if name not in self._variables:
                raise UndefinedReferenceError(name, index)
            self._stack.append(self._variables[name])

        elif opcode == OpCode.OPERATOR:
            if instruction.operand == "!":
                operand = self._pop_bool("!", index)
                self._stack.append(not operand)
            else:
                right = self._pop(instruction.operand, index)
                left = self._pop(instruction.operand, index)
                self._stack.append(self._binary(instruction.operand, left, right, index))

        elif opcode == OpCode.ASSIGN:
            value = self._pop(":=", index)
            if isinstance(value, VariableRef):
                raise OperandTypeError(f"cannot assign variable reference {value}", index)
            target = self._pop_ref(":=", index)
            self._variables[target.name] = value

        elif opcode == OpCode.READ:
            target = self._pop_ref("~RL", index)
            line = input()
            value = classify_input(line)
            logger.debug(f"Read {line!r} into {target.name} as {value!r}")
            self._variables[target.name] = value

        elif opcode == OpCode.WRITE:
            value = self._pop("~WL", index)
            if isinstance(value, VariableRef):
                raise OperandTypeError(f"cannot write variable reference {value}", index)
            text = format_value(value)
            logger.debug(f"Write {text!r}")
            output(text)

        elif opcode == OpCode.JUMP_IF_FALSE:
            target = self._pop_target("@F", index)
            condition = self._pop_bool("@F", index)
            if not condition:
                self._ip = target

        elif opcode == OpCode.JUMP:
            self._ip = self._pop_target("@!", index)

        else:
            raise UndefinedReferenceError(instruction.text, index)

    def _binary(self, op: str, left: Value, right: Value, index: int) -> Value:
        if op in ("&&", "||"):
            if not isinstance(left, bool) or not isinstance(right, bool):
                raise self._operand_error(op, left, right, index)
            return (left and right) if op == "&&" else (left or right)

        if op in ("==", "!=") and isinstance(left, bool) and isinstance(right, bool):
            return (left == right) if op == "==" else (left != right)

        if not _is_number(left) or not _is_number(right):
            raise self._operand_error(op, left, right, index)

        if op in COMPARISONS:
            return COMPARISONS[op](float(left), float(right))
        if op in ARITHMETIC:
            return narrow(ARITHMETIC[op](float(left), float(right)))

        raise UndefinedReferenceError(op, index)

    # =========================================================================
    # Stack Helpers
    # =========================================================================

    def _pop(self, operation: str, index: int) -> Value:
        if not self._stack:
            raise StackUnderflowError(operation, index)
        return self._stack.pop()

    def _pop_ref(self, operation: str, index: int) -> VariableRef:
        value = self._pop(operation, index)
        if not isinstance(value, VariableRef):
            raise OperandTypeError(
                f"'{operation}' expects a variable reference, found {format_value(value)}",
                index,
            )
        return value

    def _pop_bool(self, operation: str, index: int) -> bool:
        value = self._pop(operation, index)
        if not isinstance(value, bool):
            raise OperandTypeError(
                f"'{operation}' expects a boolean, found {self._describe(value)}",
                index,
            )
        return value

    def _pop_target(self, operation: str, index: int) -> int:
        value = self._pop(operation, index)
        if not isinstance(value, int) or isinstance(value, bool):
            raise OperandTypeError(
                f"'{operation}' expects a jump target, found {self._describe(value)}",
                index,
            )
        if not 0 <= value <= len(self._code):
            raise InterpreterError(f"jump target {value} out of range", index)
        return value

    @staticmethod
    def _describe(value: Value) -> str:
        if isinstance(value, VariableRef):
            return f"reference {value}"
        return f"{type(value).__name__} {format_value(value)}"

    def _operand_error(
        self, op: str, left: Value, right: Value, index: int
    ) -> OperandTypeError:
        return OperandTypeError(
            f"operator '{op}' cannot be applied to "
            f"{self._describe(left)} and {self._describe(right)}",
            index,
        )


def run_program(
    program: Union[PostfixProgram, Iterable[Instruction], Iterable[str]],
    identifiers: Iterable[Union[TableEntry, str]],
    inputs: Iterable[str] = (),
    max_instructions: int = DEFAULT_MAX_INSTRUCTIONS,
) -> list[str]:
    """
    Convenience function: run a program against canned input lines.

    Missing input lines read as empty strings (integer zero).

    Returns:
        The output lines
    """
    lines = iter(inputs)
    output: list[str] = []
    interp = Interpreter(max_instructions)
    interp.load(program, identifiers)
    interp.run(output.append, lambda: next(lines, ""))
    return output
