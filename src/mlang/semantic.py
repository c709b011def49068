"""
M-Language Semantic Checker
===========================

This module implements type checking for the M language. The checker
keeps a stack of expression types; the parser calls its checkpoint
methods at fixed grammar positions, in lockstep with code generation.

Types
-----
Only three value types exist: int, float and bool. The single implicit
widening is an int expression assigned to a float variable.

Operator Table
--------------
| op         | int,int | float,float | int,float / float,int | bool,bool |
|------------|---------|-------------|-----------------------|-----------|
| + - *      | int     | float       | float                 | -         |
| /          | float   | float       | float                 | -         |
| == !=      | bool    | bool        | bool                  | bool      |
| < > <= >=  | bool    | bool        | bool                  | -         |
| && ||      | -       | -           | -                     | bool      |

Any combination missing from the table is a type error.

Positions
---------
Checkpoints take the 0-based position of the token they concern; the
raised errors report it 1-based ("token #N").

Failure Semantics
-----------------
The first error raises and aborts the parse. The checker never tries
to recover, so after an error its state is meaningless.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Optional, Sequence
import logging

from mlang.errors import (
    SemanticError,
    AlreadyDeclaredError,
    NotAnIdentifierError,
    UnknownIdentifierError,
    UndeclaredUseError,
    TypeMismatchError,
    UnbalancedTypeStackError,
)
from mlang.literals import is_float_text
from mlang.tables import DELIMITERS, TableCode, TableEntry, Token

logger = logging.getLogger(__name__)


# =============================================================================
# Value Types
# =============================================================================

class ValueType(Enum):
    """The three value types of the language."""
    INT = "int"
    FLOAT = "float"
    BOOL = "bool"

    def __str__(self) -> str:
        """Return the keyword naming this type."""
        return self.value

    @classmethod
    def from_keyword(cls, word: str) -> "ValueType":
        """Map a type keyword ('int', 'float', 'bool') to its ValueType."""
        return cls(word)


INT = ValueType.INT
FLOAT = ValueType.FLOAT
BOOL = ValueType.BOOL

ARITHMETIC_OPERATORS = ("+", "-", "*")
RELATIONAL_OPERATORS = ("<", ">", "<=", ">=")
EQUALITY_OPERATORS = ("==", "!=")
LOGICAL_OPERATORS = ("&&", "||")


def _build_operation_table() -> dict[tuple[str, ValueType, ValueType], ValueType]:
    table: dict[tuple[str, ValueType, ValueType], ValueType] = {}
    numeric_pairs = [(INT, INT), (FLOAT, FLOAT), (INT, FLOAT), (FLOAT, INT)]

    for op in ARITHMETIC_OPERATORS:
        for left, right in numeric_pairs:
            table[(op, left, right)] = INT if (left, right) == (INT, INT) else FLOAT

    for left, right in numeric_pairs:
        table[("/", left, right)] = FLOAT

    for op in EQUALITY_OPERATORS:
        for left, right in numeric_pairs + [(BOOL, BOOL)]:
            table[(op, left, right)] = BOOL

    for op in RELATIONAL_OPERATORS:
        for left, right in numeric_pairs:
            table[(op, left, right)] = BOOL

    for op in LOGICAL_OPERATORS:
        table[(op, BOOL, BOOL)] = BOOL

    return table


# (operator, left type, right type) -> result type
OPERATION_TABLE: dict[tuple[str, ValueType, ValueType], ValueType] = _build_operation_table()


# =============================================================================
# Identifier Records
# =============================================================================

@dataclass
class IdentifierRecord:
    """
    Checker-owned view of one identifier table entry.

    Attributes:
        index: 1-based identifier table index
        name: Identifier text
        is_declared: True once declared in the var section
        type: Declared type, None while undeclared
    """
    index: int
    name: str
    is_declared: bool = False
    type: Optional[ValueType] = None


# =============================================================================
# Semantic Checker
# =============================================================================

class SemanticChecker:
    """
    Type-stack checker driven by the parser.

    The checker copies the scanner's tables into its own records; the
    scanner's tables are never modified.

    Usage:
        checker = SemanticChecker(result.identifiers, result.numbers)
        checker.declare_identifier(token, ValueType.INT, 3)
        checker.use_identifier(token, 9)
        ...
        checker.finalize()
    """

    def __init__(
        self,
        identifiers: Sequence[TableEntry] = (),
        numbers: Sequence[TableEntry] = (),
    ):
        self._records: dict[int, IdentifierRecord] = {
            entry.id: IdentifierRecord(entry.id, entry.value) for entry in identifiers
        }
        self._numbers: dict[int, str] = {entry.id: entry.value for entry in numbers}
        self._stack: list[ValueType] = []
        self._group_open = False

    @property
    def type_stack(self) -> tuple[ValueType, ...]:
        """Snapshot of the type stack, bottom first."""
        return tuple(self._stack)

    @property
    def records(self) -> tuple[IdentifierRecord, ...]:
        """Identifier records in table order."""
        return tuple(self._records[i] for i in sorted(self._records))

    def declared_names(self) -> dict[str, ValueType]:
        """Map each declared identifier to its type."""
        return {r.name: r.type for r in self.records if r.is_declared and r.type}

    # =========================================================================
    # Declarations
    # =========================================================================

    def begin_declaration_group(self) -> None:
        """Open a declaration of one type over one or more identifiers."""
        self._group_open = True

    def end_declaration_group(self, value_type: ValueType) -> None:
        """Close the current declaration group."""
        self._group_open = False
        logger.debug(f"Closed declaration group of type {value_type}")

    def declare_identifier(self, token: Token, value_type: ValueType, position: int) -> None:
        """
        Declare an identifier with the given type.

        Raises:
            AlreadyDeclaredError: If the identifier was declared before
            NotAnIdentifierError / UnknownIdentifierError: For malformed tokens
        """
        record = self._record(token, position)
        if record.is_declared:
            raise AlreadyDeclaredError(record.name, position + 1)

        record.is_declared = True
        record.type = value_type

    # =========================================================================
    # Expression Operands
    # =========================================================================

    def use_identifier(self, token: Token, position: int) -> ValueType:
        """Push the type of a declared identifier and return it."""
        record = self._record(token, position)
        if not record.is_declared or record.type is None:
            raise UndeclaredUseError(record.name, position + 1)

        self._stack.append(record.type)
        return record.type

    def use_constant(self, token: Token, position: int) -> ValueType:
        """Push the type of a numeric literal or boolean constant."""
        if token.is_bool_constant:
            value_type = BOOL
        elif token.is_number:
            text = self._numbers.get(token.entry_index)
            if text is None:
                raise SemanticError(
                    f"number {token} is not in the number table", position + 1
                )
            value_type = FLOAT if is_float_text(text) else INT
        else:
            raise SemanticError(f"expected a constant, found {token}", position + 1)

        self._stack.append(value_type)
        return value_type

    # =========================================================================
    # Operators
    # =========================================================================

    def binary_op(self, token: Token, position: int) -> ValueType:
        """
        Apply a binary operator to the two topmost types.

        Raises:
            TypeMismatchError: If the operand pair is not in OPERATION_TABLE
            UnbalancedTypeStackError: If fewer than two types are stacked
        """
        op = self._operator_text(token, position)
        if len(self._stack) < 2:
            raise UnbalancedTypeStackError(
                f"missing operand types for operator '{op}'", position + 1
            )

        right = self._stack.pop()
        left = self._stack.pop()
        result = OPERATION_TABLE.get((op, left, right))
        if result is None:
            raise TypeMismatchError(
                f"operator '{op}' cannot be applied to operands of type "
                f"'{left}' and '{right}'",
                position + 1,
            )

        self._stack.append(result)
        return result

    def unary_op(self, token: Token, position: int) -> ValueType:
        """Apply '!' to the topmost type; only bool is accepted."""
        op = self._operator_text(token, position)
        if not self._stack:
            raise UnbalancedTypeStackError(
                f"missing operand type for operator '{op}'", position + 1
            )

        operand = self._stack.pop()
        if op != "!" or operand != BOOL:
            raise TypeMismatchError(
                f"operator '{op}' cannot be applied to an operand of type '{operand}'",
                position + 1,
                expected_type=str(BOOL),
                actual_type=str(operand),
            )

        self._stack.append(BOOL)
        return BOOL

    # =========================================================================
    # Checkpoints
    # =========================================================================

    def check_expression_type(self, expected: ValueType, position: int) -> None:
        """Require the topmost type to be `expected`, leaving it stacked."""
        actual = self._peek(position)
        if actual != expected:
            raise TypeMismatchError(
                f"expected an expression of type '{expected}', found '{actual}'",
                position + 1,
                expected_type=str(expected),
                actual_type=str(actual),
            )

    def consume_expression_type(self, expected: ValueType, position: int) -> None:
        """Require the topmost type to be `expected` and pop it."""
        self.check_expression_type(expected, position)
        self._stack.pop()

    def check_assignment(self, token: Token, position: int) -> None:
        """
        Check 'identifier := expression' once the expression is parsed.

        Equal types are accepted, and so is an int expression assigned to
        a float variable. Everything else is a type mismatch.
        """
        if not self._stack:
            raise UnbalancedTypeStackError(
                "missing expression type in assignment", position + 1
            )
        expression_type = self._stack.pop()

        self.use_identifier(token, position)
        variable_type = self._stack.pop()

        if variable_type == expression_type:
            return
        if variable_type == FLOAT and expression_type == INT:
            return

        name = self._records[token.entry_index].name
        raise TypeMismatchError(
            f"incompatible types in assignment: variable '{name}' of type "
            f"'{variable_type}', expression of type '{expression_type}'",
            position + 1,
            expected_type=str(variable_type),
            actual_type=str(expression_type),
        )

    def check_loop_counter(self, token: Token, position: int) -> None:
        """A for-loop counter must be an int variable."""
        self.use_identifier(token, position)
        counter_type = self._stack.pop()
        if counter_type != INT:
            name = self._records[token.entry_index].name
            raise TypeMismatchError(
                f"loop counter '{name}' must be of type 'int', found '{counter_type}'",
                position + 1,
                expected_type=str(INT),
                actual_type=str(counter_type),
            )

    def check_condition(self, position: int) -> None:
        """Require and pop a bool condition type."""
        actual = self._peek(position)
        if actual != BOOL:
            raise TypeMismatchError(
                f"condition must be of type 'bool', found '{actual}'",
                position + 1,
                expected_type=str(BOOL),
                actual_type=str(actual),
            )
        self._stack.pop()

    def check_read(self, token: Token, position: int) -> None:
        """A readln target must be a declared identifier."""
        record = self._record(token, position)
        if not record.is_declared:
            raise UndeclaredUseError(record.name, position + 1)

    def consume_write_value(self, position: int) -> None:
        """Pop the type of a writeln expression; any type can be written."""
        if not self._stack:
            raise UnbalancedTypeStackError(
                "missing expression type in writeln", position + 1
            )
        self._stack.pop()

    def finalize(self) -> None:
        """
        End-of-program check: the type stack must be empty.

        Raises:
            UnbalancedTypeStackError: If types are left over
        """
        if self._stack:
            leftover = ", ".join(str(t) for t in self._stack)
            raise UnbalancedTypeStackError(
                f"type stack is not empty at end of program: [{leftover}]"
            )
        logger.debug("Semantic check finished with an empty type stack")

    # =========================================================================
    # Helpers
    # =========================================================================

    def _record(self, token: Token, position: int) -> IdentifierRecord:
        if token.table_code != TableCode.IDENTIFIER:
            raise NotAnIdentifierError(str(token), position + 1)

        record = self._records.get(token.entry_index)
        if record is None:
            raise UnknownIdentifierError(str(token), position + 1)
        return record

    def _peek(self, position: int) -> ValueType:
        if not self._stack:
            raise UnbalancedTypeStackError("missing expression type", position + 1)
        return self._stack[-1]

    def _operator_text(self, token: Token, position: int) -> str:
        if token.table_code == TableCode.DELIMITER and 1 <= token.entry_index <= len(DELIMITERS):
            return DELIMITERS[token.entry_index - 1]
        raise SemanticError(f"expected an operator, found {token}", position + 1)
