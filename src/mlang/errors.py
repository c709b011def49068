"""
M-Language Error Hierarchy
==========================

This module defines the exception hierarchy for the whole toolchain.
All exceptions inherit from MLangError, allowing callers to catch every
scanner, parser, checker or interpreter failure with a single except
clause if desired.

Exception Hierarchy
-------------------
MLangError (base)
├── LexicalError - scanner failures (carry the 1-based source line)
│   ├── InvalidLexemeError - character sequence accepted by no state
│   ├── UnterminatedCommentError - end of input inside a comment
│   └── TerminatorInCommentError - 'end.' inside an open comment
├── MLangSyntaxError - grammar failures (carry the 1-based token position)
│   ├── MissingTokenError - expected construct is absent
│   └── KeywordTypoError - found word is one edit away from a keyword
├── SemanticError - type checking failures
│   ├── AlreadyDeclaredError - identifier declared twice
│   ├── NotAnIdentifierError - declaration/use of a non-identifier token
│   ├── UnknownIdentifierError - identifier missing from the scanner table
│   ├── UndeclaredUseError - identifier used before declaration
│   ├── TypeMismatchError - incompatible operand/assignment types
│   └── UnbalancedTypeStackError - type stack inconsistent at a checkpoint
└── InterpreterError - postfix execution failures
    ├── StackUnderflowError - pop from an empty value stack
    ├── UndefinedReferenceError - unknown instruction or variable
    ├── RuntimeLimitExceededError - instruction ceiling reached
    ├── OperandTypeError - stack value of the wrong kind
    └── ExecutionCancelledError - run() cancelled from outside

Error Message Format
--------------------
    line 3: error: invalid lexeme '12G'
    token #7: error: undeclared identifier 'x'
    hint: did you mean 'end'?
"""

from typing import Optional


# =============================================================================
# Base Exception
# =============================================================================

class MLangError(Exception):
    """
    Base exception for all toolchain errors.

    Attributes:
        message: The error description
        position: Human-readable position prefix ("line 3", "token #7"), optional
        hint: A suggestion for fixing the error, optional
    """

    def __init__(
        self,
        message: str,
        position: Optional[str] = None,
        hint: Optional[str] = None,
    ):
        self.message = message
        self.position = position
        self.hint = hint
        super().__init__(self._format_message())

    def _format_message(self) -> str:
        """
        Format the error message with position and hint.

        Example output:
            token #12: error: expected ';'
            hint: did you mean 'end'?
        """
        parts = []

        if self.position:
            parts.append(f"{self.position}: error: {self.message}")
        else:
            parts.append(f"error: {self.message}")

        if self.hint:
            parts.append(f"hint: {self.hint}")

        return "\n".join(parts)


# =============================================================================
# Lexical Errors
# =============================================================================

class LexicalError(MLangError):
    """
    Scanner failure.

    Scanning is not resumable: the first lexical error aborts the whole
    pass. The 1-based line number where the scanner stopped is kept for
    the shell.
    """

    def __init__(
        self,
        message: str,
        line: int,
        hint: Optional[str] = None,
    ):
        self.line = line
        super().__init__(message, position=f"line {line}", hint=hint)


class InvalidLexemeError(LexicalError):
    """Character sequence not accepted by any scanner state."""

    def __init__(self, fragment: str, line: int):
        self.fragment = fragment
        super().__init__(f"invalid lexeme '{fragment}'", line)


class UnterminatedCommentError(LexicalError):
    """End of input reached inside a '{ ... }' comment."""

    def __init__(self, line: int):
        super().__init__(
            "end of input inside an unterminated comment",
            line,
            hint="add a closing '}' to terminate the comment",
        )


class TerminatorInCommentError(LexicalError):
    """The program terminator 'end.' appears inside an open comment."""

    def __init__(self, line: int):
        super().__init__(
            "program terminator 'end.' found inside an unterminated comment",
            line,
            hint="close the comment with '}' before the end of the program",
        )


# =============================================================================
# Syntax Errors
# =============================================================================

class MLangSyntaxError(MLangError):
    """
    Grammar failure raised by the recursive-descent driver.

    Attributes:
        token_position: 1-based position of the offending token
        found: Text of the offending token
    """

    def __init__(
        self,
        message: str,
        token_position: int,
        found: Optional[str] = None,
        hint: Optional[str] = None,
    ):
        self.token_position = token_position
        self.found = found
        super().__init__(message, position=f"token #{token_position}", hint=hint)


class MissingTokenError(MLangSyntaxError):
    """A required token or construct is absent."""

    def __init__(self, expected: str, found: str, token_position: int):
        self.expected = expected
        super().__init__(
            f"expected {expected}, found '{found}'",
            token_position,
            found=found,
        )


class KeywordTypoError(MLangSyntaxError):
    """
    The found word is within one edit of an expected keyword.

    Reported instead of the generic expectation list so that typos such
    as 'ed' for 'end' get a precise diagnostic.
    """

    def __init__(self, keyword: str, found: str, token_position: int):
        self.keyword = keyword
        super().__init__(
            f"unexpected '{found}'",
            token_position,
            found=found,
            hint=f"did you mean keyword '{keyword}'?",
        )


# =============================================================================
# Semantic Errors
# =============================================================================

class SemanticError(MLangError):
    """
    Type-checking failure.

    The checker raises on the first semantic error; the driver reports
    it as the only semantic error of the run.

    Attributes:
        token_position: 1-based position of the offending token, or None
            for errors detected at the end of the program
    """

    def __init__(
        self,
        message: str,
        token_position: Optional[int] = None,
        hint: Optional[str] = None,
    ):
        self.token_position = token_position
        position = f"token #{token_position}" if token_position else "end of program"
        super().__init__(message, position=position, hint=hint)


class AlreadyDeclaredError(SemanticError):
    """Identifier declared more than once."""

    def __init__(self, name: str, token_position: int):
        self.name = name
        super().__init__(f"identifier '{name}' is already declared", token_position)


class NotAnIdentifierError(SemanticError):
    """A non-identifier token reached an identifier checkpoint."""

    def __init__(self, token_form: str, token_position: int):
        super().__init__(
            f"expected an identifier token (4,x), found {token_form}",
            token_position,
        )


class UnknownIdentifierError(SemanticError):
    """Identifier token whose index is missing from the identifier table."""

    def __init__(self, token_form: str, token_position: int):
        super().__init__(
            f"identifier {token_form} is not in the identifier table",
            token_position,
        )


class UndeclaredUseError(SemanticError):
    """Identifier used without being declared first."""

    def __init__(self, name: str, token_position: int):
        self.name = name
        super().__init__(
            f"undeclared identifier '{name}'",
            token_position,
            hint=f"declare '{name}' in the var section",
        )


class TypeMismatchError(SemanticError):
    """
    Incompatible types.

    Attributes:
        expected_type: The type required at this point, if any
        actual_type: The type that was found, if any
    """

    def __init__(
        self,
        message: str,
        token_position: Optional[int] = None,
        expected_type: Optional[str] = None,
        actual_type: Optional[str] = None,
    ):
        self.expected_type = expected_type
        self.actual_type = actual_type

        hint = None
        if expected_type and actual_type:
            hint = f"expected '{expected_type}', got '{actual_type}'"

        super().__init__(message, token_position, hint=hint)


class UnbalancedTypeStackError(SemanticError):
    """The type stack does not hold what the checkpoint needs."""
    pass


# =============================================================================
# Interpreter Errors
# =============================================================================

class InterpreterError(MLangError):
    """
    Postfix execution failure.

    All runtime failures abort execution immediately.

    Attributes:
        instruction_index: 0-based index of the failing instruction
    """

    def __init__(
        self,
        message: str,
        instruction_index: Optional[int] = None,
        hint: Optional[str] = None,
    ):
        self.instruction_index = instruction_index
        position = None
        if instruction_index is not None:
            position = f"instruction #{instruction_index}"
        super().__init__(message, position=position, hint=hint)


class StackUnderflowError(InterpreterError):
    """An instruction needed more operands than the stack holds."""

    def __init__(self, operation: str, instruction_index: Optional[int] = None):
        self.operation = operation
        super().__init__(f"stack underflow in '{operation}'", instruction_index)


class UndefinedReferenceError(InterpreterError):
    """Unknown instruction text or undeclared variable name."""

    def __init__(self, name: str, instruction_index: Optional[int] = None):
        self.name = name
        super().__init__(
            f"unknown instruction or undeclared variable '{name}'",
            instruction_index,
        )


class RuntimeLimitExceededError(InterpreterError):
    """Instruction-count ceiling reached (probably an endless loop)."""

    def __init__(self, limit: int, instruction_index: Optional[int] = None):
        self.limit = limit
        super().__init__(
            f"instruction limit of {limit} exceeded",
            instruction_index,
            hint="the program probably contains an endless loop",
        )


class OperandTypeError(InterpreterError):
    """A stack value of the wrong kind reached an instruction."""
    pass


class ExecutionCancelledError(InterpreterError):
    """The run was cancelled through Interpreter.cancel()."""

    def __init__(self, instruction_index: Optional[int] = None):
        super().__init__("execution cancelled", instruction_index)
