"""
M-Language Recursive Descent Parser
===================================

This module implements the syntax/codegen driver. One procedure per
non-terminal recognises the grammar, calls the semantic checker at fixed
points and emits postfix code in the same pass. There is no syntax tree.

Grammar
-------
program      ::= 'program' 'var' decl_section 'begin' stmt_list 'end' '.'
decl_section ::= declaration { declaration }
declaration  ::= type IDENTIFIER { ',' IDENTIFIER } ';'
type         ::= 'int' | 'float' | 'bool'
stmt_list    ::= statement { ';' statement }          (stops at 'end')
statement    ::= compound | if | for | while | read | write | assignment
compound     ::= 'begin' stmt_list 'end'
assignment   ::= IDENTIFIER ':=' expression
if           ::= 'if' '(' expression ')' statement [ 'else' statement ]
while        ::= 'while' '(' expression ')' statement
for          ::= 'for' assignment 'to' expression [ 'step' expression ]
                 statement 'next'
read         ::= 'readln' IDENTIFIER { ',' IDENTIFIER }
write        ::= 'writeln' expression { ',' expression }

Expression Precedence (lowest to highest)
-----------------------------------------
1. relational      == != < > <= >=
2. additive        + - ||
3. multiplicative  * / &&
4. factor          IDENTIFIER, NUMBER, true, false, '!' factor, '(' expr ')'

Generated Code
--------------
if (c) S1 else S2   c  L1 @F  S1  L2 @!  L1: S2  L2:
while (c) S         L0: c  L1 @F  S  L0 @!  L1:
for i := a to b step s S next
                    @i a :=  L0: i b <= L1 @F  S  @i i s + :=  L0 @!  L1:

The step expression is parsed before the body but its code is moved
after it.

Error Handling
--------------
Parsing stops at the first syntax or semantic error. parse() returns a
ParseResult holding that single error and no program.

Example Usage
-------------
>>> from mlang.lexer import scan
>>> from mlang.parser import parse
>>> scanned = scan("program var int x; begin x := 2 end.")
>>> result = parse(scanned.tokens, scanned.identifiers, scanned.numbers)
>>> str(result.program)
'@x 2 := .'
"""

from dataclasses import dataclass, field
from typing import Optional, Sequence
import logging

from mlang.errors import (
    MLangError,
    MLangSyntaxError,
    MissingTokenError,
    KeywordTypoError,
    SemanticError,
)
from mlang.postfix import Instruction, OpCode, PostfixProgram
from mlang.semantic import SemanticChecker, ValueType
from mlang.tables import (
    TYPE_KEYWORDS,
    TableCode,
    TableEntry,
    Token,
    token_text,
)

logger = logging.getLogger(__name__)

RELATIONAL_OPERATORS = ("==", "!=", "<", ">", "<=", ">=")
ADDITIVE_OPERATORS = ("+", "-", "||")
MULTIPLICATIVE_OPERATORS = ("*", "/", "&&")

# Keywords that can begin a statement
STATEMENT_KEYWORDS = ("begin", "if", "for", "while", "readln", "writeln", "end")


def _edit_distance(s1: str, s2: str) -> int:
    """Calculate Levenshtein edit distance between two strings."""
    if len(s1) < len(s2):
        s1, s2 = s2, s1

    distances = range(len(s2) + 1)
    for i, c1 in enumerate(s1):
        new_distances = [i + 1]
        for j, c2 in enumerate(s2):
            if c1 == c2:
                new_distances.append(distances[j])
            else:
                new_distances.append(1 + min((
                    distances[j],
                    distances[j + 1],
                    new_distances[-1]
                )))
        distances = new_distances

    return distances[-1]


def suggest_keyword(word: str, candidates: Sequence[str]) -> Optional[str]:
    """Return the first candidate keyword within one edit of `word`, if any."""
    for candidate in candidates:
        if candidate != word and _edit_distance(word, candidate) <= 1:
            return candidate
    return None


# =============================================================================
# Parse Result
# =============================================================================

@dataclass
class ParseResult:
    """
    Outcome of one parse.

    At most one error is ever present: either one syntax error or one
    semantic error. The program is set only on success.
    """
    success: bool
    syntax_errors: list[MLangSyntaxError] = field(default_factory=list)
    semantic_errors: list[SemanticError] = field(default_factory=list)
    program: Optional[PostfixProgram] = None

    @property
    def error(self) -> Optional[MLangError]:
        """The single error of a failed parse."""
        errors = self.syntax_errors + self.semantic_errors
        return errors[0] if errors else None

    @property
    def message(self) -> str:
        return str(self.error) if self.error else ""


# =============================================================================
# Parser Implementation
# =============================================================================

class Parser:
    """
    Recursive descent parser with inline type checking and code emission.

    A Parser instance performs one parse; create a new one per token
    sequence.

    Usage:
        parser = Parser(tokens, identifiers, numbers)
        result = parser.parse()
    """

    def __init__(
        self,
        tokens: Sequence[Token],
        identifiers: Sequence[TableEntry] = (),
        numbers: Sequence[TableEntry] = (),
        strict_tail: bool = True,
    ):
        self.tokens = list(tokens)
        self.identifiers = tuple(identifiers)
        self.numbers = tuple(numbers)
        self.strict_tail = strict_tail
        self._pos = 0
        self._checker = SemanticChecker(self.identifiers, self.numbers)
        self._code = PostfixProgram()

    def parse(self) -> ParseResult:
        """
        Parse the whole token sequence.

        Returns:
            ParseResult; syntax and semantic errors are reported through
            it rather than raised
        """
        try:
            self._program()
        except MLangSyntaxError as e:
            logger.debug(f"Syntax error: {e}")
            return ParseResult(success=False, syntax_errors=[e])
        except SemanticError as e:
            logger.debug(f"Semantic error: {e}")
            return ParseResult(success=False, semantic_errors=[e])

        logger.debug(
            f"Parsed {len(self.tokens)} tokens into {len(self._code)} postfix instructions"
        )
        return ParseResult(success=True, program=self._code)

    @property
    def checker(self) -> SemanticChecker:
        """The semantic checker driven by this parse."""
        return self._checker

    # =========================================================================
    # Token Access Methods
    # =========================================================================

    def _peek(self, offset: int = 0) -> Optional[Token]:
        """Look at token at current position + offset (None past the end)."""
        pos = self._pos + offset
        if pos >= len(self.tokens):
            return None
        return self.tokens[pos]

    def _advance(self) -> Optional[Token]:
        """Consume and return the current token."""
        token = self._peek()
        if token is not None:
            self._pos += 1
        return token

    def _check_keyword(self, *words: str) -> bool:
        token = self._peek()
        return token is not None and token.is_keyword(*words)

    def _check_delimiter(self, *symbols: str) -> bool:
        token = self._peek()
        return token is not None and token.is_delimiter(*symbols)

    def _check_identifier(self, offset: int = 0) -> bool:
        token = self._peek(offset)
        return token is not None and token.is_identifier

    def _match_delimiter(self, symbol: str) -> Optional[Token]:
        if self._check_delimiter(symbol):
            return self._advance()
        return None

    def _match_keyword(self, word: str) -> Optional[Token]:
        if self._check_keyword(word):
            return self._advance()
        return None

    def _text(self, token: Optional[Token]) -> str:
        return token_text(token, self.identifiers, self.numbers)

    def _expect_keyword(self, word: str, description: Optional[str] = None) -> Token:
        """
        Expect and consume a keyword.

        Raises:
            KeywordTypoError: If the found word is one edit away from `word`
            MissingTokenError: Otherwise
        """
        if self._check_keyword(word):
            return self._advance()
        self._keyword_error((word,), description or f"keyword '{word}'")

    def _expect_delimiter(self, symbol: str, description: Optional[str] = None) -> Token:
        """Expect and consume a delimiter."""
        if self._check_delimiter(symbol):
            return self._advance()
        self._missing(description or f"'{symbol}'")

    def _missing(self, expected: str) -> None:
        """Raise MissingTokenError for the current token."""
        raise MissingTokenError(expected, self._text(self._peek()), self._pos + 1)

    def _keyword_error(self, words: Sequence[str], description: str) -> None:
        """
        Report that one of `words` was expected at the current token.

        A keyword or identifier within one edit of an expected keyword is
        reported as a typo of that keyword.
        """
        token = self._peek()
        if token is not None and token.table_code in (TableCode.KEYWORD, TableCode.IDENTIFIER):
            found = self._text(token)
            keyword = suggest_keyword(found, words)
            if keyword is not None:
                raise KeywordTypoError(keyword, found, self._pos + 1)
        self._missing(description)

    def _starts_expression(self) -> bool:
        token = self._peek()
        if token is None:
            return False
        return (
            token.is_identifier
            or token.is_number
            or token.is_bool_constant
            or token.is_delimiter("!", "(")
        )

    def _assignment_follows(self) -> bool:
        """True if the cursor is at 'IDENTIFIER :='."""
        following = self._peek(1)
        return (
            self._check_identifier()
            and following is not None
            and following.is_delimiter(":=")
        )

    def _is_typo_statement(self, candidates: Sequence[str]) -> Optional[str]:
        """Keyword that the identifier at the cursor probably misspells."""
        if not self._check_identifier() or self._assignment_follows():
            return None
        return suggest_keyword(self._text(self._peek()), candidates)

    # =========================================================================
    # Program Structure
    # =========================================================================

    def _program(self) -> None:
        """program ::= 'program' 'var' decl_section 'begin' stmt_list 'end' '.'"""
        self._expect_keyword("program", "start of program 'program'")
        self._expect_keyword("var")
        self._decl_section()
        self._expect_keyword("begin")
        self._statement_list()
        self._expect_keyword("end", "';' or keyword 'end'")
        self._expect_delimiter(".", "end of program '.'")

        self._checker.finalize()

        if self.strict_tail and self._peek() is not None:
            found = self._text(self._peek())
            raise MLangSyntaxError(
                f"unexpected '{found}' after end of program",
                self._pos + 1,
                found=found,
            )

        self._code.emit_halt()

    def _decl_section(self) -> None:
        """decl_section ::= declaration { declaration }"""
        if not self._check_keyword(*TYPE_KEYWORDS):
            if self._check_keyword("begin"):
                return
            self._keyword_error(
                TYPE_KEYWORDS + ("begin",),
                "type keyword 'int', 'float' or 'bool'",
            )

        while self._check_keyword(*TYPE_KEYWORDS):
            self._declaration()

    def _declaration(self) -> None:
        """declaration ::= type IDENTIFIER { ',' IDENTIFIER } ';'"""
        value_type = ValueType.from_keyword(self._text(self._advance()))
        self._checker.begin_declaration_group()

        while True:
            if not self._check_identifier():
                self._missing("identifier")
            self._checker.declare_identifier(self._peek(), value_type, self._pos)
            self._advance()

            if self._match_delimiter(","):
                continue
            if self._check_identifier():
                self._missing("','")
            break

        self._expect_delimiter(";")
        self._checker.end_declaration_group(value_type)

    # =========================================================================
    # Statements
    # =========================================================================

    def _statement_list(self) -> None:
        """stmt_list ::= statement { ';' statement }"""
        if self._check_keyword("end"):
            return

        self._statement()
        while self._match_delimiter(";"):
            if self._check_keyword("end"):
                break
            if self._is_typo_statement(("end",)):
                self._keyword_error(("end",), "keyword 'end'")
            self._statement()

    def _statement(self) -> None:
        token = self._peek()
        if token is None:
            self._missing("statement")

        if token.is_keyword("begin"):
            self._advance()
            self._statement_list()
            self._expect_keyword("end", "';' or keyword 'end'")
        elif token.is_keyword("if"):
            self._if_statement()
        elif token.is_keyword("while"):
            self._while_statement()
        elif token.is_keyword("for"):
            self._for_statement()
        elif token.is_keyword("readln"):
            self._read_statement()
        elif token.is_keyword("writeln"):
            self._write_statement()
        elif token.is_identifier:
            if self._is_typo_statement(STATEMENT_KEYWORDS):
                self._keyword_error(STATEMENT_KEYWORDS, "statement")
            self._assignment()
        else:
            self._missing("statement")

    def _assignment(self) -> Token:
        """
        assignment ::= IDENTIFIER ':=' expression

        The target address is emitted before the expression.

        Returns:
            The target identifier token
        """
        if not self._check_identifier():
            self._missing("identifier")

        position = self._pos
        target = self._advance()
        self._code.emit_address(self._text(target))

        self._expect_delimiter(":=")
        self._expression()

        self._checker.check_assignment(target, position)
        self._code.emit_assign()
        return target

    def _if_statement(self) -> None:
        """if ::= 'if' '(' expression ')' statement [ 'else' statement ]"""
        self._advance()
        self._expect_delimiter("(")

        condition = self._pos
        self._expression()
        self._checker.check_condition(condition)

        self._code.push_patch_point()
        self._code.emit_jump_if_false()
        self._expect_delimiter(")")

        self._statement()

        if self._match_keyword("else"):
            # The false branch starts after the two-slot jump emitted next
            self._code.patch(self._code.position + 2)
            self._code.push_patch_point()
            self._code.emit_jump()
            self._statement()

        self._code.patch()

    def _while_statement(self) -> None:
        """while ::= 'while' '(' expression ')' statement"""
        self._advance()
        self._expect_delimiter("(")

        start = self._code.position
        condition = self._pos
        self._expression()
        self._checker.check_condition(condition)

        self._code.push_patch_point()
        self._code.emit_jump_if_false()
        self._expect_delimiter(")")

        self._statement()

        self._code.emit_target(start)
        self._code.emit_jump()
        self._code.patch()

    def _for_statement(self) -> None:
        """
        for ::= 'for' assignment 'to' expression [ 'step' expression ]
                statement 'next'

        The bound is re-evaluated on every iteration. Counter, bound and step
        must be int.
        """
        self._advance()
        counter_position = self._pos
        counter_token = self._assignment()
        self._checker.check_loop_counter(counter_token, counter_position)
        counter = self._text(counter_token)
        self._expect_keyword("to")

        start = self._code.position
        self._code.emit_variable(counter)

        bound = self._pos
        self._expression()
        self._checker.consume_expression_type(ValueType.INT, bound)

        self._code.emit_operator("<=")
        self._code.push_patch_point()
        self._code.emit_jump_if_false()

        if self._match_keyword("step"):
            step = self._pos
            self._code.begin_capture()
            self._expression()
            self._checker.consume_expression_type(ValueType.INT, step)
            step_code = self._code.end_capture()
        else:
            # A bare identifier here is a misspelt 'step' unless it starts an
            # assignment or misspells a statement keyword
            if self._check_identifier() and not self._assignment_follows():
                if self._is_typo_statement(("step",)) or not self._is_typo_statement(STATEMENT_KEYWORDS):
                    self._keyword_error(("step",), "keyword 'step'")
            step_code = (Instruction(OpCode.NUMBER, "1"),)

        self._statement()

        self._code.emit_address(counter)
        self._code.emit_variable(counter)
        self._code.splice(step_code)
        self._code.emit_operator("+")
        self._code.emit_assign()
        self._code.emit_target(start)
        self._code.emit_jump()
        self._code.patch()

        self._expect_keyword("next")

    def _read_statement(self) -> None:
        """read ::= 'readln' IDENTIFIER { ',' IDENTIFIER }"""
        self._advance()

        while True:
            if not self._check_identifier():
                self._missing("identifier")
            self._checker.check_read(self._peek(), self._pos)
            target = self._advance()

            self._code.emit_address(self._text(target))
            self._code.emit_read()

            if self._match_delimiter(","):
                continue
            if self._check_identifier():
                self._missing("','")
            break

    def _write_statement(self) -> None:
        """write ::= 'writeln' expression { ',' expression }"""
        self._advance()
        expected = "expression"

        while True:
            if not self._starts_expression():
                self._missing(expected)

            position = self._pos
            self._expression()
            self._checker.consume_write_value(position)
            self._code.emit_write()

            if self._match_delimiter(","):
                expected = "expression after ','"
                continue
            if self._starts_expression():
                self._missing("','")
            break

    # =========================================================================
    # Expressions
    # =========================================================================

    def _binary(self, operators: Sequence[str], operand) -> None:
        """Parse `operand { op operand }` emitting each operator post-order."""
        operand()
        while self._check_delimiter(*operators):
            position = self._pos
            op_token = self._advance()
            operand()
            self._checker.binary_op(op_token, position)
            self._code.emit_operator(self._text(op_token))

    def _expression(self) -> None:
        """expression ::= operand { relop operand }"""
        self._binary(RELATIONAL_OPERATORS, self._operand)

    def _operand(self) -> None:
        """operand ::= term { ('+' | '-' | '||') term }"""
        self._binary(ADDITIVE_OPERATORS, self._term)

    def _term(self) -> None:
        """term ::= factor { ('*' | '/' | '&&') factor }"""
        self._binary(MULTIPLICATIVE_OPERATORS, self._factor)

    def _factor(self) -> None:
        """factor ::= IDENTIFIER | NUMBER | BOOL | '!' factor | '(' expression ')'"""
        token = self._peek()
        position = self._pos

        if token is None:
            self._missing("expression")

        if token.is_identifier:
            self._checker.use_identifier(token, position)
            self._advance()
            self._code.emit_variable(self._text(token))
        elif token.is_number:
            self._checker.use_constant(token, position)
            self._advance()
            self._code.emit_number(self._text(token))
        elif token.is_bool_constant:
            self._checker.use_constant(token, position)
            self._advance()
            self._code.emit_bool(token.is_keyword("true"))
        elif token.is_delimiter("!"):
            self._advance()
            self._factor()
            self._checker.unary_op(token, position)
            self._code.emit_operator("!")
        elif token.is_delimiter("("):
            self._advance()
            self._expression()
            self._expect_delimiter(")")
        else:
            self._missing("expression")


# =============================================================================
# Convenience Functions
# =============================================================================

def parse(
    tokens: Sequence[Token],
    identifiers: Sequence[TableEntry] = (),
    numbers: Sequence[TableEntry] = (),
    strict_tail: bool = True,
) -> ParseResult:
    """
    Convenience function to parse a token sequence.

    Args:
        tokens: Scanner tokens
        identifiers: Identifier table
        numbers: Number table
        strict_tail: Treat tokens after 'end .' as a syntax error

    Returns:
        ParseResult with the postfix program or the single error
    """
    return Parser(tokens, identifiers, numbers, strict_tail).parse()
