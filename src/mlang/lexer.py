"""
M-Language Scanner
==================

This module implements the lexical scanner as an explicit finite-state
machine. It converts source text into a sequence of (table code, entry
index) tokens plus the ordered identifier and number tables.

States
------
| State                | Accumulates                                      |
|----------------------|--------------------------------------------------|
| START                | skips whitespace, picks the next state           |
| IDENT                | identifiers and keywords                         |
| END_KEYWORD          | 'end', watching for the terminating '.'          |
| COMMENT..COMMENT_END | '{ ... }' bodies, watching for 'end.'            |
| LESS/GREATER/BANG    | '<' '<=', '>' '>=', '!' '!='                     |
| BINARY/OCTAL/DECIMAL | digits seen so far fit radix 2 / 8 / 10          |
| HEX_DIGITS           | digits including A-F, an 'H' suffix must follow  |
| *_SUFFIX             | radix suffix B / O / D / H consumed              |
| POINT, FRACTION      | '.' delimiter or fractional part                 |
| EXPONENT..           | exponent marker, sign and digits                 |
| DELIMITER            | every other punctuation                          |

Number Formats
--------------
| Format      | Suffix | Example  | Stored as |
|-------------|--------|----------|-----------|
| Binary      | B      | 1010B    | 10        |
| Octal       | O      | 17O      | 15        |
| Decimal     | D/none | 42D, 42  | 42        |
| Hexadecimal | H      | 1FH      | 31        |
| Real        |        | 1.5E2    | 150.0     |

'B', 'D' and 'E' are hexadecimal digits as well as suffix/exponent
markers; the scanner keeps reading greedily and lets a final 'H' decide.

Example Usage
-------------
>>> from mlang.lexer import scan
>>> result = scan("program var int x; begin x := 1FH end.")
>>> [str(t) for t in result.tokens][:4]
['(1,1)', '(1,2)', '(1,5)', '(4,1)']
>>> result.numbers[0].value
'31'
"""

from dataclasses import dataclass, field
from enum import Enum, auto
from typing import Callable, Optional
import logging

from mlang.errors import (
    LexicalError,
    InvalidLexemeError,
    UnterminatedCommentError,
    TerminatorInCommentError,
)
from mlang.literals import INT_MAX, canonical_float_literal
from mlang.tables import (
    DELIMITER_INDEX,
    KEYWORD_INDEX,
    TWO_CHAR_DELIMITERS,
    LexemeTable,
    TableCode,
    TableEntry,
    Token,
)

logger = logging.getLogger(__name__)

# Appended to the source; reading past the text also yields it
END_OF_TEXT = "\0"

HEX_DIGITS = "0123456789ABCDEFabcdef"
HEX_LETTERS = "ABCDEFabcdef"
DIGITS = "0123456789"


class State(Enum):
    """States of the scanner automaton."""

    START = auto()
    IDENT = auto()
    END_KEYWORD = auto()

    COMMENT = auto()
    COMMENT_E = auto()
    COMMENT_EN = auto()
    COMMENT_END = auto()

    LESS = auto()
    GREATER = auto()
    BANG = auto()

    BINARY = auto()
    OCTAL = auto()
    DECIMAL = auto()
    HEX_DIGITS = auto()
    BINARY_SUFFIX = auto()
    OCTAL_SUFFIX = auto()
    DECIMAL_SUFFIX = auto()
    HEX_SUFFIX = auto()

    POINT = auto()
    FRACTION = auto()
    EXPONENT = auto()
    EXPONENT_SIGN = auto()
    EXPONENT_DIGITS = auto()
    SIGNED_EXPONENT_DIGITS = auto()
    FRACTION_EXPONENT = auto()
    FRACTION_EXPONENT_DIGITS = auto()

    DELIMITER = auto()

    # Terminal states
    DONE = auto()
    ERROR = auto()


# =============================================================================
# Scan Result
# =============================================================================

@dataclass
class ScanResult:
    """
    Outcome of one scanning pass.

    On success, tokens and both tables are filled; on failure only the
    error is set.
    """
    success: bool
    tokens: list[Token] = field(default_factory=list)
    identifiers: tuple[TableEntry, ...] = ()
    numbers: tuple[TableEntry, ...] = ()
    error: Optional[LexicalError] = None

    @property
    def line(self) -> Optional[int]:
        """1-based line of the failure, if any."""
        return self.error.line if self.error else None

    @property
    def message(self) -> str:
        """Formatted error message, empty on success."""
        return str(self.error) if self.error else ""


# =============================================================================
# Scanner Implementation
# =============================================================================

class Scanner:
    """
    Finite-state-machine scanner for the M language.

    Each call to scan() is a cold pass: tables and tokens are rebuilt
    from scratch. The pass stops at the first error, or right after the
    program terminator 'end.' (any text after it is ignored).

    Usage:
        scanner = Scanner()
        result = scanner.scan(source_text)
    """

    def __init__(self) -> None:
        self._handlers: dict[State, Callable[[], None]] = {
            State.START: self._state_start,
            State.IDENT: self._state_ident,
            State.END_KEYWORD: self._state_end_keyword,
            State.COMMENT: self._state_comment,
            State.COMMENT_E: self._state_comment_e,
            State.COMMENT_EN: self._state_comment_en,
            State.COMMENT_END: self._state_comment_end,
            State.LESS: self._state_less,
            State.GREATER: self._state_greater,
            State.BANG: self._state_bang,
            State.BINARY: self._state_binary,
            State.OCTAL: self._state_octal,
            State.DECIMAL: self._state_decimal,
            State.HEX_DIGITS: self._state_hex_digits,
            State.BINARY_SUFFIX: self._state_binary_suffix,
            State.OCTAL_SUFFIX: self._state_octal_suffix,
            State.DECIMAL_SUFFIX: self._state_decimal_suffix,
            State.HEX_SUFFIX: self._state_hex_suffix,
            State.POINT: self._state_point,
            State.FRACTION: self._state_fraction,
            State.EXPONENT: self._state_exponent,
            State.EXPONENT_SIGN: self._state_exponent_sign,
            State.EXPONENT_DIGITS: self._state_exponent_digits,
            State.SIGNED_EXPONENT_DIGITS: self._state_signed_exponent_digits,
            State.FRACTION_EXPONENT: self._state_fraction_exponent,
            State.FRACTION_EXPONENT_DIGITS: self._state_signed_exponent_digits,
            State.DELIMITER: self._state_delimiter,
        }
        self._reset("")

    def scan(self, source: str) -> ScanResult:
        """
        Scan a complete source text.

        Args:
            source: Program text

        Returns:
            ScanResult; never raises for malformed input
        """
        self._reset(source)

        while self._state not in (State.DONE, State.ERROR):
            self._gc()
            self._handlers[self._state]()

        if self._state == State.ERROR:
            logger.debug(f"Scan failed: {self._error}")
            return ScanResult(success=False, error=self._error)

        result = ScanResult(
            success=True,
            tokens=list(self._tokens),
            identifiers=self._identifiers.entries(),
            numbers=self._numbers.entries(),
        )
        logger.debug(
            f"Scanned {len(result.tokens)} tokens, {len(result.identifiers)} identifiers, "
            f"{len(result.numbers)} numbers"
        )
        return result

    # =========================================================================
    # Character Access
    # =========================================================================

    def _reset(self, source: str) -> None:
        self._text = source + "\n" + END_OF_TEXT
        self._pos = 0
        self._line = 1
        self._start_line = 1
        self._ch = ""
        self._buffer: list[str] = []
        self._state = State.START
        self._tokens: list[Token] = []
        self._identifiers = LexemeTable()
        self._numbers = LexemeTable()
        self._error: Optional[LexicalError] = None

    def _gc(self) -> None:
        """Read the next character into _ch."""
        if self._pos < len(self._text):
            self._ch = self._text[self._pos]
            if self._ch == "\n":
                self._line += 1
        else:
            self._ch = END_OF_TEXT
        self._pos += 1

    def _ungetc(self) -> None:
        """Push the last character back so the next _gc() rereads it."""
        self._pos -= 1
        if self._pos < len(self._text) and self._text[self._pos] == "\n":
            self._line -= 1

    def _add(self) -> None:
        self._buffer.append(self._ch)

    def _lexeme(self) -> str:
        return "".join(self._buffer)

    def _is_letter(self) -> bool:
        return self._ch.isalpha()

    def _is_digit(self) -> bool:
        return self._ch != "" and self._ch in DIGITS

    def _is_hex(self) -> bool:
        return self._ch != "" and self._ch in HEX_DIGITS

    def _is_hex_letter(self) -> bool:
        return self._ch != "" and self._ch in HEX_LETTERS

    def _is(self, chars: str) -> bool:
        return self._ch != "" and self._ch in chars

    # =========================================================================
    # Output and Failure
    # =========================================================================

    def _out(self, table_code: TableCode, entry_index: int) -> None:
        self._tokens.append(Token(int(table_code), entry_index))

    def _out_delimiter(self, symbol: str) -> None:
        self._out(TableCode.DELIMITER, DELIMITER_INDEX[symbol])

    def _put_number(self, text: str) -> None:
        self._out(TableCode.NUMBER, self._numbers.put(text))

    def _fail(self, error: Optional[LexicalError] = None) -> None:
        """Enter the error state; default error reports the rejected lexeme."""
        if error is None:
            fragment = self._lexeme()
            if self._ch != END_OF_TEXT:
                fragment += self._ch
            error = InvalidLexemeError(fragment.strip() or repr(self._ch), self._start_line)
        self._error = error
        self._state = State.ERROR

    # =========================================================================
    # Start, Identifiers and Keywords
    # =========================================================================

    def _state_start(self) -> None:
        while self._ch != END_OF_TEXT and self._ch.isspace():
            self._gc()

        if self._ch == END_OF_TEXT:
            self._state = State.DONE
            return

        self._buffer.clear()
        self._start_line = self._line

        if self._is_letter():
            self._add()
            self._state = State.IDENT
        elif self._is("01"):
            self._add()
            self._state = State.BINARY
        elif self._is("234567"):
            self._add()
            self._state = State.OCTAL
        elif self._is("89"):
            self._add()
            self._state = State.DECIMAL
        elif self._ch == "{":
            self._state = State.COMMENT
        elif self._ch == "<":
            self._add()
            self._state = State.LESS
        elif self._ch == ">":
            self._add()
            self._state = State.GREATER
        elif self._ch == "!":
            self._add()
            self._state = State.BANG
        elif self._ch == ".":
            self._add()
            self._state = State.POINT
        else:
            self._ungetc()
            self._state = State.DELIMITER

    def _state_ident(self) -> None:
        while self._is_letter() or self._is_digit():
            self._add()
            self._gc()
        self._ungetc()

        word = self._lexeme()
        if word == "end":
            self._state = State.END_KEYWORD
            return

        keyword_index = KEYWORD_INDEX.get(word)
        if keyword_index is not None:
            self._out(TableCode.KEYWORD, keyword_index)
        else:
            self._out(TableCode.IDENTIFIER, self._identifiers.put(word))
        self._state = State.START

    def _state_end_keyword(self) -> None:
        # 'end' immediately followed by '.' terminates the program text
        self._out(TableCode.KEYWORD, KEYWORD_INDEX["end"])
        if self._ch == ".":
            self._out_delimiter(".")
            self._state = State.DONE
        else:
            self._ungetc()
            self._state = State.START

    # =========================================================================
    # Comments
    # =========================================================================

    def _comment_step(self, expected: str, next_state: State) -> None:
        """Advance the 'end.' watcher inside a comment body."""
        if self._ch == "}":
            self._state = State.START
        elif self._ch == END_OF_TEXT:
            self._fail(UnterminatedCommentError(self._start_line))
        elif self._ch == expected:
            self._state = next_state
        elif self._ch == "e":
            self._state = State.COMMENT_E
        else:
            self._state = State.COMMENT

    def _state_comment(self) -> None:
        self._comment_step("e", State.COMMENT_E)

    def _state_comment_e(self) -> None:
        self._comment_step("n", State.COMMENT_EN)

    def _state_comment_en(self) -> None:
        self._comment_step("d", State.COMMENT_END)

    def _state_comment_end(self) -> None:
        if self._ch == ".":
            self._fail(TerminatorInCommentError(self._line))
        else:
            self._comment_step("", State.COMMENT)

    # =========================================================================
    # Relational Operators
    # =========================================================================

    def _relational(self, single: str, double: str) -> None:
        if self._ch == "=":
            self._out_delimiter(double)
        else:
            self._ungetc()
            self._out_delimiter(single)
        self._state = State.START

    def _state_less(self) -> None:
        self._relational("<", "<=")

    def _state_greater(self) -> None:
        self._relational(">", ">=")

    def _state_bang(self) -> None:
        self._relational("!", "!=")

    # =========================================================================
    # Integer Literals
    # =========================================================================

    def _integer_digits(self, digits: str, suffixes: dict[str, State], wider: list[tuple[str, State]]) -> None:
        """
        Shared body of the BINARY/OCTAL/DECIMAL states.

        Args:
            digits: Digits that keep the automaton in the current state
            suffixes: Radix suffix letters (both cases) -> suffix state
            wider: Digit sets that widen the radix -> wider state
        """
        while self._is(digits):
            self._add()
            self._gc()

        if self._is("Ee"):
            self._add()
            self._state = State.EXPONENT
            return

        for letters, state in suffixes.items():
            if self._is(letters):
                self._add()
                self._state = state
                return

        if self._is_hex_letter():
            self._add()
            self._state = State.HEX_DIGITS
            return

        for wider_digits, state in wider:
            if self._is(wider_digits):
                self._add()
                self._state = state
                return

        if self._ch == ".":
            self._add()
            self._state = State.FRACTION
        elif self._is_letter():
            self._fail()
        else:
            self._ungetc()
            self._put_decimal(self._lexeme())

    def _state_binary(self) -> None:
        self._integer_digits(
            "01",
            {
                "Bb": State.BINARY_SUFFIX,
                "Oo": State.OCTAL_SUFFIX,
                "Dd": State.DECIMAL_SUFFIX,
                "Hh": State.HEX_SUFFIX,
            },
            [("234567", State.OCTAL), ("89", State.DECIMAL)],
        )

    def _state_octal(self) -> None:
        self._integer_digits(
            "01234567",
            {
                "Oo": State.OCTAL_SUFFIX,
                "Dd": State.DECIMAL_SUFFIX,
                "Hh": State.HEX_SUFFIX,
            },
            [("89", State.DECIMAL)],
        )

    def _state_decimal(self) -> None:
        self._integer_digits(
            DIGITS,
            {
                "Dd": State.DECIMAL_SUFFIX,
                "Hh": State.HEX_SUFFIX,
            },
            [],
        )

    def _state_hex_digits(self) -> None:
        while self._is_hex():
            self._add()
            self._gc()

        if self._is("Hh"):
            self._add()
            self._state = State.HEX_SUFFIX
        else:
            self._fail()

    def _suffix_or_hex(self, finish: Callable[[], None]) -> None:
        """After a B or D suffix: 'H' or more hex digits keep the literal hexadecimal."""
        if self._is("Hh"):
            self._add()
            self._state = State.HEX_SUFFIX
        elif self._is_hex():
            self._add()
            self._state = State.HEX_DIGITS
        elif self._is_letter():
            self._fail()
        else:
            self._ungetc()
            finish()

    def _state_binary_suffix(self) -> None:
        self._suffix_or_hex(lambda: self._translate(2))

    def _state_decimal_suffix(self) -> None:
        self._suffix_or_hex(lambda: self._put_decimal(self._lexeme()[:-1]))

    def _state_octal_suffix(self) -> None:
        if self._is_letter() or self._is_digit():
            self._fail()
        else:
            self._ungetc()
            self._translate(8)

    def _state_hex_suffix(self) -> None:
        if self._is_letter() or self._is_digit():
            self._fail()
        else:
            self._ungetc()
            self._translate(16)

    def _put_decimal(self, digits: str) -> None:
        """Store a decimal literal verbatim; it must fit a signed 64-bit int."""
        if int(digits) > INT_MAX:
            self._fail(InvalidLexemeError(self._lexeme(), self._start_line))
            return

        self._put_number(digits)
        self._state = State.START

    def _translate(self, base: int) -> None:
        """Convert a suffixed literal to its decimal text and store it."""
        lexeme = self._lexeme()
        digits = lexeme[:-1] if lexeme[-1] in "BbOoHh" else lexeme
        try:
            value = int(digits, base)
        except ValueError:
            self._fail(InvalidLexemeError(lexeme, self._start_line))
            return
        if value > INT_MAX:
            self._fail(InvalidLexemeError(lexeme, self._start_line))
            return

        self._put_number(str(value))
        self._state = State.START

    # =========================================================================
    # Real Literals
    # =========================================================================

    def _state_point(self) -> None:
        if self._is_digit():
            self._add()
            self._state = State.FRACTION
        else:
            self._ungetc()
            self._out_delimiter(".")
            self._state = State.START

    def _state_fraction(self) -> None:
        while self._is_digit():
            self._add()
            self._gc()

        if self._is("Ee"):
            self._add()
            self._state = State.FRACTION_EXPONENT
        elif self._is_letter():
            self._fail()
        else:
            self._ungetc()
            self._convert()

    def _state_exponent(self) -> None:
        # Integer part followed by 'E': exponent, or a hex literal like 1EH / 12EFH
        if self._is_digit():
            self._add()
            self._state = State.EXPONENT_DIGITS
        elif self._is("+-"):
            self._add()
            self._state = State.EXPONENT_SIGN
        elif self._is("Hh"):
            self._add()
            self._state = State.HEX_SUFFIX
        elif self._is_hex():
            self._add()
            self._state = State.HEX_DIGITS
        else:
            self._fail()

    def _state_exponent_sign(self) -> None:
        if self._is_digit():
            self._add()
            self._state = State.SIGNED_EXPONENT_DIGITS
        else:
            self._fail()

    def _state_fraction_exponent(self) -> None:
        if self._is_digit():
            self._add()
            self._state = State.FRACTION_EXPONENT_DIGITS
        elif self._is("+-"):
            self._add()
            self._state = State.EXPONENT_SIGN
        else:
            self._fail()

    def _state_exponent_digits(self) -> None:
        # Unsigned exponent after an integer part: still a hex candidate
        while self._is_digit():
            self._add()
            self._gc()

        if self._is("Hh"):
            self._add()
            self._state = State.HEX_SUFFIX
        elif self._is_hex_letter():
            self._add()
            self._state = State.HEX_DIGITS
        elif self._is_letter():
            self._fail()
        else:
            self._ungetc()
            self._convert()

    def _state_signed_exponent_digits(self) -> None:
        while self._is_digit():
            self._add()
            self._gc()

        if self._is_letter() or self._ch == ".":
            self._fail()
        else:
            self._ungetc()
            self._convert()

    def _convert(self) -> None:
        """Store a real literal in canonical form."""
        lexeme = self._lexeme()
        text = canonical_float_literal(lexeme)
        if text is None:
            self._fail(InvalidLexemeError(lexeme, self._start_line))
            return

        self._put_number(text)
        self._state = State.START

    # =========================================================================
    # Delimiters
    # =========================================================================

    def _state_delimiter(self) -> None:
        self._buffer = [self._ch]
        symbol = self._ch

        if self._is(":|&="):
            self._gc()
            pair = symbol + self._ch
            if pair in TWO_CHAR_DELIMITERS:
                self._out_delimiter(pair)
                self._state = State.START
                return
            self._ungetc()

        if symbol in DELIMITER_INDEX:
            self._out_delimiter(symbol)
            self._state = State.START
        else:
            self._fail(InvalidLexemeError(symbol, self._start_line))


def scan(source: str) -> ScanResult:
    """
    Convenience function to scan source text.

    Args:
        source: Program text

    Returns:
        ScanResult with tokens and tables, or the lexical error
    """
    return Scanner().scan(source)
