"""
Lexeme Tables and Tokens
========================

This module holds the fixed vocabulary of the M language and the data
types exchanged between the scanner, the parser and the shell.

Tables
------
| Code | Table       | Contents                                  |
|------|-------------|-------------------------------------------|
| 1    | keywords    | fixed, 18 service words                   |
| 2    | delimiters  | fixed, 22 punctuation symbols             |
| 3    | numbers     | built while scanning, canonical literals  |
| 4    | identifiers | built while scanning, names               |

A token is the pair (table code, entry index) where the entry index is
the 1-based position inside the corresponding table. The order of the
fixed tables is significant because indices travel across the whole
pipeline.

Textual Form
------------
Tokens cross the shell boundary as space-separated pairs:

>>> format_tokens([Token(1, 1), Token(1, 2), Token(4, 1)])
'(1,1) (1,2) (4,1)'
"""

from dataclasses import dataclass
from enum import IntEnum
from typing import Iterable, Optional, Sequence
import re


# =============================================================================
# Fixed Vocabulary
# =============================================================================

KEYWORDS: tuple[str, ...] = (
    "program", "var", "begin", "end", "int", "float",
    "bool", "if", "else", "while", "for", "to",
    "step", "next", "true", "false", "readln", "writeln",
)

DELIMITERS: tuple[str, ...] = (
    ";", ",", ":", ":=", "!", "!=", "==",
    "<", ">", "<=", ">=", "+", "-", "||",
    "*", "&&", "/", "(", ")", "{", "}", ".",
)

# Two-character delimiters the generic delimiter state may combine
TWO_CHAR_DELIMITERS: frozenset[str] = frozenset(
    {":=", "!=", "==", "<=", ">=", "&&", "||"}
)

# Lexeme -> 1-based index
KEYWORD_INDEX: dict[str, int] = {word: i + 1 for i, word in enumerate(KEYWORDS)}
DELIMITER_INDEX: dict[str, int] = {sym: i + 1 for i, sym in enumerate(DELIMITERS)}

TYPE_KEYWORDS: tuple[str, ...] = ("int", "float", "bool")
BOOL_CONSTANTS: tuple[str, ...] = ("true", "false")


class TableCode(IntEnum):
    """Classifies the table a token's entry index refers to."""
    KEYWORD = 1
    DELIMITER = 2
    NUMBER = 3
    IDENTIFIER = 4


# =============================================================================
# Token
# =============================================================================

@dataclass(frozen=True)
class Token:
    """
    A classified lexeme: (table code, 1-based entry index).

    Tokens carry no text; the text lives in the tables. Equal lexemes of
    the number and identifier tables share the same entry index.
    """
    table_code: int
    entry_index: int

    def __str__(self) -> str:
        return f"({self.table_code},{self.entry_index})"

    @property
    def is_identifier(self) -> bool:
        return self.table_code == TableCode.IDENTIFIER

    @property
    def is_number(self) -> bool:
        return self.table_code == TableCode.NUMBER

    @property
    def is_bool_constant(self) -> bool:
        """Return True for the keywords 'true' and 'false'."""
        return self.table_code == TableCode.KEYWORD and self.entry_index in (
            KEYWORD_INDEX["true"],
            KEYWORD_INDEX["false"],
        )

    def is_keyword(self, *words: str) -> bool:
        """Return True if this token is one of the given keywords."""
        return self.table_code == TableCode.KEYWORD and any(
            self.entry_index == KEYWORD_INDEX[w] for w in words
        )

    def is_delimiter(self, *symbols: str) -> bool:
        """Return True if this token is one of the given delimiters."""
        return self.table_code == TableCode.DELIMITER and any(
            self.entry_index == DELIMITER_INDEX[s] for s in symbols
        )

    def text(
        self,
        identifiers: Sequence["TableEntry"] = (),
        numbers: Sequence["TableEntry"] = (),
    ) -> str:
        """Render this token back to its lexeme (see token_text())."""
        return token_text(self, identifiers, numbers)


def keyword_token(word: str) -> Token:
    """Build the token of a fixed keyword."""
    return Token(int(TableCode.KEYWORD), KEYWORD_INDEX[word])


def delimiter_token(symbol: str) -> Token:
    """Build the token of a fixed delimiter."""
    return Token(int(TableCode.DELIMITER), DELIMITER_INDEX[symbol])


# =============================================================================
# Dynamic Tables
# =============================================================================

@dataclass(frozen=True)
class TableEntry:
    """
    One row of the identifier or number table.

    Attributes:
        id: 1-based position in the table
        value: The lexeme text (canonical form for numbers)
    """
    id: int
    value: str

    def __str__(self) -> str:
        return f"{self.id} {self.value}"


class LexemeTable:
    """
    Insertion-ordered, deduplicated table built during scanning.

    The first occurrence of a lexeme assigns its index; later
    occurrences return the same index.
    """

    def __init__(self) -> None:
        self._index: dict[str, int] = {}
        self._values: list[str] = []

    def put(self, lexeme: str) -> int:
        """Insert a lexeme if new and return its 1-based index."""
        index = self._index.get(lexeme)
        if index is not None:
            return index

        self._values.append(lexeme)
        index = len(self._values)
        self._index[lexeme] = index
        return index

    def look(self, lexeme: str) -> int:
        """Return the index of a lexeme, or 0 if absent."""
        return self._index.get(lexeme, 0)

    def entries(self) -> tuple[TableEntry, ...]:
        """Return an immutable snapshot of the table."""
        return tuple(TableEntry(i + 1, v) for i, v in enumerate(self._values))

    def __len__(self) -> int:
        return len(self._values)

    def __contains__(self, lexeme: object) -> bool:
        return lexeme in self._index


# =============================================================================
# Rendering Helpers
# =============================================================================

def token_text(
    token: Optional[Token],
    identifiers: Sequence[TableEntry] = (),
    numbers: Sequence[TableEntry] = (),
) -> str:
    """
    Render a token back to its lexeme for diagnostics.

    None stands for the end of the token sequence. Indices outside their
    table render as the raw pair so that externally supplied token
    sequences never crash the diagnostics.
    """
    if token is None:
        return "end of input"

    index = token.entry_index - 1
    table: Sequence
    if token.table_code == TableCode.KEYWORD:
        table = KEYWORDS
    elif token.table_code == TableCode.DELIMITER:
        table = DELIMITERS
    elif token.table_code == TableCode.NUMBER:
        table = [entry.value for entry in numbers]
    elif token.table_code == TableCode.IDENTIFIER:
        table = [entry.value for entry in identifiers]
    else:
        return f"(unknown token {token.table_code},{token.entry_index})"

    if 0 <= index < len(table):
        return table[index]
    return f"(bad index {token.table_code},{token.entry_index})"


def format_tokens(tokens: Iterable[Token]) -> str:
    """Render tokens in the space-separated '(code,index)' form."""
    return " ".join(str(token) for token in tokens)


_TOKEN_PAIR = re.compile(r"^\(?\s*(-?\d+)\s*,\s*(-?\d+)\s*\)?$")


def parse_tokens(text: str) -> list[Token]:
    """
    Read tokens back from their textual form.

    Fragments that are not a '(code,index)' pair are skipped.

    >>> parse_tokens("(1,1) (1,2) junk (4,1)")
    [Token(table_code=1, entry_index=1), Token(table_code=1, entry_index=2), Token(table_code=4, entry_index=1)]
    """
    tokens = []
    for part in text.split():
        match = _TOKEN_PAIR.match(part)
        if match:
            tokens.append(Token(int(match.group(1)), int(match.group(2))))
    return tokens
