"""
Postfix Program Model
=====================

This module defines the postfix (reverse-Polish) instruction sequence
produced by the parser and executed by the interpreter, together with
the backpatching arena used to build it.

Instruction Forms
-----------------
| Opcode        | Text      | Effect at run time                         |
|---------------|-----------|--------------------------------------------|
| ADDRESS       | @name     | push a reference to variable 'name'        |
| VARIABLE      | name      | push the value of 'name'                   |
| NUMBER        | 42, 3.5   | push a number                              |
| BOOL          | true      | push a boolean                             |
| TARGET        | 17        | push an absolute jump target               |
| OPERATOR      | + && <=   | pop operands, push result                  |
| ASSIGN        | :=        | pop value, pop reference, store            |
| JUMP_IF_FALSE | @F        | pop target, pop condition, jump if false   |
| JUMP          | @!        | pop target, jump                           |
| READ          | ~RL       | pop reference, store one input line        |
| WRITE         | ~WL       | pop value, output it                       |
| HALT          | .         | stop                                       |
| PLACEHOLDER   | ?         | unpatched forward jump target              |

Jump targets are absolute 0-based indices into the same sequence and
always precede their jump instruction.

Backpatching
------------
A forward jump reserves a PLACEHOLDER slot and records its index on the
patch stack; patch() later overwrites the most recent pending slot with
the now known target. Nesting of if/while/for matches the stack order.

Code Motion
-----------
begin_capture() redirects emission into a side buffer and
end_capture() returns what was emitted there, so the caller can
splice() it back in later. Captured code must not contain jumps.

Example
-------
>>> program = PostfixProgram()
>>> program.emit_address("x")
0
>>> program.emit_number("1")
1
>>> program.emit_assign()
2
>>> str(program)
'@x 1 :='
"""

from dataclasses import dataclass
from enum import Enum, auto
from typing import Iterable, Iterator, Union
import logging

from mlang.literals import parse_number

logger = logging.getLogger(__name__)


class OpCode(Enum):
    """Kinds of postfix instructions."""
    ADDRESS = auto()
    VARIABLE = auto()
    NUMBER = auto()
    BOOL = auto()
    TARGET = auto()
    OPERATOR = auto()
    ASSIGN = auto()
    JUMP_IF_FALSE = auto()
    JUMP = auto()
    READ = auto()
    WRITE = auto()
    HALT = auto()
    PLACEHOLDER = auto()


# Fixed mnemonics of operand-less instructions
MNEMONICS: dict[OpCode, str] = {
    OpCode.ASSIGN: ":=",
    OpCode.JUMP_IF_FALSE: "@F",
    OpCode.JUMP: "@!",
    OpCode.READ: "~RL",
    OpCode.WRITE: "~WL",
    OpCode.HALT: ".",
    OpCode.PLACEHOLDER: "?",
}

_BY_MNEMONIC: dict[str, OpCode] = {text: op for op, text in MNEMONICS.items()}

OPERATORS: frozenset[str] = frozenset(
    {"+", "-", "*", "/", "==", "!=", "<", ">", "<=", ">=", "&&", "||", "!"}
)

ADDRESS_MARKER = "@"


# =============================================================================
# Instruction
# =============================================================================

@dataclass(frozen=True)
class Instruction:
    """
    One slot of a postfix program.

    Attributes:
        opcode: Instruction kind
        operand: Variable name, literal text, target index or operator
            symbol; empty for fixed mnemonics
    """
    opcode: OpCode
    operand: str = ""

    @property
    def text(self) -> str:
        """The slot's textual form."""
        if self.opcode in MNEMONICS:
            return MNEMONICS[self.opcode]
        if self.opcode == OpCode.ADDRESS:
            return ADDRESS_MARKER + self.operand
        return self.operand

    def __str__(self) -> str:
        return self.text

    @property
    def is_jump(self) -> bool:
        return self.opcode in (OpCode.JUMP, OpCode.JUMP_IF_FALSE)

    @classmethod
    def from_text(cls, text: str) -> "Instruction":
        """
        Classify one textual slot.

        '@F' and '@!' are jumps, not addresses; any text that is neither a
        mnemonic, an operator, a boolean nor a number reads a variable.

        The text form is ambiguous for a variable named 'F': its address
        slot '@F' reads back as a jump-if-false. Programs assigning to or
        reading into 'F' only survive as Instruction objects, not as text.
        """
        if text in _BY_MNEMONIC:
            return cls(_BY_MNEMONIC[text])
        if text in OPERATORS:
            return cls(OpCode.OPERATOR, text)
        if text in ("true", "false"):
            return cls(OpCode.BOOL, text)
        if text.startswith(ADDRESS_MARKER) and len(text) > 1:
            return cls(OpCode.ADDRESS, text[1:])
        if parse_number(text) is not None:
            return cls(OpCode.NUMBER, text)
        return cls(OpCode.VARIABLE, text)


# =============================================================================
# Program Arena
# =============================================================================

class PostfixProgram:
    """
    Growable instruction sequence with backpatching.

    Every emit_* method returns the index of the emitted slot.
    """

    def __init__(self, instructions: Iterable[Instruction] = ()):
        self._code: list[Instruction] = list(instructions)
        self._patch_stack: list[int] = []
        self._captures: list[list[Instruction]] = []

    @classmethod
    def from_text(cls, slots: Union[str, Iterable[str]]) -> "PostfixProgram":
        """
        Rebuild a program from its textual slots.

        Args:
            slots: Iterable of slot texts, or one whitespace-separated string
        """
        if isinstance(slots, str):
            slots = slots.split()
        return cls(Instruction.from_text(s) for s in slots)

    # =========================================================================
    # Emission
    # =========================================================================

    def emit(self, instruction: Instruction) -> int:
        """Append an instruction to the active buffer."""
        buffer = self._captures[-1] if self._captures else self._code
        buffer.append(instruction)
        return len(buffer) - 1

    def emit_address(self, name: str) -> int:
        return self.emit(Instruction(OpCode.ADDRESS, name))

    def emit_variable(self, name: str) -> int:
        return self.emit(Instruction(OpCode.VARIABLE, name))

    def emit_number(self, text: str) -> int:
        return self.emit(Instruction(OpCode.NUMBER, text))

    def emit_bool(self, value: bool) -> int:
        return self.emit(Instruction(OpCode.BOOL, "true" if value else "false"))

    def emit_operator(self, symbol: str) -> int:
        if symbol not in OPERATORS:
            raise ValueError(f"not an operator: {symbol!r}")
        return self.emit(Instruction(OpCode.OPERATOR, symbol))

    def emit_target(self, index: int) -> int:
        """Emit a known (backward) jump target."""
        return self.emit(Instruction(OpCode.TARGET, str(index)))

    def emit_assign(self) -> int:
        return self.emit(Instruction(OpCode.ASSIGN))

    def emit_jump_if_false(self) -> int:
        return self.emit(Instruction(OpCode.JUMP_IF_FALSE))

    def emit_jump(self) -> int:
        return self.emit(Instruction(OpCode.JUMP))

    def emit_read(self) -> int:
        return self.emit(Instruction(OpCode.READ))

    def emit_write(self) -> int:
        return self.emit(Instruction(OpCode.WRITE))

    def emit_halt(self) -> int:
        return self.emit(Instruction(OpCode.HALT))

    # =========================================================================
    # Backpatching
    # =========================================================================

    @property
    def position(self) -> int:
        """Index the next main-sequence instruction will get."""
        return len(self._code)

    @property
    def pending_patches(self) -> tuple[int, ...]:
        """Indices of reserved, not yet patched slots (oldest first)."""
        return tuple(self._patch_stack)

    def push_patch_point(self) -> int:
        """Reserve a placeholder for a forward jump target."""
        if self._captures:
            raise RuntimeError("cannot reserve a jump target while capturing code")

        index = self.emit(Instruction(OpCode.PLACEHOLDER))
        self._patch_stack.append(index)
        return index

    def patch(self, target: int | None = None) -> int:
        """
        Resolve the most recent placeholder.

        Args:
            target: Jump destination; defaults to the current position

        Returns:
            Index of the patched slot
        """
        if not self._patch_stack:
            raise RuntimeError("no pending jump target to patch")

        index = self._patch_stack.pop()
        if target is None:
            target = self.position
        self._code[index] = Instruction(OpCode.TARGET, str(target))
        logger.debug(f"Patched slot {index} -> {target}")
        return index

    # =========================================================================
    # Code Motion
    # =========================================================================

    def begin_capture(self) -> None:
        """Redirect emission into a fresh side buffer."""
        self._captures.append([])

    def end_capture(self) -> tuple[Instruction, ...]:
        """Stop capturing and return the captured instructions."""
        if not self._captures:
            raise RuntimeError("end_capture() without begin_capture()")
        return tuple(self._captures.pop())

    def splice(self, instructions: Iterable[Instruction]) -> int:
        """Append previously captured instructions; returns the new position."""
        for instruction in instructions:
            self.emit(instruction)
        return self.position

    # =========================================================================
    # Access and Rendering
    # =========================================================================

    @property
    def instructions(self) -> tuple[Instruction, ...]:
        return tuple(self._code)

    def texts(self) -> list[str]:
        """Textual slots in order."""
        return [instruction.text for instruction in self._code]

    def listing(self) -> list[tuple[int, str]]:
        """(index, text) rows for display."""
        return list(enumerate(self.texts()))

    def __len__(self) -> int:
        return len(self._code)

    def __iter__(self) -> Iterator[Instruction]:
        return iter(self._code)

    def __getitem__(self, index: int) -> Instruction:
        return self._code[index]

    def __str__(self) -> str:
        return " ".join(self.texts())

    def __repr__(self) -> str:
        return f"PostfixProgram({len(self._code)} instructions)"
