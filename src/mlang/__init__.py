"""
M-Language Toolchain - Scanner, Compiler and Postfix Interpreter
================================================================

This package provides an educational toolchain for M, a small
imperative language with int/float/bool variables, assignment,
if/while/for and line-based read/write.

Main Components
---------------
- **lexer**: finite-state-machine scanner producing (table, index)
    tokens and the identifier/number tables
- **parser**: recursive-descent driver that checks syntax and types
    and emits postfix code in a single pass
- **semantic**: the type-stack checker the parser drives
- **postfix**: postfix instruction model and backpatching arena
- **interpreter**: stack virtual machine executing postfix programs
- **compiler**: pipeline facade and configuration

Quick Start
-----------
    >>> from mlang import run_source
    >>> source = '''
    ... program var
    ...   int n, i, factorial;
    ... begin
    ...   readln n;
    ...   factorial := 1;
    ...   for i := 1 to n step 1 begin
    ...     factorial := factorial * i;
    ...   end next;
    ...   writeln factorial;
    ... end.
    ... '''
    >>> run_source(source, ["5"])
    ['120']

Or use the command-line shell:
    $ mlc run factorial.m
"""

__version__ = "1.0.0"
__author__ = "M-Language Toolchain Contributors"

from mlang.errors import (
    MLangError,
    LexicalError,
    MLangSyntaxError,
    SemanticError,
    InterpreterError,
)
from mlang.tables import Token, TableEntry, format_tokens, parse_tokens
from mlang.lexer import Scanner, ScanResult, scan
from mlang.postfix import Instruction, OpCode, PostfixProgram
from mlang.parser import Parser, ParseResult, parse
from mlang.interpreter import Interpreter, VariableRef, DEFAULT_MAX_INSTRUCTIONS
from mlang.compiler import (
    CompilerOptions,
    CompilerResult,
    MLangCompiler,
    compile_source,
    run_source,
)

__all__ = [
    "__version__",
    # Errors
    "MLangError",
    "LexicalError",
    "MLangSyntaxError",
    "SemanticError",
    "InterpreterError",
    # Tokens and tables
    "Token",
    "TableEntry",
    "format_tokens",
    "parse_tokens",
    # Stages
    "Scanner",
    "ScanResult",
    "scan",
    "Parser",
    "ParseResult",
    "parse",
    "Instruction",
    "OpCode",
    "PostfixProgram",
    "Interpreter",
    "VariableRef",
    "DEFAULT_MAX_INSTRUCTIONS",
    # Facade
    "CompilerOptions",
    "CompilerResult",
    "MLangCompiler",
    "compile_source",
    "run_source",
]
