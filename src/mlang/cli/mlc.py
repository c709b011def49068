"""
mlc - M-Language Toolchain Command-Line Interface
=================================================

This module implements the command-line shell of the toolchain. It
reads source files, shows the scanner's tokens and tables, reports the
single build error of a failed compilation and runs programs with
line-based console I/O.

Usage Examples
--------------
Show tokens and lexeme tables:
    $ mlc scan factorial.m

Check a program and print its postfix code:
    $ mlc check factorial.m --listing

Run a program, taking readln input from a file:
    $ mlc run factorial.m --input numbers.txt

Environment
-----------
MLANG_MAX_INSTRUCTIONS and MLANG_ECHO_INPUT override the defaults (see
mlang.compiler.CompilerOptions.from_env).

Exit Codes
----------
0 - Success
1 - Scan, parse or runtime error
2 - Invalid arguments
3 - Internal error
"""

import logging
from pathlib import Path
from typing import Callable, Optional

import click

from mlang import __version__
from mlang.cli.errors import handle_cli_exception
from mlang.compiler import CompilerOptions, MLangCompiler
from mlang.lexer import scan
from mlang.tables import format_tokens

logger = logging.getLogger(__name__)


# =============================================================================
# CLI Context and Utilities
# =============================================================================

class Context:
    """
    Shared context for CLI commands.

    Stores common options like verbosity.
    """

    def __init__(self) -> None:
        self.verbose: bool = False

    def setup_logging(self) -> None:
        """Configure logging based on verbosity."""
        level = logging.DEBUG if self.verbose else logging.WARNING
        logging.basicConfig(
            level=level,
            format="%(levelname)s: %(name)s: %(message)s" if self.verbose else "%(message)s",
        )


pass_context = click.make_pass_decorator(Context, ensure=True)


def read_source(path: str) -> str:
    """Read a source file as UTF-8 text."""
    return Path(path).read_text(encoding="utf-8")


def make_input_reader(input_file: Optional[str], echo: bool) -> Callable[[], str]:
    """
    Build the readln callback.

    Lines come from `input_file` when given, otherwise from stdin.
    Exhausted input reads as an empty line.
    """
    if input_file is not None:
        lines = iter(read_source(input_file).splitlines())

        def next_line() -> str:
            return next(lines, "")
    else:
        stdin = click.get_text_stream("stdin")

        def next_line() -> str:
            return stdin.readline().rstrip("\r\n")

    def reader() -> str:
        line = next_line()
        if echo:
            click.echo(f"> {line}")
        return line

    return reader


# =============================================================================
# Main Group
# =============================================================================

@click.group()
@click.option(
    "-v", "--verbose",
    is_flag=True,
    help="Enable verbose (debug) logging",
)
@click.version_option(version=__version__, prog_name="mlc")
@pass_context
def main(ctx: Context, verbose: bool) -> None:
    """
    Scan, check and run programs written in the M language.

    A program looks like:

    \b
      program var
        int n;
      begin
        readln n;
        writeln n * 2
      end.
    """
    ctx.verbose = verbose
    ctx.setup_logging()


# =============================================================================
# Scan Command
# =============================================================================

@main.command("scan")
@click.argument("file", type=click.Path(exists=True, dir_okay=False))
@pass_context
def scan_command(ctx: Context, file: str) -> None:
    """
    Show the tokens and lexeme tables of FILE.

    Tokens are printed as (table,index) pairs; tables as 'index value'
    rows.
    """
    try:
        result = scan(read_source(file))
    except Exception as e:
        handle_cli_exception(e, ctx.verbose)

    if not result.success:
        handle_cli_exception(result.error, ctx.verbose)

    click.echo(format_tokens(result.tokens))
    click.echo()
    click.echo("identifiers:")
    for entry in result.identifiers:
        click.echo(f"  {entry}")
    click.echo("numbers:")
    for entry in result.numbers:
        click.echo(f"  {entry}")


# =============================================================================
# Check Command
# =============================================================================

@main.command()
@click.argument("file", type=click.Path(exists=True, dir_okay=False))
@click.option(
    "--listing", "-l",
    is_flag=True,
    help="Print the generated postfix program",
)
@pass_context
def check(ctx: Context, file: str, listing: bool) -> None:
    """
    Check FILE for lexical, syntax and type errors.

    Prints OK, or the first error found.
    """
    compiler = MLangCompiler(CompilerOptions.from_env())
    try:
        result = compiler.compile_file(file)
    except Exception as e:
        handle_cli_exception(e, ctx.verbose)

    if not result.success:
        handle_cli_exception(result.error, ctx.verbose)

    click.echo("OK")
    if listing:
        for index, text in result.program.listing():
            click.echo(f"{index:5d}  {text}")


# =============================================================================
# Run Command
# =============================================================================

@main.command()
@click.argument("file", type=click.Path(exists=True, dir_okay=False))
@click.option(
    "--input", "-i", "input_file",
    type=click.Path(exists=True, dir_okay=False),
    default=None,
    help="Read readln input lines from this file instead of stdin",
)
@click.option(
    "--max-instructions",
    type=click.IntRange(min=1),
    default=None,
    help="Instruction ceiling (default: 1000000)",
)
@pass_context
def run(ctx: Context, file: str, input_file: Optional[str], max_instructions: Optional[int]) -> None:
    """
    Compile and run FILE.

    writeln output goes to stdout, one value per line. readln takes one
    line per variable from --input or stdin.

    Example:
        mlc run factorial.m --input numbers.txt
    """
    options = CompilerOptions.from_env()
    if max_instructions is not None:
        options.max_instructions = max_instructions

    compiler = MLangCompiler(options)
    try:
        result = compiler.compile_file(file)
        if not result.success:
            raise result.error

        executed = compiler.run(
            result,
            click.echo,
            make_input_reader(input_file, options.echo_input),
        )
        logger.info(f"Executed {executed} instructions")
    except Exception as e:
        handle_cli_exception(e, ctx.verbose)


# =============================================================================
# Entry Point
# =============================================================================

if __name__ == "__main__":
    main()
