"""
M-Language Command-Line Interface
=================================

This package provides the `mlc` command-line shell for the toolchain:

- **mlc scan**: show tokens and lexeme tables
- **mlc check**: syntax/type check, optional postfix listing
- **mlc run**: compile and execute a program

The shell is a Click-based CLI application.
"""

__all__ = ["mlc"]
