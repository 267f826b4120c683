"""
CLI tools for schemaevo.

This module provides the `schemaevo` command line entry point.

Invariants:
    - Tools work offline on local files and the local snapshot store
    - Output formats are stable for CI parsing
"""

from .schema_cli import SchemaCLI, main

__all__ = ["SchemaCLI", "main"]
