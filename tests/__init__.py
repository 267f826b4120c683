"""
schemaevo Test Suite.

This package contains:
- unit/: Unit tests per module (no I/O beyond tmp_path)
- integration/: CLI tests end to end through main(argv)
"""
