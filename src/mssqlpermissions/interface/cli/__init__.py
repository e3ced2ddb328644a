"""
Command line entry point.
"""

from mssqlpermissions.interface.cli.app import app


def main() -> int:
    """
    Main entry point for the mssqlpermissions CLI.

    Returns:
        int: Exit code (0 for success, non-zero for failure)
    """
    try:
        app()
    except SystemExit as e:
        if e.code is None:
            return 0
        return e.code if isinstance(e.code, int) else 1
    return 0


__all__ = ["app", "main"]
