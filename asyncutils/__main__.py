"""Main entry point when executing asyncutils as a package.

This allows running the package using python -m asyncutils.
"""

from asyncutils.main import cli_entry_point

if __name__ == "__main__":
    cli_entry_point()
