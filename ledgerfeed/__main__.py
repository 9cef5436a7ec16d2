"""Main entry point when executing ledgerfeed as a package.

This allows running the package using python -m ledgerfeed.
"""

from ledgerfeed.main import cli_entry_point

if __name__ == "__main__":
    cli_entry_point()
