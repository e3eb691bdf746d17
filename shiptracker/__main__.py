"""Main entry point when executing shiptracker as a package.

This allows running the package using python -m shiptracker.
"""

from shiptracker.main import cli_entry_point

if __name__ == "__main__":
    cli_entry_point()
