"""Allow running forksync as `python -m forksync`."""

from forksync.cli import cli_main

if __name__ == "__main__":
    cli_main()
