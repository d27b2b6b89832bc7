"""Run SQLGate as a module."""

from sqlgate.cli.commands import app


def main() -> None:
    """Entrypoint for `python -m sqlgate`."""
    app()


if __name__ == "__main__":
    main()
