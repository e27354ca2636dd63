"""Module entry point for ``python -m funkos``."""

from funkos.cli import app


def main() -> None:
    app(prog_name="funkos")


if __name__ == "__main__":
    main()
