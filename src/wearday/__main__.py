"""Main function for wearday."""

from wearday.core import cli


def run_main() -> None:
    """Main entry point to wearday."""
    cli.app()


if __name__ == "__main__":
    cli.app()
