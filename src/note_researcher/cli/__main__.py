"""Allow ``python -m note_researcher.cli``."""

from note_researcher.cli.main import cli

if __name__ == "__main__":
    cli()
