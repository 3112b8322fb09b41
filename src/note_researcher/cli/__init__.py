"""note-researcher command line interface."""

from note_researcher.cli.main import cli

__all__ = ["cli"]
