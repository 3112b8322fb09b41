"""note-researcher: run Gemini deep research jobs on Markdown notes."""

from note_researcher.config import ResearchConfig, get_config, set_config

__all__ = ["ResearchConfig", "get_config", "set_config"]
