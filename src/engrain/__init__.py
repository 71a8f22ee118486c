"""engrain: embed a documentation index into AGENTS.md / CLAUDE.md."""

__version__ = "0.1.0"
