from __future__ import annotations

import os
from enum import StrEnum, auto
from pathlib import Path

from dotenv import dotenv_values, find_dotenv
from pydantic import BaseModel, ConfigDict, Field

DEFAULT_OUTPUT = "AGENTS.md"
DEFAULT_ENGRAIN_DIR = ".engrain"
ENV_OUTPUT = "ENGRAIN_OUTPUT"
ENV_ENGRAIN_DIR = "ENGRAIN_DIR"


def env_value(key: str, default: str | None = None) -> str | None:
    """Look ``key`` up in the process environment, then in the nearest ``.env`` file.

    Args:
        key (str): variable name.
        default (str | None): value used when the variable is set nowhere.

    Returns:
        str | None: the configured value.
    """
    if value := os.environ.get(key):
        return value
    env_file = find_dotenv(usecwd=True)
    if env_file:
        value = dotenv_values(env_file).get(key)
        if value:
            return value
    return default


class DocsProfile(StrEnum):
    """What gets indexed when a source URL has no explicit subpath."""

    DOCS = auto()
    REPO = auto()


class CommonSettings(BaseModel):
    """Options shared by every command."""

    model_config = ConfigDict(frozen=True)

    project: Path = Field(default_factory=Path.cwd, description="Project root (lock file, output).")
    output: Path | None = Field(
        default_factory=lambda: Path(v) if (v := env_value(ENV_OUTPUT)) else None,
        description="Target file; None lets `docs` pick AGENTS.md or CLAUDE.md.",
    )
    log_file: str = Field(default="", description="Log file path.")

    @property
    def output_path(self) -> Path:
        """Output file resolved against the project root (AGENTS.md when unset)."""
        output = self.output if self.output is not None else Path(DEFAULT_OUTPUT)
        return output if output.is_absolute() else self.project / output


class EngrainDirSettings(CommonSettings):
    engrain_dir: str = Field(
        default_factory=lambda: env_value(ENV_ENGRAIN_DIR, DEFAULT_ENGRAIN_DIR) or DEFAULT_ENGRAIN_DIR,
        description="Directory receiving documentation copies.",
    )

    @property
    def engrain_base(self) -> Path:
        base = Path(self.engrain_dir)
        return base if base.is_absolute() else self.project / base

    @property
    def engrain_label(self) -> str:
        """Engrain directory as written in the index root section (``./.engrain``)."""
        if Path(self.engrain_dir).is_absolute() or self.engrain_dir.startswith(("./", "../")):
            return self.engrain_dir.rstrip("/")
        return f"./{self.engrain_dir.rstrip('/')}"


class DocsSettings(EngrainDirSettings):
    source: str = Field(..., description="Repository URL, owner/repo shorthand or local path.")
    name: str | None = Field(default=None, description="Doc name override.")
    ref: str | None = Field(default=None, description="Branch or tag.")
    profile: DocsProfile = Field(default=DocsProfile.DOCS, description="docs or repo.")
    dry_run: bool = Field(default=False, description="Preview the index, do not write.")
    force: bool = Field(default=False, description="Overwrite an existing block.")


class CheckSettings(CommonSettings):
    doc_name: str | None = Field(default=None, description="Only check this doc.")


class RemoveSettings(CommonSettings):
    doc_name: str = Field(..., description="Doc to remove.")
    prune: bool = Field(default=False, description="Remove the wrapper once it holds no doc.")


class ClearSettings(CommonSettings):
    force: bool = Field(default=False, description="Skip the confirmation refusal.")


class SyncSettings(EngrainDirSettings):
    """Options of the `sync` command."""
