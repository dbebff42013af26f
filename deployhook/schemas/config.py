"""Pydantic models for the YAML deployment document."""

from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field


class Command(BaseModel):
    """An operator-defined command run before or after the build."""

    model_config = ConfigDict(frozen=True)

    program: str
    args: list[str] = Field(default_factory=list)
    working_dir: Path | None = None

    def display(self) -> str:
        """Render the command the way an operator would type it."""
        return " ".join([self.program, *self.args])


class NotificationOptions(BaseModel):
    """Discord channel that receives deployment outcomes."""

    model_config = ConfigDict(frozen=True)

    discord_token: str
    channel_id: int


class Options(BaseModel):
    """Global defaults shared by every repository."""

    model_config = ConfigDict(frozen=True)

    ssh_private_key: Path
    repo_root: Path
    cargo_path: Path
    supervisor_path: str = "supervisorctl"
    port: int | None = None
    secret: str | None = None
    notifications: NotificationOptions | None = None


class SpecificOptions(BaseModel):
    """Per-repository overrides, keyed by ``owner/name`` in the document."""

    model_config = ConfigDict(frozen=True)

    code_root: Path | None = None
    binaries: list[str] | None = None
    secret: str | None = None
    follow: str | None = None
    should_build_binaries: bool | None = None
    pre_commands: list[Command] | None = None
    post_commands: list[Command] | None = None


class DeployConfig(BaseModel):
    """The full deployment document, immutable once loaded."""

    model_config = ConfigDict(frozen=True)

    default: Options
    specific: dict[str, SpecificOptions] = Field(default_factory=dict)
