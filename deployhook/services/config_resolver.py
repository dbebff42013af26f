"""Cascading lookup of per-repository settings over the global defaults.

Every ``resolve_*`` function is a pure function of the loaded document and a
full repository name (``owner/name``).  Specific settings override defaults
field by field.
"""

from pathlib import Path

import structlog
import yaml
from pydantic import ValidationError

from deployhook.errors import ConfigError
from deployhook.schemas.config import Command, DeployConfig, SpecificOptions

logger = structlog.get_logger()

DEFAULT_FOLLOW_BRANCH = "master"


def load_config(path: str | Path) -> DeployConfig:
    """Read and validate the YAML deployment document at ``path``.

    Raises:
        ConfigError: If the file cannot be read, is not YAML, or fails validation.
    """
    try:
        raw = Path(path).read_text(encoding="utf-8")
    except OSError as exc:
        msg = f"Failed to read configuration file {path}: {exc}"
        raise ConfigError(msg) from exc
    return parse_config(raw)


def parse_config(raw: str) -> DeployConfig:
    """Validate a YAML deployment document given as text."""
    try:
        document = yaml.safe_load(raw)
    except yaml.YAMLError as exc:
        msg = f"Configuration is not valid YAML: {exc}"
        raise ConfigError(msg) from exc

    try:
        return DeployConfig.model_validate(document or {})
    except ValidationError as exc:
        msg = f"Configuration is invalid: {exc}"
        raise ConfigError(msg) from exc


def get_specific_config(config: DeployConfig, repository: str) -> SpecificOptions | None:
    return config.specific.get(repository)


def repository_basename(repository: str) -> str:
    """Return ``name`` from ``owner/name``."""
    return repository.rsplit("/", 1)[-1]


def resolve_secret(config: DeployConfig, repository: str) -> str | None:
    specific = get_specific_config(config, repository)
    if specific is not None and specific.secret is not None:
        return specific.secret
    return config.default.secret


def resolve_binaries(config: DeployConfig, repository: str) -> list[str]:
    """Binaries to build and restart, defaulting to the repository name."""
    specific = get_specific_config(config, repository)
    if specific is not None and specific.binaries is not None:
        return list(specific.binaries)
    return [repository_basename(repository)]


def resolve_code_root(config: DeployConfig, repository: str) -> Path:
    """Directory inside the repository where the build runs (empty means root)."""
    specific = get_specific_config(config, repository)
    if specific is not None and specific.code_root is not None:
        return specific.code_root
    return Path()


def resolve_follow_branch(config: DeployConfig, repository: str) -> str:
    specific = get_specific_config(config, repository)
    if specific is not None and specific.follow is not None:
        return specific.follow
    return DEFAULT_FOLLOW_BRANCH


def resolve_should_build_binaries(config: DeployConfig, repository: str) -> bool:
    specific = get_specific_config(config, repository)
    if specific is not None and specific.should_build_binaries is not None:
        return specific.should_build_binaries
    return True


def resolve_pre_commands(config: DeployConfig, repository: str) -> list[Command] | None:
    specific = get_specific_config(config, repository)
    if specific is None or specific.pre_commands is None:
        return None
    return list(specific.pre_commands)


def resolve_post_commands(config: DeployConfig, repository: str) -> list[Command] | None:
    specific = get_specific_config(config, repository)
    if specific is None or specific.post_commands is None:
        return None
    return list(specific.post_commands)


def check_for_potential_mistakes(config: DeployConfig) -> list[str]:
    """Log a warning for each setting that is likely to break a deployment.

    Nothing here is fatal: missing paths may legitimately appear later (for
    example a key mounted after startup).  Returns the warnings for callers
    that want to inspect them.
    """
    warnings: list[str] = []
    defaults = config.default

    for label, path in (
        ("ssh_private_key", defaults.ssh_private_key),
        ("repo_root", defaults.repo_root),
        ("cargo_path", defaults.cargo_path),
    ):
        if not path.exists():
            warnings.append(f"{label} does not exist: {path}")

    for repository, specific in config.specific.items():
        if specific.code_root is not None and specific.code_root.is_absolute():
            warnings.append(
                f"code_root for {repository} is absolute ({specific.code_root}); "
                "it must be relative to the repository"
            )

    for warning in warnings:
        logger.warning("config_warning", detail=warning)
    return warnings
