"""Centralized FastAPI dependencies for use with Depends()."""

from deployhook.schemas.config import DeployConfig
from deployhook.services.dispatch import DispatchQueue, EventQueue, InMemoryEventQueue
from deployhook.services.git_sync import GitSyncer
from deployhook.services.history import EventHistory
from deployhook.services.notifier import DiscordNotifier
from deployhook.services.pipeline import Deployer
from deployhook.services.process_runner import SubprocessRunner

_config: DeployConfig | None = None
_event_queue: EventQueue = InMemoryEventQueue()
_history: EventHistory = EventHistory()


def init_runtime(
    config: DeployConfig,
    *,
    command_timeout: float | None = None,
    dispatch_queue_size: int = 0,
    history_size: int = 500,
) -> DispatchQueue:
    """Wire the deployer behind a real dispatch queue.

    The returned queue has not been started; the caller owns its worker.
    """
    global _config, _event_queue, _history  # noqa: PLW0603

    notifications = config.default.notifications
    notifier = DiscordNotifier(notifications.discord_token) if notifications else None

    _config = config
    _history = EventHistory(maxlen=history_size)
    deployer = Deployer(
        config=config,
        runner=SubprocessRunner(timeout=command_timeout),
        syncer=GitSyncer(),
        history=_history,
        notifier=notifier,
    )
    dispatch = DispatchQueue(deployer.handle, maxsize=dispatch_queue_size)
    _event_queue = dispatch
    return dispatch


def get_config() -> DeployConfig:
    """Return the loaded deployment document.

    Raises:
        RuntimeError: If ``init_runtime()`` has not been called.
    """
    if _config is None:
        msg = "Deployment configuration not loaded. Call init_runtime() first."
        raise RuntimeError(msg)
    return _config


def get_event_queue() -> EventQueue:
    """Return the producer side of the dispatch queue.

    Defaults to InMemoryEventQueue until ``init_runtime()`` installs the real one.
    """
    return _event_queue


def get_history() -> EventHistory:
    """Return the event history written by the dispatch worker."""
    return _history


__all__ = [
    "get_config",
    "get_event_queue",
    "get_history",
    "init_runtime",
]
