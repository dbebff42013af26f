"""Pydantic models for GitHub webhook payloads.

Only the fields the deployment pipeline reads are declared; anything else in
the payload is ignored.
"""

from pydantic import BaseModel


class CommitAuthor(BaseModel):
    """Author information from a Git commit."""

    name: str
    email: str | None = None


class HeadCommit(BaseModel):
    """The commit at the tip of the pushed ref."""

    id: str
    message: str
    author: CommitAuthor

    @property
    def short_id(self) -> str:
        return self.id[:8]

    @property
    def summary(self) -> str:
        """First line of the commit message."""
        return self.message.splitlines()[0] if self.message else ""


class Repository(BaseModel):
    """Repository metadata from the webhook payload."""

    name: str
    full_name: str
    default_branch: str | None = None


class HookConfig(BaseModel):
    """Delivery configuration of the webhook that sent a ping."""

    url: str | None = None


class Hook(BaseModel):
    """The webhook described by a ping event."""

    config: HookConfig = HookConfig()


class PushEvent(BaseModel):
    """GitHub push webhook event payload.

    Reference: https://docs.github.com/en/webhooks/webhook-events-and-payloads#push
    """

    ref: str
    repository: Repository
    head_commit: HeadCommit | None = None
    deleted: bool = False

    @property
    def full_name(self) -> str:
        return self.repository.full_name


class PingEvent(BaseModel):
    """GitHub ping event sent when a webhook is created."""

    repository: Repository
    hook: Hook = Hook()

    @property
    def full_name(self) -> str:
        return self.repository.full_name

    @property
    def acknowledgement(self) -> str:
        return f"Received a ping event from {self.full_name} for hook at {self.hook.config.url}"


WebhookEvent = PushEvent | PingEvent
