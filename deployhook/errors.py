"""Exception taxonomy for webhook ingress and the deployment pipeline.

Ingress errors (``AuthError``, ``DecodeError``) carry the HTTP status code the
webhook router answers with.  Everything raised after an event is enqueued is
only ever logged and reported through the notification sink.
"""

from fastapi import status


class AuthError(Exception):
    """Base class for payload authentication failures."""

    status_code: int = status.HTTP_400_BAD_REQUEST


class MissingSignature(AuthError):
    """A secret is configured for the repository but the request was not signed."""

    def __init__(self) -> None:
        super().__init__(
            "A secret is configured for this repository, but the incoming request was not signed"
        )


class UnexpectedSignature(AuthError):
    """The request was signed but no secret is configured for the repository."""

    def __init__(self) -> None:
        super().__init__(
            "The incoming request was signed, but no secret is configured for this repository"
        )


class MalformedSignature(AuthError):
    """The provided signature is not valid hex."""

    def __init__(self) -> None:
        super().__init__("The provided signature could not be decoded")


class SignatureMismatch(AuthError):
    """The provided signature does not match the payload."""

    status_code = status.HTTP_401_UNAUTHORIZED

    def __init__(self) -> None:
        super().__init__("Secret failed to authorise the payload")


class DecodeError(Exception):
    """Base class for payload classification and parsing failures."""

    status_code: int = status.HTTP_400_BAD_REQUEST


class UnknownEventType(DecodeError):
    """The event-type header is missing or names an unsupported event."""

    def __init__(self, event_type: str | None) -> None:
        self.event_type = event_type
        super().__init__(f"Unsupported event type: {event_type!r}")


class MalformedPayload(DecodeError):
    """The payload is not valid JSON or does not match the event schema."""

    status_code = status.HTTP_422_UNPROCESSABLE_ENTITY


class GitError(Exception):
    """Fetching or merging a repository failed."""


class ProcessError(Exception):
    """An external command could not be run or exited unsuccessfully."""


class NotifyError(Exception):
    """A notification could not be delivered."""


class ConfigError(Exception):
    """The deployment document could not be read or validated."""
