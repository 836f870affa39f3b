"""Exceptions raised by the GitHub SCM adapter.

Only the executor recovers from errors (retry, backoff, breaker). Every
other layer lets these propagate so callers see GitHub's real failure mode.
"""


class ScmError(Exception):
    """Base exception for adapter errors."""


class ValidationError(ScmError):
    """Malformed configuration or input. Never retried."""


class InvalidUrlError(ValidationError):
    """A checkout URL does not match the supported grammar."""

    def __init__(self, url: str) -> None:
        self.url = url
        super().__init__(f"Invalid scmUrl: {url}")


class MalformedIdentifierError(ValidationError):
    """An scmUri does not have the host:repoId:branch shape."""

    def __init__(self, scm_uri: str) -> None:
        self.scm_uri = scm_uri
        super().__init__(f"Invalid scmUri: {scm_uri}")


class HostMismatchError(ValidationError):
    """A checkout URL points at a host this adapter does not serve."""

    def __init__(self, host: str) -> None:
        self.host = host
        super().__init__("This checkoutUrl is not supported for your current login host.")


class InvalidSignatureError(ScmError):
    """Webhook signature verification failed."""

    def __init__(self) -> None:
        super().__init__("Invalid x-hub-signature")


class UnsupportedEventError(ScmError):
    """Webhook event type the adapter does not handle."""

    def __init__(self, event_type: str | None) -> None:
        self.event_type = event_type
        super().__init__(f"Event {event_type} not supported")


class NotAFileError(ScmError):
    """A content path resolved to a directory, symlink or submodule."""

    def __init__(self, path: str) -> None:
        self.path = path
        super().__init__(f"Path ({path}) does not point to file")


class RemoteError(ScmError):
    """GitHub returned an error or could not be reached.

    ``status_code`` is None for transport failures. The message is GitHub's
    own error message when one was returned.
    """

    def __init__(self, message: str, status_code: int | None = None) -> None:
        self.message = message
        self.status_code = status_code
        super().__init__(message)


class NotFoundError(RemoteError):
    """GitHub reported that the resource does not exist. Never retried."""

    def __init__(self, message: str) -> None:
        super().__init__(message, status_code=404)


class RemoteTimeoutError(RemoteError):
    """A single GitHub call exceeded the executor's per-call timeout."""

    def __init__(self, action: str, timeout: float) -> None:
        self.action = action
        self.timeout = timeout
        super().__init__(f"GitHub call {action} timed out after {timeout}s")


class CircuitOpenError(ScmError):
    """The breaker is open and the call was rejected without contacting GitHub."""

    def __init__(self, name: str) -> None:
        self.name = name
        super().__init__(f"Circuit breaker for {name} is open")
