"""Exception hierarchy for the orgchart engine.

None of these ever cross a Mailbox: a Worker converts failures into
status changes, events, or tool-result strings.
"""


class OrgchartError(Exception):
    """Base class for all orgchart errors."""


class TransportError(OrgchartError):
    """The LLM call failed after the adapter's own retries.

    Attributes:
        provider: Adapter/provider name that raised (e.g. ``"openai"``).
        cause: The underlying SDK exception, if any.
    """

    def __init__(self, message: str, *, provider: str = "", cause: Exception | None = None):
        super().__init__(message)
        self.provider = provider
        self.cause = cause


class DelegationError(OrgchartError):
    """A delegation request could not be honoured (level violation)."""


class UnknownRoleError(DelegationError):
    """The requested role id is not in the role registry."""


class ConfigError(OrgchartError):
    """Invalid or missing configuration (e.g. no API key for the provider)."""
