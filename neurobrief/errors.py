"""Exception taxonomy for pipeline failures."""


class PipelineError(Exception):
    """Base class for pipeline errors."""


class ConfigurationError(PipelineError):
    """Required configuration (usually a credential) is missing.

    Never retried.
    """


class CircuitOpenError(PipelineError):
    """A circuit breaker rejected the call without invoking it."""


class MalformedResponseError(PipelineError):
    """An AI response could not be turned into usable records."""

    def __init__(self, code: str, message: str):
        super().__init__(f"{code}: {message}")
        self.code = code


class InsufficientInputError(PipelineError):
    """A step requires more usable inputs than it was given."""
