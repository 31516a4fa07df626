"""
shared/errors.py

Exception hierarchy for the dispatcher.

Only failures that abort a request (or a boundary that is not implemented) are
exceptions. Soft misses such as "no matching user" or "no matching package"
are `Lookup` results with an explicit absent status, see `shared.models`.
Each class carries the HTTP status code the API layer answers with.
"""


class AvaError(Exception):
    """Base class for all dispatcher errors."""

    status_code = 500


class InvalidCommandError(AvaError):
    """The `cmd` field was missing or empty."""

    status_code = 400

    def __init__(self, message: str = "invalid command"):
        super().__init__(message)


class ValidationError(AvaError):
    """A numeric request parameter (`uid`, `flexidtype`) could not be parsed."""

    status_code = 400


class TrainingCommandError(AvaError):
    """A `train` command was missing its label or its example text."""

    status_code = 400


class ClassifierError(AvaError):
    """The classifier cannot produce a result (untrained model, corrupt state)."""


class PackageClientError(AvaError):
    """
    Base exception for package invocation errors.

    Raised for non-timeout failures such as transport errors, non-200 HTTP
    responses or malformed JSON returned by a package.
    """

    status_code = 502


class PackageClientTimeoutError(PackageClientError):
    """
    Timeout-specific package error.

    Kept distinct so callers and metrics can tell an unresponsive package apart
    from one that answered with garbage.
    """

    status_code = 504


class InteractionLogError(AvaError):
    """The final interaction record could not be persisted."""


class NotImplementedBoundaryError(AvaError):
    """An HTTP boundary that exists but has no implementation yet."""

    status_code = 501

    def __init__(self, message: str = "not implemented"):
        super().__init__(message)
