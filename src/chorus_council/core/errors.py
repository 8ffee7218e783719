"""Exception hierarchy for the reconciliation engine.

Nothing raised here is fatal to the process: malformed or hostile events are
reported through fold results, and only caller-initiated writes surface
exceptions.
"""


class CouncilError(RuntimeError):
    """Base exception raised for engine failures."""


class PublishError(CouncilError):
    """Raised when the transport could not publish an event draft.

    The engine performs no retry; callers decide whether to resubmit.
    """


class UnknownEntityError(CouncilError, LookupError):
    """Raised when a write refers to a community, proposal or post not in any projection."""


class InvalidDraftError(CouncilError, ValueError):
    """Raised when a write request cannot be turned into a well-formed event draft."""
