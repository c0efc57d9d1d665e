"""Error types raised by the dispute record and its codec.

None of these are fatal to the process. Each one is raised to the immediate
caller, which decides whether to retry, discard the record or escalate.
"""

from __future__ import annotations

from typing import Any, List, Optional


class DisputeError(Exception):
    """Base class for dispute record errors."""
    pass


class DuplicateMessageError(DisputeError):
    """A direct message equal to one already in the log was appended."""

    def __init__(self, dispute_id: str, message: Any):
        self.dispute_id = dispute_id
        self.message = message
        super().__init__(f"disputeDirectMessage already exists in dispute {dispute_id}")


class UnboundMutationError(DisputeError):
    """A mutator ran before a persistence trigger was attached."""

    def __init__(self, dispute_id: str, operation: str):
        self.dispute_id = dispute_id
        self.operation = operation
        super().__init__(
            f"{operation} called on dispute {dispute_id} with no storage attached; "
            f"call set_storage() after decoding"
        )


class DecodeError(DisputeError):
    """Decoding a payload failed.

    ``description`` is a one-line summary for the caller, ``errors`` the
    individual problems found (schema paths, missing fields).
    """

    def __init__(self, description: str, errors: Optional[List[str]] = None):
        self.description = description
        self.errors = list(errors or [])
        detail = f" ({'; '.join(self.errors)})" if self.errors else ""
        super().__init__(f"{description}{detail}")


class IncompatibleEncodingError(DecodeError):
    """Payload is malformed or carries a version tag this peer does not accept."""

    def __init__(
        self,
        description: str,
        errors: Optional[List[str]] = None,
        version: Any = None,
    ):
        self.version = version
        super().__init__(description, errors)


class PartialDecodeError(IncompatibleEncodingError):
    """Payload parsed but a required, non-optional field is missing or ill-typed."""

    def __init__(
        self,
        description: str,
        missing_fields: Optional[List[str]] = None,
        errors: Optional[List[str]] = None,
        version: Any = None,
    ):
        self.missing_fields = list(missing_fields or [])
        super().__init__(description, errors, version)
