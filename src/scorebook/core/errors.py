"""Error taxonomy for the match core.

Validation failures are recoverable: the log is untouched and the caller may
retry with corrected input. Storage failures are raised by the storage
collaborator and propagate unchanged.
"""

from __future__ import annotations


class ScorebookError(Exception):
    """Base class for all Scorebook errors."""


class UnknownTemplateError(ScorebookError):
    """No rule template is registered under the requested id."""

    def __init__(self, template_id: str) -> None:
        self.template_id = template_id
        super().__init__(f"Unknown rule template: {template_id}")


class ValidationRejected(ScorebookError):
    """A candidate event failed rule checks. Carries a human-readable reason."""

    def __init__(self, reason: str) -> None:
        self.reason = reason
        super().__init__(reason)


class UnknownPosition(ValidationRejected):
    """The position is not permitted to score under the template."""


class IneligiblePosition(ValidationRejected):
    """The position may score, but not from the named zone."""


class UnknownZone(ValidationRejected):
    """The named zone is not configured in the template."""


class PointsMismatch(ValidationRejected):
    """The claimed point value differs from the zone's configured value."""


class SetupIncomplete(ScorebookError):
    """Match start requested without both team names. No events emitted."""


class MatchAlreadyStarted(ScorebookError):
    """start_match called on a controller that already owns a log."""


class MatchNotActive(ScorebookError):
    """An intent was issued for a match that is not in the active phase."""


class StorageUnavailable(ScorebookError):
    """The event store was used before it was opened (or after it was closed)."""


class SequenceConflict(ScorebookError):
    """An appended event's sequence does not continue the match log."""


class UnknownMatch(ScorebookError):
    """No events are stored for the requested match id."""

    def __init__(self, match_id: str) -> None:
        self.match_id = match_id
        super().__init__(f"Unknown match: {match_id}")
