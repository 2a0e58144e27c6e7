"""
Error taxonomy for a Scout run.

Each error has a fixed scope. Components raise these internally and turn
them into tagged results or logged defaults at their boundary:

- SourceUnavailable: one source failed, its result is empty.
- AnalysisFailed: one AI call failed, the candidate gets a fallback text.
- PersistenceCorrupt: a state file failed to parse, treated as empty.
- PersistenceWriteFailed: a commit failed, the report is still delivered.
- DeliveryFailed: the report was rejected by the sink, no retry.
"""


class ScoutError(Exception):
    """Base class for all Scout errors."""


class SourceUnavailable(ScoutError):
    """A source connector could not produce signals."""

    def __init__(self, source: str, reason: str):
        self.source = source
        self.reason = reason
        super().__init__(f"{source}: {reason}")


class AnalysisFailed(ScoutError):
    """The text-generation call failed or returned unusable content."""


class PersistenceCorrupt(ScoutError):
    """Persisted state exists but could not be parsed."""


class PersistenceWriteFailed(ScoutError):
    """Persisted state could not be written."""


class DeliveryFailed(ScoutError):
    """The report sink rejected the report."""
