"""
Run Diagnostics Module.

Tracks per-run statistics and decides whether the admin should hear
about a run.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional

logger = logging.getLogger("scout.diagnostics")


@dataclass
class RunDiagnostics:
    """Diagnostic information for a pipeline run."""

    # Run metadata
    run_id: str
    start_time: datetime
    end_time: Optional[datetime] = None

    # Fetch statistics: source name -> signals fetched
    sources_ok: dict[str, int] = field(default_factory=dict)
    sources_failed: dict[str, str] = field(default_factory=dict)

    # Selection: family -> candidates selected
    candidates: dict[str, int] = field(default_factory=dict)

    # Analysis statistics
    llm_calls_made: int = 0
    llm_failures: int = 0
    llm_tokens_used: int = 0

    # Outcome
    persistence_ok: bool = True
    email_sent: bool = False
    message_id: Optional[str] = None
    admin_email_sent: bool = False

    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)

    @property
    def duration_seconds(self) -> float:
        """Total run duration in seconds."""
        end = self.end_time or datetime.now()
        return (end - self.start_time).total_seconds()

    @property
    def duration_formatted(self) -> str:
        seconds = self.duration_seconds
        if seconds < 60:
            return f"{seconds:.1f}s"
        return f"{seconds / 60:.1f}m"

    @property
    def total_signals(self) -> int:
        return sum(self.sources_ok.values())

    @property
    def total_candidates(self) -> int:
        return sum(self.candidates.values())

    @property
    def has_critical_errors(self) -> bool:
        """A run is critical if nothing could be fetched or a digest was lost."""
        all_sources_down = bool(self.sources_failed) and not self.sources_ok
        digest_lost = self.total_candidates > 0 and not self.email_sent
        return all_sources_down or digest_lost or not self.persistence_ok

    def add_error(self, error: str) -> None:
        """Record an error during the run."""
        self.errors.append(f"[{datetime.now().strftime('%H:%M:%S')}] {error}")
        logger.error(f"Diagnostic error recorded: {error}")

    def add_warning(self, warning: str) -> None:
        """Record a warning during the run."""
        self.warnings.append(f"[{datetime.now().strftime('%H:%M:%S')}] {warning}")
        logger.warning(f"Diagnostic warning recorded: {warning}")

    def format_summary(self) -> str:
        """Generate a text summary for logging and admin emails."""
        lines = [
            "=" * 60,
            "RUN DIAGNOSTICS SUMMARY",
            "=" * 60,
            f"Run ID: {self.run_id}",
            f"Duration: {self.duration_formatted}",
            f"Status: {'✓ SUCCESS' if not self.has_critical_errors else '✗ FAILED'}",
            "",
            "SOURCES:",
        ]
        lines.extend(f"  ✓ {name}: {count}" for name, count in sorted(self.sources_ok.items()))
        lines.extend(f"  ✗ {name}: {reason}" for name, reason in sorted(self.sources_failed.items()))
        lines.extend([
            f"  Total signals: {self.total_signals}",
            "",
            "CANDIDATES:",
        ])
        lines.extend(f"  {family}: {count}" for family, count in self.candidates.items())
        lines.extend([
            "",
            "ANALYSIS:",
            f"  LLM calls: {self.llm_calls_made} ({self.llm_failures} failed, {self.llm_tokens_used} tokens)",
            "",
            "OUTPUT:",
            f"  State committed: {self.persistence_ok}",
            f"  Email sent: {self.email_sent}" + (f" ({self.message_id})" if self.message_id else ""),
        ])

        if self.errors:
            lines.extend(["", "ERRORS:"])
            lines.extend(f"  • {e}" for e in self.errors)

        if self.warnings:
            lines.extend(["", "WARNINGS:"])
            lines.extend(f"  • {w}" for w in self.warnings)

        lines.append("=" * 60)
        return "\n".join(lines)


class DiagnosticsCollector:
    """Collects diagnostic information throughout the pipeline run."""

    def __init__(self, run_id: str):
        self.diagnostics = RunDiagnostics(
            run_id=run_id,
            start_time=datetime.now(),
        )
        logger.info(f"Diagnostics collector initialized for run {run_id}")

    def finalize(self) -> RunDiagnostics:
        """Mark run as complete, log the summary and return final diagnostics."""
        self.diagnostics.end_time = datetime.now()
        for line in self.diagnostics.format_summary().split("\n"):
            logger.info(line)
        return self.diagnostics


def should_send_admin_alert(diagnostics: RunDiagnostics) -> tuple[bool, str]:
    """
    Determine if admin should be alerted based on diagnostics.

    Returns:
        Tuple of (should_alert, reason)
    """
    if diagnostics.sources_failed and not diagnostics.sources_ok:
        return True, "CRITICAL: All sources failed"

    if diagnostics.total_candidates > 0 and not diagnostics.email_sent:
        return True, "CRITICAL: Digest was not delivered"

    if not diagnostics.persistence_ok:
        return True, "WARNING: State commit failed, next run may repeat items"

    if diagnostics.sources_failed:
        return True, f"WARNING: {len(diagnostics.sources_failed)} source(s) failed"

    if diagnostics.llm_calls_made and diagnostics.llm_failures == diagnostics.llm_calls_made:
        return True, "WARNING: Every AI analysis failed"

    return False, "All systems operational"
