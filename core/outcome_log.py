# =============================================================================
# core/outcome_log.py - Per-run outcome accumulator
# =============================================================================

import logging
from typing import Any, Dict, List, Optional

from core.models import (
    Outcome, OutcomeLevel, ProvisioningStats, SKIPPED_LEVELS, ERRORED_LEVELS
)

OUTCOME_LOGGER_NAME = "outcomes"

REPORT_FIELDNAMES = [
    'timestamp', 'level', 'message', 'identifier', 'principal',
    'department', 'display_name', 'context'
]

_LOGGING_LEVELS = {
    OutcomeLevel.INFO: logging.INFO,
    OutcomeLevel.USERNAME_TRUNCATED: logging.INFO,
    OutcomeLevel.USERNAME_DEDUP: logging.INFO,
    OutcomeLevel.WARNING: logging.WARNING,
    OutcomeLevel.INVALID_INPUT: logging.WARNING,
    OutcomeLevel.MISSING_OU: logging.WARNING,
    OutcomeLevel.DUPLICATE_USER: logging.WARNING,
    OutcomeLevel.AD_QUERY: logging.ERROR,
    OutcomeLevel.AD_CREATE: logging.ERROR,
    OutcomeLevel.ERROR: logging.ERROR,
}


class OutcomeLog:
    """
    Append-only record of one provisioning run.

    ``outcomes`` holds the per-record results and run-level events,
    ``diagnostics`` holds resolver notes (truncation, suffixing, lookup
    failures). ``entries`` holds both in the order they were added, and
    every entry is also written as one line to the ``outcomes`` logger.
    """

    def __init__(self, logger: Optional[logging.Logger] = None):
        self.outcomes: List[Outcome] = []
        self.diagnostics: List[Outcome] = []
        self.entries: List[Outcome] = []
        self.stats = ProvisioningStats()
        self.logger = logger or logging.getLogger(OUTCOME_LOGGER_NAME)

    def record(self, outcome: Outcome, simulated: bool = False) -> Outcome:
        """Append a per-record or run-level outcome and update counters"""
        self.outcomes.append(outcome)
        self.entries.append(outcome)
        self._emit(outcome)

        counts = self.stats.level_counts
        counts[outcome.level] = counts.get(outcome.level, 0) + 1

        if outcome.level in SKIPPED_LEVELS:
            self.stats.skipped += 1
        elif outcome.level in ERRORED_LEVELS:
            self.stats.errored += 1
        elif outcome.level == OutcomeLevel.INFO:
            if simulated:
                self.stats.simulated += 1
            else:
                self.stats.created += 1
        return outcome

    def note(self, outcome: Outcome) -> Outcome:
        """Append a diagnostic that does not conclude a record"""
        self.diagnostics.append(outcome)
        self.entries.append(outcome)
        self._emit(outcome)
        return outcome

    def count(self, level: OutcomeLevel) -> int:
        return sum(1 for outcome in self.outcomes if outcome.level == level)

    def lines(self) -> List[str]:
        """All entries, outcomes and diagnostics, in the order they were logged"""
        return [entry.format_line() for entry in self.entries]

    def to_rows(self) -> List[Dict[str, Any]]:
        """Outcomes flattened for the CSV report"""
        rows = []
        for outcome in self.outcomes:
            rows.append({
                'timestamp': outcome.timestamp.isoformat(timespec='seconds'),
                'level': outcome.level.value,
                'message': outcome.message,
                'identifier': outcome.context.get('identifier', ''),
                'principal': outcome.context.get('principal', ''),
                'department': outcome.context.get('department', ''),
                'display_name': outcome.context.get('display_name', ''),
                'context': " ".join(f"{k}={v}" for k, v in outcome.context.items()),
            })
        return rows

    def log_statistics(self) -> None:
        stats = self.stats
        level_counts = {level.value: count for level, count in stats.level_counts.items()}
        self.logger.info(f"Outcome summary: {level_counts}")
        self.logger.info(
            f"Created={stats.created} Skipped={stats.skipped} "
            f"Errored={stats.errored} Simulated={stats.simulated} "
            f"(of {stats.total_records} records)"
        )

    def _emit(self, outcome: Outcome) -> None:
        self.logger.log(_LOGGING_LEVELS.get(outcome.level, logging.INFO), outcome.format_line())
