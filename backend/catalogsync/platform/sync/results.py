"""Per-record results and their aggregation into batch outcomes.

The engine turns every record into exactly one ``RecordResult``; ``aggregate`` folds
them into a ``BatchOutcome`` without touching any I/O.
"""

from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, Hashable, Iterable, Optional, Tuple

MAX_ERROR_SAMPLES = 5


class RecordAction(str, Enum):
    """What happened to one record."""

    CREATED = "created"
    UPDATED = "updated"
    SKIPPED = "skipped"
    FAILED = "failed"


@dataclass(frozen=True)
class RecordResult:
    """Outcome of reconciling one record."""

    key: Hashable
    action: RecordAction
    entity: Any = None
    error: Optional[str] = None

    @classmethod
    def created(cls, key: Hashable, entity: Any) -> "RecordResult":
        """A new row was inserted."""
        return cls(key=key, action=RecordAction.CREATED, entity=entity)

    @classmethod
    def updated(cls, key: Hashable, entity: Any) -> "RecordResult":
        """An existing row was updated in place."""
        return cls(key=key, action=RecordAction.UPDATED, entity=entity)

    @classmethod
    def skipped(cls, key: Hashable, reason: Optional[str] = None) -> "RecordResult":
        """The record was intentionally not reconciled."""
        return cls(key=key, action=RecordAction.SKIPPED, error=reason)

    @classmethod
    def failed(cls, key: Hashable, error: str) -> "RecordResult":
        """The record could not be reconciled."""
        return cls(key=key, action=RecordAction.FAILED, error=error)


@dataclass(frozen=True)
class BatchOutcome:
    """Counters of one batch, one stage or one run.

    ``processed`` counts the records that were written (created or updated); skipped and
    failed records are not processed. ``deferred`` counts records left for the next run
    because a batch ran out of time.
    """

    created: int = 0
    updated: int = 0
    skipped: int = 0
    errors: int = 0
    deferred: int = 0
    error_samples: Tuple[str, ...] = field(default_factory=tuple)

    @property
    def processed(self) -> int:
        """Records created or updated."""
        return self.created + self.updated

    @property
    def total(self) -> int:
        """Every record seen, including deferred ones."""
        return self.processed + self.skipped + self.errors + self.deferred

    def merge(self, other: "BatchOutcome") -> "BatchOutcome":
        """Add two outcomes together."""
        return BatchOutcome(
            created=self.created + other.created,
            updated=self.updated + other.updated,
            skipped=self.skipped + other.skipped,
            errors=self.errors + other.errors,
            deferred=self.deferred + other.deferred,
            error_samples=(self.error_samples + other.error_samples)[:MAX_ERROR_SAMPLES],
        )

    def with_deferred(self, deferred: int) -> "BatchOutcome":
        """Copy with ``deferred`` added."""
        return replace(self, deferred=self.deferred + deferred)

    def summary(self) -> str:
        """Get a summary string of the outcome."""
        text = (
            f"{self.processed} processed ({self.created} created, {self.updated} updated), "
            f"{self.skipped} skipped, {self.errors} errors"
        )
        if self.deferred:
            text += f", {self.deferred} deferred"
        return text


def aggregate(results: Iterable[RecordResult]) -> BatchOutcome:
    """Fold record results into a batch outcome.

    Args:
        results: One result per reconciled record

    Returns:
        The aggregated outcome; the first few error messages are kept as samples
    """
    created = updated = skipped = errors = 0
    samples = []
    for result in results:
        if result.action is RecordAction.CREATED:
            created += 1
        elif result.action is RecordAction.UPDATED:
            updated += 1
        elif result.action is RecordAction.SKIPPED:
            skipped += 1
        else:
            errors += 1
            if len(samples) < MAX_ERROR_SAMPLES:
                samples.append(f"{result.key}: {result.error}")
    return BatchOutcome(
        created=created,
        updated=updated,
        skipped=skipped,
        errors=errors,
        error_samples=tuple(samples),
    )
