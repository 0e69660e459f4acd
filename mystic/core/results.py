"""Typed outcomes for batch operations.

Each unit of work (one image, one volume archive, one deploy step) ends as a
UnitResult. Summaries and exit codes are computed from these values instead
of ad hoc counters.
"""
from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional

# Exit code for a batch where at least one unit failed and --strict was given
PARTIAL_FAILURE_EXIT_CODE = 2


class UnitStatus(Enum):
    """Outcome of a single unit of work."""
    OK = "ok"
    SKIPPED = "skipped"
    FAILED = "failed"


@dataclass
class UnitResult:
    """Result of processing one image, archive, or service."""
    name: str
    status: UnitStatus
    reason: str = ""
    detail: Optional[str] = None  # e.g. archive path or size

    @classmethod
    def ok(cls, name: str, detail: Optional[str] = None) -> "UnitResult":
        return cls(name=name, status=UnitStatus.OK, detail=detail)

    @classmethod
    def skipped(cls, name: str, reason: str) -> "UnitResult":
        return cls(name=name, status=UnitStatus.SKIPPED, reason=reason)

    @classmethod
    def failed(cls, name: str, reason: str) -> "UnitResult":
        return cls(name=name, status=UnitStatus.FAILED, reason=reason)

    @property
    def succeeded(self) -> bool:
        return self.status == UnitStatus.OK


@dataclass
class BatchReport:
    """Collected results of a batch operation."""
    title: str
    results: List[UnitResult] = field(default_factory=list)
    dry_run: bool = False

    def add(self, result: UnitResult) -> UnitResult:
        self.results.append(result)
        return result

    def _count(self, status: UnitStatus) -> int:
        return sum(1 for r in self.results if r.status == status)

    @property
    def total(self) -> int:
        return len(self.results)

    @property
    def succeeded(self) -> int:
        return self._count(UnitStatus.OK)

    @property
    def skipped(self) -> int:
        return self._count(UnitStatus.SKIPPED)

    @property
    def failed(self) -> int:
        return self._count(UnitStatus.FAILED)

    @property
    def failures(self) -> List[UnitResult]:
        return [r for r in self.results if r.status == UnitStatus.FAILED]

    def exit_code(self, strict: bool = False) -> int:
        """Exit status for the batch.

        Partial failure exits 0 unless strict is set, in which case any
        failed unit yields PARTIAL_FAILURE_EXIT_CODE.
        """
        if strict and self.failed:
            return PARTIAL_FAILURE_EXIT_CODE
        return 0
