"""
Result builder: aggregates per-exam outcomes into a SchedulingReport.
"""
import logging
from typing import List, Sequence

from models.schemas import Assignment, Exam, SchedulingReport, UnscheduledExam
from service.errors import IncompleteReport

logger = logging.getLogger(__name__)


class ReportBuilder:
    def __init__(self, exams: Sequence[Exam], strategy: str, ordering: str):
        self._expected = [exam.id for exam in exams]
        self._strategy = strategy
        self._ordering = ordering
        self._assignments: List[Assignment] = []
        self._failures: List[UnscheduledExam] = []

    def add(self, outcome) -> None:
        if isinstance(outcome, Assignment):
            self._assignments.append(outcome)
        else:
            logger.warning(f"Could not schedule exam {outcome.exam_id}: {outcome.reason.value} ({outcome.detail})")
            self._failures.append(outcome)

    def build(self) -> SchedulingReport:
        """Return the report once every input exam is accounted for exactly once."""
        reported = [a.exam_id for a in self._assignments] + [f.exam_id for f in self._failures]
        if len(reported) != len(set(reported)):
            raise IncompleteReport("An exam was reported more than once")
        missing = set(self._expected) - set(reported)
        unexpected = set(reported) - set(self._expected)
        if missing or unexpected:
            raise IncompleteReport(
                f"Report does not match input exams (missing: {sorted(missing)}, "
                f"unexpected: {sorted(unexpected)})"
            )

        return SchedulingReport(
            assignments=list(self._assignments),
            failures=list(self._failures),
            strategy=self._strategy,
            ordering=self._ordering,
        )
