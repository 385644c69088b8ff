"""
Conformance report: per-vector outcomes rolled up per suite, written as JSON
plus a plain-text summary.
"""

import json
from collections import Counter
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional

from comparator import ComparisonResult, Divergence

PASS, FAIL, SKIP = "PASS", "FAIL", "SKIP"


@dataclass
class TestResult:
    """Outcome of one vector."""
    vector_name: str
    suite_name: str
    passed: bool
    execution_time_ms: float
    skipped: bool = False
    comparison: Optional[ComparisonResult] = None
    error: Optional[str] = None

    @property
    def status(self) -> str:
        if self.skipped:
            return SKIP
        return PASS if self.passed else FAIL


@dataclass
class SuiteResult:
    """Outcome of one vector file."""
    suite_name: str
    execution_time_ms: float
    test_results: List[TestResult] = field(default_factory=list)

    @property
    def counts(self) -> Counter:
        return Counter(r.status for r in self.test_results)

    @property
    def failures(self) -> List[TestResult]:
        return [r for r in self.test_results if r.status == FAIL]


@dataclass
class ConformanceReport:
    timestamp: str
    clients: List[str]
    reference_client: str
    execution_time_ms: float
    suite_results: List[SuiteResult]

    @property
    def counts(self) -> Counter:
        total: Counter = Counter()
        for suite in self.suite_results:
            total.update(suite.counts)
        return total

    @property
    def divergences(self) -> List[Divergence]:
        return [
            div
            for suite in self.suite_results
            for test in suite.test_results
            if test.comparison
            for div in test.comparison.divergences
        ]

    @property
    def total_failed(self) -> int:
        return self.counts[FAIL]


class ReportGenerator:
    def __init__(self, result_dir: str):
        self.result_dir = Path(result_dir)
        self.result_dir.mkdir(parents=True, exist_ok=True)

    def generate_report(
        self,
        suite_results: List[SuiteResult],
        clients: List[str],
        reference_client: str,
        execution_time_ms: float,
    ) -> ConformanceReport:
        return ConformanceReport(
            timestamp=datetime.now(timezone.utc).isoformat(),
            clients=clients,
            reference_client=reference_client,
            execution_time_ms=execution_time_ms,
            suite_results=suite_results,
        )

    def write_json_report(
        self, report: ConformanceReport, filename: str = "conformance-report.json"
    ) -> Path:
        path = self.result_dir / filename
        path.write_text(json.dumps(self._report_to_dict(report), indent=2, default=str))
        return path

    def write_summary(
        self, report: ConformanceReport, filename: str = "conformance-summary.txt"
    ) -> Path:
        path = self.result_dir / filename
        path.write_text("\n".join(self.summary_lines(report)) + "\n")
        return path

    def print_summary(self, report: ConformanceReport) -> None:
        print("\n".join(self.summary_lines(report)))

    def summary_lines(self, report: ConformanceReport) -> List[str]:
        counts = report.counts
        ran = counts[PASS] + counts[FAIL]
        rate = counts[PASS] / ran * 100 if ran else 0.0
        rule = "-" * 60
        lines = [
            rule,
            f"Vested settlement conformance  {report.timestamp}",
            f"clients={','.join(report.clients)} reference={report.reference_client}",
            rule,
        ]
        for suite in report.suite_results:
            c = suite.counts
            mark = FAIL if c[FAIL] else PASS
            lines.append(
                f"[{mark}] {suite.suite_name:<32} pass={c[PASS]} fail={c[FAIL]} skip={c[SKIP]}"
            )
            for failed in suite.failures:
                lines.append(f"    x {failed.vector_name}" + (f": {failed.error}" if failed.error else ""))

        for div in report.divergences:
            lines.append(
                f"  {div.vector_name}/{div.field} on {div.client}: "
                f"expected {div.expected} got {div.actual}"
            )

        lines += [
            rule,
            f"pass={counts[PASS]} fail={counts[FAIL]} skip={counts[SKIP]} "
            f"rate={rate:.1f}% time={report.execution_time_ms:.0f}ms",
            "PASSED" if counts[FAIL] == 0 else "FAILED",
        ]
        return lines

    def _report_to_dict(self, report: ConformanceReport) -> Dict[str, Any]:
        return {
            "timestamp": report.timestamp,
            "clients": report.clients,
            "reference_client": report.reference_client,
            "execution_time_ms": report.execution_time_ms,
            "totals": {status.lower(): report.counts[status] for status in (PASS, FAIL, SKIP)},
            "suites": [
                {
                    "suite_name": s.suite_name,
                    "execution_time_ms": s.execution_time_ms,
                    "counts": {status.lower(): s.counts[status] for status in (PASS, FAIL, SKIP)},
                    "failures": [
                        {"vector_name": t.vector_name, "error": t.error} for t in s.failures
                    ],
                }
                for s in report.suite_results
            ],
            "divergences": [asdict(d) for d in report.divergences],
        }
