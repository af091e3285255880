from __future__ import annotations

import copy
from collections.abc import Mapping
from dataclasses import dataclass, field
from threading import Lock
from typing import Any

from lendcase.domain.underwriting.submissions import SUBMISSION_SOURCES


@dataclass
class _LoanRecords:
    submissions: dict[str, list[dict[str, Any]]] = field(default_factory=dict)
    portfolio: list[dict[str, Any]] = field(default_factory=list)
    compliance: dict[str, Any] = field(default_factory=dict)
    evaluator: dict[str, Any] | None = None
    upstream: dict[str, Any] | None = None


class SubmissionStore:
    """Append-only submission versions plus replaceable loan context."""

    def __init__(self) -> None:
        self._lock = Lock()
        self._loans: dict[str, _LoanRecords] = {}

    def _records(self, loan_id: str) -> _LoanRecords:
        records = self._loans.get(loan_id)
        if records is None:
            records = _LoanRecords()
            self._loans[loan_id] = records
        return records

    def append_submission(
        self, loan_id: str, source: str, record: Mapping[str, Any]
    ) -> int:
        if source not in SUBMISSION_SOURCES:
            raise ValueError(
                f"Unknown submission source '{source}'. Expected one of: "
                + ", ".join(SUBMISSION_SOURCES)
            )

        with self._lock:
            versions = self._records(loan_id).submissions.setdefault(source, [])
            versions.append(copy.deepcopy(dict(record)))
            return len(versions)

    def set_portfolio(self, loan_id: str, loans: list[dict[str, Any]]) -> None:
        with self._lock:
            self._records(loan_id).portfolio = copy.deepcopy(list(loans))

    def set_compliance(self, loan_id: str, results: Mapping[str, Any]) -> None:
        with self._lock:
            self._records(loan_id).compliance = copy.deepcopy(dict(results))

    def set_evaluator(self, loan_id: str, values: Mapping[str, Any]) -> None:
        with self._lock:
            self._records(loan_id).evaluator = copy.deepcopy(dict(values))

    def set_upstream(self, loan_id: str, decision: Mapping[str, Any]) -> None:
        with self._lock:
            self._records(loan_id).upstream = copy.deepcopy(dict(decision))

    def bundle_for(self, loan_id: str) -> dict[str, Any] | None:
        with self._lock:
            records = self._loans.get(loan_id)
            if records is None:
                return None
            return copy.deepcopy(
                {
                    "submissions": records.submissions,
                    "portfolio": records.portfolio,
                    "compliance": records.compliance,
                    "evaluator": records.evaluator,
                    "upstream": records.upstream,
                }
            )

    def clear(self) -> None:
        with self._lock:
            self._loans.clear()


_submission_store: SubmissionStore | None = None


def get_submission_store() -> SubmissionStore:
    global _submission_store
    if _submission_store is None:
        _submission_store = SubmissionStore()
    return _submission_store


def clear_submission_store() -> None:
    global _submission_store
    _submission_store = None
