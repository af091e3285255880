from __future__ import annotations

import copy
from datetime import date
from typing import Any

AS_OF = date(2026, 3, 2)
LOAN_ID = "LN-1001"

_NEW_LOAN_REQUEST: dict[str, Any] = {
    "loanId": LOAN_ID,
    "borrowerName": "Dana Whitfield",
    "borrowerEntity": "Harbor Lane Holdings LLC",
    "borrowerEmail": "Dana@Example.com",
    "propertyAddress": "14 Harbor Lane, Tampa, FL",
    "amount": 300000,
    "purpose": "Purchase",
    "exitStrategy": "Fix and flip",
    "currentStageIndex": 3,
    "purchaseDetails": {
        "purchasePrice": 250000,
        "rehabBudget": 50000,
        "arv": 400000,
        "targetClosingDate": "2026-04-15",
    },
    "updatedAt": "2026-02-20T10:00:00Z",
}

_CONTINUATION: dict[str, Any] = {
    "formData": {
        "creditScore": 720,
        "proofOfLiquidityAmount": 150000,
        "llcName": "Harbor Lane Holdings LLC",
        "otherMortgageLoansCount": 1,
        "otherMortgageTotalMonthlyInterest": 2000,
        "pastProjects": [{"address": "1 A St"}, {"address": "2 B St"}],
        "rentalsOwned": 2,
        "yearsInvesting": "5 years",
    },
    "updatedAt": "2026-02-24T09:30:00Z",
}

_TITLE_AGENT_FORM: dict[str, Any] = {
    "sellerType": "llc",
    "sellerName": "Ignored Individual",
    "sellerLlcName": "Bayview Sellers LLC",
    "sellerMembers": ["Pat Moreno"],
    "hasAssignor": False,
    "assignorName": "Should Not Appear",
    "assignmentFees": 5000,
}

CLEAR_COMPLIANCE: dict[str, Any] = {
    "bankruptcy": False,
    "foreclosure": False,
    "fraud": False,
    "internal_watchlist": False,
}


def new_loan_request(**overrides: Any) -> dict[str, Any]:
    record = copy.deepcopy(_NEW_LOAN_REQUEST)
    record.update(overrides)
    return record


def continuation(**overrides: Any) -> dict[str, Any]:
    record = copy.deepcopy(_CONTINUATION)
    record["formData"].update(overrides)
    return record


def title_agent_form(**overrides: Any) -> dict[str, Any]:
    record = copy.deepcopy(_TITLE_AGENT_FORM)
    record.update(overrides)
    return record


def scenario_bundle(**overrides: Any) -> dict[str, Any]:
    """Purchase of 250k plus 50k rehab, 300k requested, ARV 400k."""
    bundle: dict[str, Any] = {
        "submissions": {
            "new_loan_request": new_loan_request(),
            "continuation": continuation(),
            "title_agent_form": title_agent_form(),
        },
        "portfolio": [],
        "compliance": copy.deepcopy(CLEAR_COMPLIANCE),
    }
    bundle.update(overrides)
    return bundle
