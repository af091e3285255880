from lendcase.agents.case_graph import (
    CaseGraphState,
    build_case_graph,
    load_case_trace,
    run_case_graph,
)

__all__ = [
    "CaseGraphState",
    "build_case_graph",
    "load_case_trace",
    "run_case_graph",
]
