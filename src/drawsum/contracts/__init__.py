"""Pipeline contracts and error taxonomy.

This package enforces semantic guarantees between pipeline stages and
defines every error type the pipeline raises on purpose.

Key principle:
- Pydantic validates config correctness
- Contracts validate pipeline correctness
- The engine handles statistical edge cases (missing draws)
"""

from drawsum.contracts.failure import (
    ConfigurationError,
    ContractViolation,
    FailurePolicy,
    JoinIntegrityError,
    ModelEvaluationError,
    PersistenceError,
)
from drawsum.contracts.base import require
from drawsum.contracts.design import assert_design_matrix, assert_row_ids
from drawsum.contracts.chunks import assert_chunk_plan
from drawsum.contracts.draws import DRAW_COLUMNS, assert_draw_matrix, assert_long_form
from drawsum.contracts.summary import (
    SUMMARY_COLUMNS,
    assert_join_cardinality,
    assert_joinable,
    assert_summary_output,
)

__all__ = [
    "ConfigurationError",
    "ContractViolation",
    "FailurePolicy",
    "JoinIntegrityError",
    "ModelEvaluationError",
    "PersistenceError",
    "require",
    "assert_design_matrix",
    "assert_row_ids",
    "assert_chunk_plan",
    "DRAW_COLUMNS",
    "assert_draw_matrix",
    "assert_long_form",
    "SUMMARY_COLUMNS",
    "assert_summary_output",
    "assert_joinable",
    "assert_join_cardinality",
]
