"""Centralized failure taxonomy for the summary pipeline.

Every failure the pipeline raises on purpose is one of the types below, so
callers can tell bad configuration, a misbehaving model, a disk problem and
a corrupted store apart without parsing messages.
"""

from enum import Enum


class FailurePolicy(str, Enum):
    """What the orchestrator does when one chunk fails.

    FAIL_FAST (default): Record the failure and re-raise immediately.
    SKIP_CHUNK: Record the failure and continue with the next chunk. Rows of
        the skipped chunk end up with null summaries in the joined output.
    """
    FAIL_FAST = "fail_fast"
    SKIP_CHUNK = "skip_chunk"


class ConfigurationError(ValueError):
    """Raised for invalid run parameters, before any work begins.

    Covers chunk size, draw count, threshold, quantiles, model identifier,
    and a resumed run whose parameters do not match the existing store.
    """
    pass


class ContractViolation(RuntimeError):
    """Raised when a pipeline stage does not produce what it promised.

    Key distinction:
    - ConfigurationError: User/config error (caught before running)
    - ContractViolation: A stage or collaborator broke an invariant
    - PersistenceError: The disk let us down
    """
    pass


class ModelEvaluationError(ContractViolation):
    """The predictive model raised, or returned a matrix of the wrong shape.

    Fatal for the offending chunk only. Chunks published earlier are left
    untouched and the run can be retried once the model is repaired.
    """
    pass


class JoinIntegrityError(ContractViolation):
    """A summary references a row_id that the design matrix does not have.

    Signals a corrupted store or two models sharing one store directory.
    """
    pass


class PersistenceError(RuntimeError):
    """Writing a chunk (or the design copy) to disk failed.

    The artifact is not published, so retrying the same chunk is safe.
    """
    pass
