"""Base contract enforcement utilities.

The require() function is the single enforcement mechanism for all contracts.
"""

from drawsum.contracts.failure import ContractViolation


def require(condition: bool, message: str, exc_type: type = ContractViolation) -> None:
    """Enforce a pipeline contract.

    Called at stage boundaries to verify the preceding stage (or an external
    collaborator) produced the guaranteed invariants. Fail-fast: no recovery,
    no fallback, no silence.

    Parameters
    ----------
    condition : bool
        The invariant that must be true.

    message : str
        Error message explaining the violation.

    exc_type : type, optional
        Exception class to raise (default: ContractViolation). Stages use
        the more specific subclasses, e.g. ModelEvaluationError.

    Raises
    ------
    ContractViolation
        Or the requested subclass, if condition is False.

    Examples
    --------
    >>> require("row_id" in df.columns, "Design contract: missing 'row_id'")
    >>> require(m.ndim == 2, "Model returned 1-D output", ModelEvaluationError)
    """
    if not condition:
        raise exc_type(message)
