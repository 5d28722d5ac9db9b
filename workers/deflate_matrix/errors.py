"""
Errors: every failure in the matrix is fatal to the whole run.

Each error carries the exit code the process should finish with and the
context needed to reproduce the failing cell by hand.
"""
from __future__ import annotations

from typing import Dict, List, Optional


class MatrixError(Exception):
    """Base class; ``exit_code`` is what ``main()`` returns."""

    exit_code: int = 1

    def __init__(
        self,
        message: str,
        exit_code: Optional[int] = None,
        context: Optional[Dict[str, str]] = None,
    ):
        super().__init__(message)
        self.message = message
        if exit_code is not None:
            self.exit_code = normalize_exit_code(exit_code)
        self.context: Dict[str, str] = dict(context or {})

    def __str__(self) -> str:
        if not self.context:
            return self.message
        ctx = ", ".join(f"{k}={v}" for k, v in self.context.items())
        return f"{self.message} [{ctx}]"


class UsageError(MatrixError):
    exit_code = 2


class ProvisionError(MatrixError):
    pass


class BuildFailure(MatrixError):
    pass


class TestFailure(MatrixError):
    __test__ = False  # not a pytest class


class MemoryCheckFailure(TestFailure):
    exit_code = 100


class FreestandingViolation(MatrixError):
    def __init__(self, message: str, offenders: List[str], **kwargs):
        super().__init__(message, **kwargs)
        self.offenders = list(offenders)


class InteropFailure(MatrixError):
    pass


def normalize_exit_code(code: int) -> int:
    """Map a subprocess return code onto a process exit code.

    Negative codes (killed by signal N) become 128 + N, and 0 becomes 1
    because an error never exits successfully.
    """
    if code < 0:
        return 128 + (-code)
    if code == 0:
        return 1
    return code
