"""
Schema: Pydantic models for what each unit of work reports back.

A RunResult is produced per build and per suite invocation and handed
straight back to the caller; nothing is written to disk.
"""
from enum import Enum
from typing import Dict, Optional

from pydantic import BaseModel, Field


class Phase(str, Enum):
    BUILD = "build"
    NATIVE = "native"
    FREESTANDING = "freestanding"
    INTEROP = "interop"


class RunResult(BaseModel):
    """Outcome of one external invocation that succeeded."""

    phase: Phase
    label: str                      # what ran, e.g. "make all test_programs"
    exit_code: int = 0

    wrapper: str = "bare"           # WrapperMode value
    features: str = ""              # comma-joined disabled CPU features
    context: Dict[str, str] = Field(default_factory=dict)

    # Where the tool's own diagnostics went (stderr is passed through)
    diagnostics: Optional[str] = "stderr"

    @property
    def ok(self) -> bool:
        return self.exit_code == 0
