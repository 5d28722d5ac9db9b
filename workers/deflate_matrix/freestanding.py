"""
Freestanding check: the FREESTANDING=1 library must not need the host runtime.

Build, inspect the shared library's symbol table and dynamic section,
reject on any external reference, then run the native test programs
against the restricted build, bare and under each diagnostic wrapper.
"""
from __future__ import annotations

import logging
from pathlib import Path
from typing import Callable, List, Sequence, Union

from elftools.common.exceptions import ELFError

from deflate_matrix.core.corpus import TestCorpus
from deflate_matrix.core.elf_linkage import ArtifactLinkage, read_linkage
from deflate_matrix.core.wrapper import BARE, WrapperMode
from deflate_matrix.errors import BuildFailure, FreestandingViolation
from deflate_matrix.io.schema import RunResult
from deflate_matrix.native import DEFAULT_WRAPPER_MODES, NativeMatrixRunner
from deflate_matrix.policy.verdict import LinkageRejectReason, Verdict, gate_freestanding, offenders

logger = logging.getLogger(__name__)


class FreestandingValidator:
    """
    Runs the freestanding phase.

    *runner* must be a NativeMatrixRunner whose variables include the
    build system's freestanding toggle.
    """

    def __init__(
        self,
        runner: NativeMatrixRunner,
        artifact: Union[str, Path],
        reader: Callable[[Union[str, Path]], ArtifactLinkage] = read_linkage,
    ):
        self.runner = runner
        self.artifact = Path(artifact)
        self.reader = reader

    def inspect(self) -> ArtifactLinkage:
        """Check the built artifact; raise FreestandingViolation on any external reference."""
        try:
            linkage = self.reader(self.artifact)
        except (OSError, ELFError) as e:
            # make succeeded but left nothing readable behind
            raise BuildFailure(
                f"Cannot inspect freestanding lib: {e}",
                context={"artifact": str(self.artifact)},
            ) from e
        verdict, reasons = gate_freestanding(linkage)
        if verdict == Verdict.REJECT:
            bad = offenders(linkage)
            for line in bad:
                logger.error("  %s", line)
            if LinkageRejectReason.EXTERNAL_FUNCTIONS.value in reasons:
                message = "Freestanding lib links to external functions!"
            else:
                message = "Freestanding lib links to external libraries!"
            raise FreestandingViolation(
                f"{message} ({', '.join(bad)})",
                offenders=bad,
                context={"artifact": str(self.artifact), "reasons": ",".join(reasons)},
            )
        return linkage

    def validate(
        self,
        corpus: TestCorpus,
        wrapper_modes: Sequence[WrapperMode] = DEFAULT_WRAPPER_MODES,
    ) -> List[RunResult]:
        config = self.runner.base_config
        logger.info("Running tests with %s", " ".join(config.make_variables()))

        results = [self.runner.builder.build(config, self.runner.profile.native_targets)]
        self.inspect()

        results.extend(self.runner.build_and_test(corpus, config, BARE, prebuilt=True))
        results.extend(self.runner.run_wrapped(corpus, config, wrapper_modes))
        return results
