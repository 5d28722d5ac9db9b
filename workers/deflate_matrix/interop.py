"""
Interop: the locally built gzip/gunzip against the system's reference ones.

All four (compressor, decompressor) combinations must round-trip the
corpus byte for byte.  The local pair is then checked again under the
memory checker and once more after a sanitizer rebuild.  Reference
binaries are never rebuilt or wrapped.
"""
from __future__ import annotations

import logging
from pathlib import Path
from typing import List, Union

from deflate_matrix.core.build import BuildConfiguration, BuildInvoker
from deflate_matrix.core.corpus import TestCorpus
from deflate_matrix.core.suite import BinaryPair, SuiteInvoker
from deflate_matrix.core.wrapper import BARE, WrapperMode, WrapperSelector, WrapperSpec
from deflate_matrix.io.schema import RunResult
from deflate_matrix.policy.profile import MatrixProfile

logger = logging.getLogger(__name__)


class InteropRunner:
    """Cross-tests local and reference gzip programs."""

    def __init__(
        self,
        builder: BuildInvoker,
        suite: SuiteInvoker,
        selector: WrapperSelector,
        profile: MatrixProfile,
        local: BinaryPair,
        reference: BinaryPair,
    ):
        self.builder = builder
        self.suite = suite
        self.selector = selector
        self.profile = profile
        self.local = local
        self.reference = reference

    @classmethod
    def for_source_dir(
        cls,
        source_dir: Union[str, Path],
        builder: BuildInvoker,
        suite: SuiteInvoker,
        selector: WrapperSelector,
        profile: MatrixProfile,
        local_gzip: str,
        local_gunzip: str,
        reference: BinaryPair,
    ) -> "InteropRunner":
        root = Path(source_dir).resolve()
        local = BinaryPair(str(root / local_gzip), str(root / local_gunzip))
        return cls(builder, suite, selector, profile, local, reference)

    def pairs(self) -> List[BinaryPair]:
        """The four role combinations, local first in each role."""
        return [
            BinaryPair(compressor, decompressor)
            for compressor in (self.local.compressor, self.reference.compressor)
            for decompressor in (self.local.decompressor, self.reference.decompressor)
        ]

    def check_pair(self, corpus: TestCorpus, pair: BinaryPair, wrapper: WrapperSpec) -> List[RunResult]:
        return [
            self.suite.round_trip(corpus, pair, wrapper),
            self.suite.run_interop(corpus, pair, wrapper),
        ]

    def run(self, corpus: TestCorpus) -> List[RunResult]:
        targets = self.profile.cli_targets
        results = [self.builder.build(BuildConfiguration(), targets)]

        for pair in self.pairs():
            logger.info("Running gzip program tests with GZIP=%s, GUNZIP=%s",
                        pair.compressor, pair.decompressor)
            results.extend(self.check_pair(corpus, pair, BARE))

        logger.info("Running gzip program tests with Valgrind")
        memcheck = self.selector.select(WrapperMode.MEMORY_CHECK)
        results.extend(self.check_pair(corpus, self.local, memcheck))

        logger.info("Running gzip program tests with undefined behavior sanitizer")
        sanitized = self.selector.select(WrapperMode.SANITIZED)
        results.append(self.builder.build(BuildConfiguration().instrumented(sanitized), targets))
        results.extend(self.check_pair(corpus, self.local, sanitized))
        return results
