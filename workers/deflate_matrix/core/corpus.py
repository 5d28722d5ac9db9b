"""
Test corpus: the input file every test program is run against.

A caller-supplied file is used as-is and never touched.  Otherwise a
snapshot of the library's own sources (sorted, so the same checkout gives
the same bytes) is written to a temp file capped at one megabyte, and that
file is removed when the provisioner is released.  Release happens on
leaving the ``with`` block for any reason, and again at interpreter exit
as a backstop.
"""
import atexit
import fnmatch
import logging
import os
import tempfile
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, List, Optional, Union

from deflate_matrix.errors import ProvisionError
from deflate_matrix.policy.profile import MatrixProfile

logger = logging.getLogger(__name__)

MAX_CORPUS_BYTES = MatrixProfile.v0().corpus_max_bytes
SOURCE_PATTERNS = MatrixProfile.v0().corpus_patterns


@dataclass(frozen=True)
class TestCorpus:
    """The corpus file; ``owned`` if this run generated it and must delete it."""

    __test__ = False

    path: Path
    size: int
    owned: bool


def collect_sources(root: Path, patterns: Iterable[str] = SOURCE_PATTERNS) -> List[Path]:
    """All files under *root* matching *patterns*, in sorted order, skipping .git."""
    patterns = tuple(patterns)
    found = []
    for p in sorted(root.rglob("*")):
        if ".git" in p.relative_to(root).parts:
            continue
        if not p.is_file():
            continue
        if any(fnmatch.fnmatch(p.name, pat) for pat in patterns):
            found.append(p)
    return found


def snapshot_sources(
    root: Path,
    patterns: Iterable[str] = SOURCE_PATTERNS,
    limit: int = MAX_CORPUS_BYTES,
) -> bytes:
    """Concatenate the matching sources and truncate to *limit* bytes."""
    buf = bytearray()
    for path in collect_sources(root, patterns):
        remaining = limit - len(buf)
        if remaining <= 0:
            break
        buf += path.read_bytes()[:remaining]
    return bytes(buf)


class CorpusProvisioner:
    """
    Acquire the corpus for one run and guarantee its cleanup.

    Usage::

        with CorpusProvisioner(source_dir, supplied=os.environ.get("TESTDATA")) as corpus:
            ...
    """

    def __init__(
        self,
        source_dir: Union[str, Path],
        supplied: Optional[Union[str, Path]] = None,
        patterns: Iterable[str] = SOURCE_PATTERNS,
        limit: int = MAX_CORPUS_BYTES,
        tmp_dir: Optional[Union[str, Path]] = None,
    ):
        self.source_dir = Path(source_dir)
        self.supplied = Path(supplied) if supplied else None
        self.patterns = tuple(patterns)
        self.limit = limit
        self.tmp_dir = str(tmp_dir) if tmp_dir is not None else None
        self.corpus: Optional[TestCorpus] = None

    # -- context manager -------------------------------------------------------

    def __enter__(self) -> TestCorpus:
        return self.acquire()

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.release()
        return False

    # -- public API ------------------------------------------------------------

    def acquire(self) -> TestCorpus:
        if self.corpus is not None:
            return self.corpus

        if self.supplied is not None:
            if not self.supplied.is_file():
                raise ProvisionError(f"TESTDATA file not found: {self.supplied}")
            try:
                size = self.supplied.stat().st_size
            except OSError as e:
                raise ProvisionError(f"Cannot read TESTDATA file {self.supplied}: {e}") from e
            self.corpus = TestCorpus(path=self.supplied, size=size, owned=False)
            logger.debug("Using supplied corpus %s", self.supplied)
            return self.corpus

        try:
            data = snapshot_sources(self.source_dir, self.patterns, self.limit)
        except OSError as e:
            raise ProvisionError(
                f"Cannot snapshot sources: {e}",
                context={"source_dir": str(self.source_dir)},
            ) from e
        if not data:
            raise ProvisionError(
                f"No source files matching {', '.join(self.patterns)} under {self.source_dir}"
            )

        try:
            fd, name = tempfile.mkstemp(prefix="libdeflate_testdata.", dir=self.tmp_dir)
        except OSError as e:
            raise ProvisionError(f"Cannot create corpus file: {e}") from e

        path = Path(name)
        # Registered before writing so a failed write is still cleaned up
        self.corpus = TestCorpus(path=path, size=len(data), owned=True)
        atexit.register(self.release)
        try:
            with os.fdopen(fd, "wb") as f:
                f.write(data)
        except OSError as e:
            self.release()
            raise ProvisionError(f"Cannot write corpus file {path}: {e}") from e

        logger.debug("Generated corpus %s (%d bytes)", path, len(data))
        return self.corpus

    def release(self) -> None:
        """Delete the corpus if this run generated it.  Safe to call twice."""
        corpus, self.corpus = self.corpus, None
        if corpus is None:
            return
        if corpus.owned:
            atexit.unregister(self.release)
            try:
                corpus.path.unlink()
            except FileNotFoundError:
                pass
            logger.debug("Removed corpus %s", corpus.path)
