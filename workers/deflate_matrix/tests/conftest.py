"""
Shared pytest fixtures for deflate_matrix tests.

Provides:
  - fake executables written as small sh scripts (compilers, make,
    test suites, gzip stand-ins);
  - recording fakes for the builder and the suite, so orchestration
    order can be checked without a libdeflate checkout;
  - on-the-fly gcc compilation of tiny shared libraries for the ELF
    linkage checks (skipped when gcc is unavailable).
"""
import os
import shutil
import subprocess
import textwrap
from pathlib import Path
from typing import Callable, List, Optional

import pytest

from deflate_matrix.config import Settings
from deflate_matrix.core.corpus import TestCorpus
from deflate_matrix.core.wrapper import WrapperSelector
from deflate_matrix.errors import BuildFailure, TestFailure
from deflate_matrix.io.schema import Phase, RunResult


# ── Fake executables ─────────────────────────────────────────────────────────

@pytest.fixture(scope="session")
def posix_ok():
    """Skip tests that need sh and executable-bit semantics."""
    if os.name != "posix" or shutil.which("sh") is None:
        pytest.skip("requires a POSIX shell")


@pytest.fixture
def make_script(tmp_path, posix_ok) -> Callable[..., Path]:
    """Factory: write an executable sh script and return its path."""

    def _make(name: str, body: str, directory: Optional[Path] = None, executable: bool = True) -> Path:
        d = directory or tmp_path / "bin"
        d.mkdir(parents=True, exist_ok=True)
        p = d / name
        p.write_text("#!/bin/sh\n" + textwrap.dedent(body))
        p.chmod(0o755 if executable else 0o644)
        return p

    return _make


@pytest.fixture
def corpus(tmp_path) -> TestCorpus:
    """A small externally-owned corpus file."""
    p = tmp_path / "testdata.bin"
    data = b"libdeflate corpus line\n" * 500 + bytes(range(256))
    p.write_bytes(data)
    return TestCorpus(path=p, size=len(data), owned=False)


@pytest.fixture
def settings(tmp_path) -> Settings:
    return Settings(
        _env_file=None,
        LIBDEFLATE_SOURCE_DIR=str(tmp_path),
        VALGRIND="valgrind --quiet --error-exitcode=100",
        SANITIZE_CC="clang",
        SANITIZE_CFLAGS="-fsanitize=undefined -fno-sanitize-recover=undefined,integer",
    )


@pytest.fixture
def selector(settings) -> WrapperSelector:
    return WrapperSelector(settings)


# ── Recording fakes ──────────────────────────────────────────────────────────

class FakeBuilder:
    """Stands in for BuildInvoker; records (config, targets)."""

    def __init__(self, fail_on: Optional[Callable] = None, exit_code: int = 2):
        self.calls: List = []
        self.fail_on = fail_on
        self.exit_code = exit_code

    def build(self, config, targets):
        self.calls.append((config, tuple(targets)))
        if self.fail_on is not None and self.fail_on(config, targets):
            raise BuildFailure("make failed", exit_code=self.exit_code, context=config.context())
        return RunResult(phase=Phase.BUILD, label="make " + " ".join(targets),
                         context=config.context())


class FakeSuite:
    """Stands in for SuiteInvoker; records every invocation in order."""

    def __init__(self, fail_on: Optional[Callable] = None, exit_code: int = 1):
        self.calls: List = []
        self.fail_on = fail_on
        self.exit_code = exit_code

    def _maybe_fail(self, record):
        if self.fail_on is not None and self.fail_on(record):
            raise TestFailure("test failed", exit_code=self.exit_code)

    def run_native(self, corpus, features, wrapper, phase=Phase.NATIVE, context=None):
        ctx = dict(context or {})
        record = ("native", phase, ctx.get("CC"), ctx.get("CFLAGS"),
                  features.env_value, wrapper.mode.value)
        self.calls.append(record)
        self._maybe_fail(record)
        return RunResult(phase=phase, label="suite", wrapper=wrapper.mode.value,
                         features=features.env_value, context=ctx)

    def round_trip(self, corpus, pair, wrapper, context=None):
        record = ("round_trip", pair.compressor, pair.decompressor, wrapper.mode.value)
        self.calls.append(record)
        self._maybe_fail(record)
        return RunResult(phase=Phase.INTEROP, label="round trip", wrapper=wrapper.mode.value)

    def run_interop(self, corpus, pair, wrapper, context=None):
        record = ("interop", pair.compressor, pair.decompressor, wrapper.mode.value)
        self.calls.append(record)
        self._maybe_fail(record)
        return RunResult(phase=Phase.INTEROP, label="gzip tests", wrapper=wrapper.mode.value)


@pytest.fixture
def fake_builder() -> FakeBuilder:
    return FakeBuilder()


@pytest.fixture
def fake_suite() -> FakeSuite:
    return FakeSuite()


# ── ELF fixtures ─────────────────────────────────────────────────────────────

CLEAN_LIB_C = textwrap.dedent("""\
    int deflate_twice(int x) {
        return x * 2;
    }
""")

# Calls a function that nothing in the link provides.
UNDEFINED_LIB_C = textwrap.dedent("""\
    extern int injected_missing_symbol(int);

    int deflate_call(int x) {
        return injected_missing_symbol(x) + 1;
    }
""")

LIBC_LIB_C = textwrap.dedent("""\
    #include <string.h>

    size_t deflate_len(const char *s) {
        return strlen(s);
    }
""")


def _gcc_produces_elf() -> bool:
    if shutil.which("gcc") is None:
        return False
    import tempfile
    with tempfile.TemporaryDirectory() as tmpdir:
        src = Path(tmpdir) / "probe.c"
        out = Path(tmpdir) / "probe.so"
        src.write_text("int probe(void) { return 0; }\n")
        try:
            subprocess.run(
                ["gcc", "-shared", "-fPIC", "-nostdlib", str(src), "-o", str(out)],
                check=True, capture_output=True, timeout=30,
            )
        except Exception:
            return False
        return out.exists() and out.read_bytes()[:4] == b"\x7fELF"


def _compile_shared(source: str, output: Path, freestanding: bool) -> Path:
    src = output.with_suffix(".c")
    src.write_text(source)
    cmd = ["gcc", "-O2", "-shared", "-fPIC", "-fno-stack-protector"]
    if freestanding:
        cmd += ["-ffreestanding", "-nostdlib"]
    cmd += [str(src), "-o", str(output)]
    subprocess.run(cmd, check=True, capture_output=True, timeout=30)
    return output


@pytest.fixture(scope="session")
def gcc_ok():
    """Skip tests if gcc is missing or does not produce ELF shared objects."""
    if not _gcc_produces_elf():
        pytest.skip("gcc producing ELF shared objects is required")


@pytest.fixture(scope="session")
def elf_dir(tmp_path_factory, gcc_ok) -> Path:
    return tmp_path_factory.mktemp("elf_fixtures")


@pytest.fixture(scope="session")
def clean_freestanding_lib(elf_dir) -> Path:
    """A -nostdlib shared object with no external references."""
    return _compile_shared(CLEAN_LIB_C, elf_dir / "libclean.so", freestanding=True)


@pytest.fixture(scope="session")
def undefined_symbol_lib(elf_dir) -> Path:
    """A -nostdlib shared object with a deliberately injected undefined symbol."""
    return _compile_shared(UNDEFINED_LIB_C, elf_dir / "libundef.so", freestanding=True)


@pytest.fixture(scope="session")
def libc_linked_lib(elf_dir) -> Path:
    """An ordinary shared object that calls into libc."""
    return _compile_shared(LIBC_LIB_C, elf_dir / "liblibc.so", freestanding=False)


@pytest.fixture
def not_elf(tmp_path) -> Path:
    p = tmp_path / "not_an_elf.so"
    p.write_bytes(b"This is not an ELF file.\x00\x00\x00")
    return p
