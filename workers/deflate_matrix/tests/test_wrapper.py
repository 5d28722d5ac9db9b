"""
test_wrapper: wrapper modes resolve to prefix or build instrumentation.
"""
import pytest

from deflate_matrix.config import Settings
from deflate_matrix.core.wrapper import BARE, WrapperMode, WrapperSelector


class TestSelector:

    def test_bare(self, selector):
        spec = selector.select(WrapperMode.BARE)

        assert spec == BARE
        assert spec.prefix == ()
        assert spec.env_value == ""
        assert spec.wrap(["./gzip", "-c"]) == ["./gzip", "-c"]

    def test_memory_check(self, selector):
        spec = selector.select("memory-check")

        assert spec.mode == WrapperMode.MEMORY_CHECK
        assert spec.prefix == ("valgrind", "--quiet", "--error-exitcode=100")
        assert spec.compiler is None and spec.cflags == ()
        assert spec.env_value == "valgrind --quiet --error-exitcode=100"
        assert spec.wrap_string("/src/gzip") == "valgrind --quiet --error-exitcode=100 /src/gzip"

    def test_sanitized(self, selector):
        spec = selector.select(WrapperMode.SANITIZED)

        assert spec.prefix == ()
        assert spec.compiler == "clang"
        assert "-fsanitize=undefined" in spec.cflags
        assert "-fno-sanitize-recover=undefined,integer" in spec.cflags

    def test_unknown_mode(self, selector):
        with pytest.raises(ValueError):
            selector.select("helgrind")


def test_modes_are_exclusive(selector):
    memcheck = selector.select(WrapperMode.MEMORY_CHECK)
    sanitized = selector.select(WrapperMode.SANITIZED)

    assert memcheck.prefix and not memcheck.cflags
    assert sanitized.cflags and not sanitized.prefix


def test_default_valgrind_treats_leaks_as_errors(monkeypatch):
    monkeypatch.delenv("VALGRIND", raising=False)

    spec = WrapperSelector(Settings(_env_file=None)).select(WrapperMode.MEMORY_CHECK)

    assert spec.prefix[0] == "valgrind"
    assert "--error-exitcode=100" in spec.prefix
    assert "--errors-for-leak-kinds=all" in spec.prefix
