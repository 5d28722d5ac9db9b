"""
test_features: cumulative CPU-feature-disable matrix.

Invariant properties:
  - index 0 is always the empty set (baseline run);
  - every step is a superset of the previous one;
  - a -march=native build gets the baseline only;
  - unknown architectures get the baseline only.
"""
import pytest

from deflate_matrix.core.features import (
    FEATURE_TABLE,
    NATIVE_FLAG,
    ArchFamily,
    FeatureDisableSet,
    classify_arch,
    generate_feature_matrix,
)
from deflate_matrix.policy.profile import MatrixProfile


class TestClassifyArch:

    @pytest.mark.parametrize("machine", ["x86_64", "i386"])
    def test_x86(self, machine):
        assert classify_arch(machine) == ArchFamily.X86

    @pytest.mark.parametrize("machine", ["aarch64", "armv7l", "arm64"])
    def test_arm(self, machine):
        assert classify_arch(machine) == ArchFamily.ARM

    @pytest.mark.parametrize("machine", ["riscv64", "ppc64le", "s390x", ""])
    def test_unknown(self, machine):
        assert classify_arch(machine) == ArchFamily.UNKNOWN


class TestFeatureMatrix:

    @pytest.mark.parametrize("machine", ["x86_64", "aarch64"])
    def test_cumulative(self, machine):
        matrix = generate_feature_matrix(machine)

        assert matrix[0] == FeatureDisableSet()
        for prev, nxt in zip(matrix, matrix[1:]):
            assert set(prev.tokens) < set(nxt.tokens)
            assert nxt.tokens[: len(prev.tokens)] == prev.tokens

    def test_x86_order_newest_first(self):
        matrix = generate_feature_matrix("x86_64")

        assert len(matrix) == 1 + len(FEATURE_TABLE[ArchFamily.X86])
        assert [m.env_value for m in matrix[:3]] == ["", "avx512bw", "avx512bw,avx2"]
        assert matrix[-1].env_value == "avx512bw,avx2,avx,bmi2,pclmul,sse2"

    def test_arm_tokens(self):
        matrix = generate_feature_matrix(ArchFamily.ARM)

        assert [m.env_value for m in matrix] == ["", "crc32", "crc32,pmull", "crc32,pmull,neon"]

    def test_march_native_gets_baseline_only(self):
        matrix = generate_feature_matrix("x86_64", ["-march=native", "-Werror"])

        assert matrix == [FeatureDisableSet()]

    def test_other_flags_do_not_pin(self):
        matrix = generate_feature_matrix("x86_64", ["-m32", "-Werror"])

        assert len(matrix) == 7

    def test_unknown_arch_gets_baseline_only(self):
        assert generate_feature_matrix("riscv64") == [FeatureDisableSet()]

    def test_empty_set_is_falsy(self):
        assert not FeatureDisableSet()
        assert FeatureDisableSet(("neon",))
        assert str(FeatureDisableSet()) == "(none)"


def test_native_flag_follows_profile():
    assert NATIVE_FLAG == MatrixProfile.v0().native_flag
