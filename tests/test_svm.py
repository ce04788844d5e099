"""Tests for lofgate.core.svm module.

Tests cover:
- Model loading and validation
- Linear and radial decision functions
- Score cache behavior
- Probability calibration
"""

import logging
import math
from pathlib import Path
from typing import Callable

import numpy as np
import pytest

from lofgate.core.svm import (
    InvalidModelError,
    KernelModel,
    KernelScorer,
    MissingFeatureError,
    ModelLoadError,
    ScoreCache,
    align_features,
    evaluate_margin,
    feature_signature,
    load_kernel_model,
    to_probability,
)

MISC = {"gamma": 1.0, "rho": 0.0, "probA": 1.0, "probB": 0.0}


def make_model(**overrides) -> KernelModel:
    values = {
        "features": ("a", "b"),
        "support_vectors": np.array([[0.5, 0.5], [-0.5, -0.5]]),
        "alphas": np.array([1.0, 1.0]),
        "center": {"a": 0.0, "b": 0.0},
        "scale": {"a": 1.0, "b": 1.0},
        "misc": dict(MISC),
    }
    values.update(overrides)
    return KernelModel(**values)


# =============================================================================
# Loading Tests
# =============================================================================


class TestLoadKernelModel:
    """Tests for load_kernel_model."""

    def test_load(self, two_feature_model_dir: Path) -> None:
        """Test loading a well-formed model directory."""
        model = load_kernel_model(two_feature_model_dir)

        assert model.features == ("a", "b")
        assert model.n_support_vectors == 2
        np.testing.assert_allclose(model.alphas, [1.0, 1.0])
        np.testing.assert_allclose(model.support_vectors, [[0.5, 0.5], [-0.5, -0.5]])
        assert model.misc["gamma"] == 1.0
        assert model.name == "two_feature"

    def test_missing_directory(self, tmp_path: Path) -> None:
        """Test that a missing directory raises ModelLoadError."""
        with pytest.raises(ModelLoadError, match="not found"):
            load_kernel_model(tmp_path / "absent")

    def test_missing_file(self, two_feature_model_dir: Path) -> None:
        """Test that a missing table raises ModelLoadError."""
        (two_feature_model_dir / "scale.txt").unlink()

        with pytest.raises(ModelLoadError, match="scale.txt"):
            load_kernel_model(two_feature_model_dir)

    def test_header_only(self, write_model: Callable[..., Path]) -> None:
        """Test that a model without support vectors is rejected."""
        model_dir = write_model(["a", "b"], [])

        with pytest.raises(ModelLoadError, match="no support vectors"):
            load_kernel_model(model_dir)

    def test_ragged_row(self, two_feature_model_dir: Path) -> None:
        """Test that a short support vector row is rejected."""
        with open(two_feature_model_dir / "sv.txt", "a") as f:
            f.write("0.1\t1.0\n")

        with pytest.raises(ModelLoadError, match="columns"):
            load_kernel_model(two_feature_model_dir)

    def test_non_numeric_value(self, write_model: Callable[..., Path]) -> None:
        """Test that a non-numeric support vector value is rejected."""
        model_dir = write_model(["a"], [["x", 1.0]])

        with pytest.raises(ModelLoadError, match="non-numeric"):
            load_kernel_model(model_dir)

    def test_missing_misc_key(self, write_model: Callable[..., Path]) -> None:
        """Test that misc.txt must define gamma, rho, probA and probB."""
        model_dir = write_model(["a"], [[1.0, 1.0]], misc={"gamma": 1.0, "rho": 0.0})

        with pytest.raises(ModelLoadError, match="probA"):
            load_kernel_model(model_dir)

    def test_zero_scale(self, write_model: Callable[..., Path]) -> None:
        """Test that a zero scale value is rejected at load time."""
        model_dir = write_model(["a", "b"], [[1.0, 1.0, 1.0]], scale={"a": 1.0, "b": 0.0})

        with pytest.raises(InvalidModelError, match="zero"):
            load_kernel_model(model_dir)

    def test_missing_center(self, write_model: Callable[..., Path]) -> None:
        """Test that every feature needs a center value."""
        model_dir = write_model(["a", "b"], [[1.0, 1.0, 1.0]], center={"a": 0.0})

        with pytest.raises(InvalidModelError, match="center"):
            load_kernel_model(model_dir)


class TestKernelModel:
    """Tests for KernelModel validation."""

    def test_column_mismatch(self) -> None:
        """Test that support vector width must match the feature count."""
        with pytest.raises(InvalidModelError):
            make_model(support_vectors=np.array([[0.5, 0.5, 0.5]]), alphas=np.array([1.0]))

    def test_alpha_mismatch(self) -> None:
        """Test that each support vector needs one coefficient."""
        with pytest.raises(InvalidModelError, match="coefficients"):
            make_model(alphas=np.array([1.0]))

    def test_identity_hash(self) -> None:
        """Test that two equal-looking models are distinct cache keys."""
        first = make_model()
        second = make_model()

        assert first != second
        assert len({first, second}) == 2

    def test_vectors(self) -> None:
        """Test center and scale alignment to feature order."""
        model = make_model(
            features=("b", "a"),
            center={"a": 1.0, "b": 2.0},
            scale={"a": 3.0, "b": 4.0},
        )

        np.testing.assert_allclose(model.center_vector, [2.0, 1.0])
        np.testing.assert_allclose(model.scale_vector, [4.0, 3.0])


# =============================================================================
# Evaluation Tests
# =============================================================================


class TestEvaluateMargin:
    """Tests for evaluate_margin."""

    def test_linear_symmetric(self, two_feature_model_dir: Path) -> None:
        """Test the hand-computed margin of the symmetric two-vector model."""
        model = load_kernel_model(two_feature_model_dir)

        # 1*(0.5 + 1.0) + 1*(-0.5 - 1.0) - 0
        margin = evaluate_margin(model, {"a": 1.0, "b": 2.0})

        assert margin == pytest.approx(0.0)

    def test_linear_with_rho(self) -> None:
        """Test a linear margin with opposite coefficients and rho."""
        model = make_model(alphas=np.array([1.0, -1.0]), misc={**MISC, "rho": 0.5})

        # 1*1.5 - 1*(-1.5) - 0.5
        assert evaluate_margin(model, {"a": 1.0, "b": 2.0}) == pytest.approx(2.5)

    def test_radial(self, two_feature_model_dir: Path) -> None:
        """Test the RBF margin for gamma = 1."""
        model = load_kernel_model(two_feature_model_dir)

        margin = evaluate_margin(model, {"a": 1.0, "b": 2.0}, kernel="radial")

        # squared distances 2.5 and 8.5
        assert margin == pytest.approx(math.exp(-2.5) + math.exp(-8.5))

    def test_unknown_kernel_is_linear(self) -> None:
        """Test that kernels other than radial evaluate linearly."""
        model = make_model(alphas=np.array([1.0, -1.0]))

        assert evaluate_margin(model, {"a": 1.0, "b": 2.0}, kernel="poly") == pytest.approx(3.0)

    def test_unknown_kernel_logged(self, caplog: pytest.LogCaptureFixture) -> None:
        model = make_model(name="donor")

        with caplog.at_level(logging.DEBUG, logger="lofgate.core.svm"):
            evaluate_margin(model, {"a": 1.0, "b": 2.0}, kernel="poly")

        assert any("unknown kernel 'poly'" in r.getMessage() for r in caplog.records)

    def test_center_and_scale(self) -> None:
        """Test that features are centered and scaled before the kernel."""
        model = make_model(
            alphas=np.array([1.0, 0.0]),
            center={"a": 1.0, "b": 0.0},
            scale={"a": 2.0, "b": 1.0},
        )

        # scaled a = (3 - 1) / 2 = 1; 0.5*1 + 0.5*0
        assert evaluate_margin(model, {"a": 3.0, "b": 0.0}) == pytest.approx(0.5)

    def test_feature_order_independent(self) -> None:
        """Test that feature map order does not change the margin."""
        model = make_model(alphas=np.array([1.0, -1.0]))

        assert evaluate_margin(model, {"b": 2.0, "a": 1.0}) == evaluate_margin(
            model, {"a": 1.0, "b": 2.0}
        )

    def test_extra_features_ignored(self) -> None:
        """Test that features unknown to the model are ignored."""
        model = make_model(alphas=np.array([1.0, -1.0]))

        assert evaluate_margin(model, {"a": 1.0, "b": 2.0, "c": 99.0}) == pytest.approx(3.0)

    def test_missing_feature(self) -> None:
        """Test that a missing model feature fails fast."""
        model = make_model(name="donor")

        with pytest.raises(MissingFeatureError) as exc_info:
            evaluate_margin(model, {"a": 1.0})

        assert exc_info.value.feature == "b"
        assert "donor" in str(exc_info.value)

    def test_missing_feature_is_key_error(self) -> None:
        """Test that MissingFeatureError can be caught as KeyError."""
        with pytest.raises(KeyError):
            align_features(make_model(), {"b": 1.0})


class TestScoreCache:
    """Tests for ScoreCache."""

    def test_hit_after_miss(self) -> None:
        """Test that scoring the same features twice hits the cache once."""
        model = make_model(alphas=np.array([1.0, -1.0]))
        cache = ScoreCache()

        first = evaluate_margin(model, {"a": 1.0, "b": 2.0}, cache=cache)
        second = evaluate_margin(model, {"b": 2.0, "a": 1.0}, cache=cache)

        assert first == second
        assert cache.misses == 1
        assert cache.hits == 1
        assert len(cache) == 1

    def test_keyed_by_model(self) -> None:
        """Test that two models never share cache entries."""
        cache = ScoreCache()
        features = {"a": 1.0, "b": 2.0}

        evaluate_margin(make_model(alphas=np.array([1.0, -1.0])), features, cache=cache)
        margin = evaluate_margin(make_model(alphas=np.array([2.0, -2.0])), features, cache=cache)

        assert margin == pytest.approx(6.0)
        assert cache.misses == 2
        assert len(cache) == 2

    def test_failed_evaluation_not_counted(self) -> None:
        """Test that a missing feature leaves the counters and entries untouched."""
        cache = ScoreCache()

        with pytest.raises(MissingFeatureError):
            evaluate_margin(make_model(), {"a": 1.0}, cache=cache)

        assert cache.misses == 0
        assert cache.hits == 0
        assert len(cache) == 0

    def test_put_keeps_first_value(self) -> None:
        """Test that a second put for the same key keeps the stored margin."""
        model = make_model()
        cache = ScoreCache()

        assert cache.put(model, "a:1", 1.0) == 1.0
        assert cache.put(model, "a:1", 2.0) == 1.0
        assert cache.get(model, "a:1") == 1.0

    def test_signature(self) -> None:
        """Test the canonical feature signature."""
        assert feature_signature({"b": 2.0, "a": 1.0}) == "a:1.0_b:2.0"


# =============================================================================
# Probability Tests
# =============================================================================


class TestToProbability:
    """Tests for to_probability."""

    def test_zero_margin(self) -> None:
        """Test that a zero logit gives one half."""
        assert to_probability(0.0, make_model()) == pytest.approx(0.5)

    def test_platt_scaling(self) -> None:
        """Test probA and probB enter the logit."""
        model = make_model(misc={**MISC, "probA": 2.0, "probB": -1.0})

        assert to_probability(1.0, model) == pytest.approx(1.0 / (1.0 + math.exp(-1.0)))

    def test_monotonic_open_interval(self) -> None:
        """Test strict monotonicity and range over a spread of margins."""
        model = make_model()
        margins = [-30.0, -5.0, -1.0, 0.0, 0.5, 1.0, 5.0, 30.0]

        probabilities = [to_probability(m, model) for m in margins]

        assert all(0.0 < p < 1.0 for p in probabilities)
        assert probabilities == sorted(probabilities)
        assert len(set(probabilities)) == len(probabilities)

    def test_extreme_margins(self) -> None:
        """Test that extreme margins do not overflow."""
        model = make_model()

        assert to_probability(1e6, model) == pytest.approx(1.0)
        assert to_probability(-1e6, model) == pytest.approx(0.0)


class TestKernelScorer:
    """Tests for KernelScorer."""

    def test_margin_and_probability(self) -> None:
        """Test that the scorer combines margin and calibration."""
        scorer = KernelScorer(make_model(alphas=np.array([1.0, -1.0])))
        features = {"a": 1.0, "b": 2.0}

        assert scorer.margin(features) == pytest.approx(3.0)
        assert scorer.probability(features) == pytest.approx(1.0 / (1.0 + math.exp(-3.0)))
        assert scorer.cache.hits == 1

    def test_shared_cache(self) -> None:
        """Test that scorers can share one cache."""
        cache = ScoreCache()
        model = make_model()

        KernelScorer(model, cache=cache).margin({"a": 1.0, "b": 1.0})
        KernelScorer(model, kernel="linear", cache=cache).margin({"a": 1.0, "b": 1.0})

        assert cache.hits == 1
