"""Tests for lofgate.core.denovo module."""

import numpy as np
import pytest

from lofgate.config import LofteeConfig
from lofgate.core.denovo import DonorCandidate, SvmDeNovoDonorPredictor
from lofgate.core.svm import KernelModel, KernelScorer, to_probability


@pytest.fixture
def scorer() -> KernelScorer:
    """Linear one-feature model: margin equals the feature value."""
    model = KernelModel(
        features=("score",),
        support_vectors=np.array([[1.0]]),
        alphas=np.array([1.0]),
        center={"score": 0.0},
        scale={"score": 1.0},
        misc={"gamma": 1.0, "rho": 0.0, "probA": 1.0, "probB": 0.0},
        name="de_novo_donor",
    )
    return KernelScorer(model)


class StaticSource:
    def __init__(self, candidates: list[DonorCandidate]) -> None:
        self._candidates = candidates

    def candidates(self, context, allele):
        return self._candidates


def candidate(score: float, **overrides) -> DonorCandidate:
    values = {"position": 380, "distance": 20, "features": {"score": score}}
    values.update(overrides)
    return DonorCandidate(**values)


class TestSvmDeNovoDonorPredictor:
    """Tests for SvmDeNovoDonorPredictor."""

    def test_best_candidate(self, scorer, make_context) -> None:
        """Test that the most probable candidate is reported."""
        source = StaticSource(
            [
                candidate(1.0, position=370),
                candidate(6.0, position=390, causes_frameshift=True),
                candidate(3.0, position=395),
            ]
        )
        predictor = SvmDeNovoDonorPredictor(scorer, source)

        result = predictor.predict(make_context(), "T")

        assert result.probability == pytest.approx(to_probability(6.0, scorer.model))
        assert result.lof_position == 390
        assert result.is_lof is True
        assert result.features == {"score": 6.0}

    def test_no_candidates(self, scorer, make_context) -> None:
        result = SvmDeNovoDonorPredictor(scorer, StaticSource([])).predict(make_context(), "T")

        assert result.probability == 0.0
        assert result.features is None
        assert result.lof_position == -1

    def test_eligibility(self, scorer) -> None:
        predictor = SvmDeNovoDonorPredictor(
            scorer, StaticSource([]), max_distance=50, exonic_only=True, weak_donor_cutoff=-4.0
        )

        assert predictor.is_eligible(candidate(1.0))
        assert not predictor.is_eligible(candidate(1.0, distance=-60))
        assert not predictor.is_eligible(candidate(1.0, exonic=False))
        assert not predictor.is_eligible(candidate(1.0, authentic_donor_score=-5.0))
        assert predictor.is_eligible(candidate(1.0, authentic_donor_score=-3.0))

    def test_ineligible_skipped(self, scorer, make_context) -> None:
        source = StaticSource([candidate(9.0, exonic=False), candidate(1.0, position=371)])
        predictor = SvmDeNovoDonorPredictor(scorer, source)

        assert predictor.predict(make_context(), "T").lof_position == 371

    def test_from_config(self, scorer) -> None:
        config = LofteeConfig(
            max_denovo_donor_distance=75, exonic_denovo_only=False, weak_donor_cutoff=-2
        )

        predictor = SvmDeNovoDonorPredictor.from_config(scorer, StaticSource([]), config)

        assert predictor.max_distance == 75
        assert predictor.exonic_only is False
        assert predictor.weak_donor_cutoff == -2.0
