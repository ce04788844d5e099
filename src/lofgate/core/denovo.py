"""De novo donor prediction backed by the kernel scorer.

Candidate donor sites (and their feature maps) come from an external
DonorCandidateSource, which owns motif scanning and feature extraction.
Each eligible candidate is scored with the de novo donor SVM; the most
probable one is reported.

Example:
    >>> from lofgate.core.denovo import SvmDeNovoDonorPredictor
    >>> from lofgate.core.svm import KernelScorer, load_kernel_model
    >>> scorer = KernelScorer(load_kernel_model("de_novo_donor_SVM"), kernel="radial")
    >>> predictor = SvmDeNovoDonorPredictor(scorer, candidate_source)
    >>> predictor.predict(context, "T").probability
"""

from __future__ import annotations

import logging
from typing import Mapping, Protocol, Sequence

import attrs

from lofgate.config import LofteeConfig
from lofgate.core.models import DeNovoDonorResult, VariantTranscriptContext
from lofgate.core.svm import KernelScorer

logger = logging.getLogger(__name__)


@attrs.define(frozen=True, slots=True)
class DonorCandidate:
    """A potential donor site created by a variant.

    Attributes:
        position: Genomic position of the new donor.
        distance: Distance to the authentic donor (bp).
        features: Feature map for the SVM.
        causes_frameshift: Using this donor shifts the reading frame.
        exonic: The new donor lies in an exon.
        authentic_donor_score: Score of the annotated donor, if known.
    """

    position: int
    distance: int
    features: Mapping[str, float]
    causes_frameshift: bool = False
    exonic: bool = True
    authentic_donor_score: float | None = None


class DonorCandidateSource(Protocol):
    def candidates(
        self, context: VariantTranscriptContext, allele: str
    ) -> Sequence[DonorCandidate]: ...


class SvmDeNovoDonorPredictor:
    """Score de novo donor candidates with a kernel model.

    Attributes:
        scorer: Kernel scorer for the donor model.
        source: Candidate provider.
        max_distance: Largest distance from the authentic donor considered.
        exonic_only: Ignore intronic candidates.
        weak_donor_cutoff: Skip candidates whose authentic donor scores
            below this value.
    """

    def __init__(
        self,
        scorer: KernelScorer,
        source: DonorCandidateSource,
        max_distance: int = 200,
        exonic_only: bool = True,
        weak_donor_cutoff: float = -4.0,
    ) -> None:
        self.scorer = scorer
        self.source = source
        self.max_distance = max_distance
        self.exonic_only = exonic_only
        self.weak_donor_cutoff = weak_donor_cutoff

    @classmethod
    def from_config(
        cls, scorer: KernelScorer, source: DonorCandidateSource, config: LofteeConfig
    ) -> "SvmDeNovoDonorPredictor":
        return cls(
            scorer,
            source,
            max_distance=config.max_denovo_donor_distance,
            exonic_only=config.exonic_denovo_only,
            weak_donor_cutoff=config.weak_donor_cutoff,
        )

    def is_eligible(self, candidate: DonorCandidate) -> bool:
        if abs(candidate.distance) > self.max_distance:
            return False
        if self.exonic_only and not candidate.exonic:
            return False
        if (
            candidate.authentic_donor_score is not None
            and candidate.authentic_donor_score < self.weak_donor_cutoff
        ):
            return False
        return True

    def predict(self, context: VariantTranscriptContext, allele: str) -> DeNovoDonorResult:
        """Return the most probable de novo donor, or probability 0 if none."""
        best: DeNovoDonorResult | None = None
        for candidate in self.source.candidates(context, allele):
            if not self.is_eligible(candidate):
                continue
            probability = self.scorer.probability(candidate.features)
            if best is None or probability > best.probability:
                best = DeNovoDonorResult(
                    probability=probability,
                    features=dict(candidate.features),
                    is_lof=candidate.causes_frameshift,
                    lof_position=candidate.position,
                )

        if best is None:
            return DeNovoDonorResult()
        logger.debug(f"{context.variant_id}: best de novo donor p={best.probability:.4f}")
        return best
