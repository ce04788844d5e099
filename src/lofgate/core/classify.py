"""Loss-of-function classification pipeline.

LofClassifier turns one variant-transcript annotation into a LoF call
(HC, LC, unset, or omitted) plus filter, flag and info tags. Evidence is
gathered in a fixed order:

1. Protein-coding gate
2. Consequence predicates (genic, UTR, stop/frameshift, VEP splice)
3. Splice disruption of an annotated site, with rescue scan
4. De novo donor creation
5. Confidence gate (early return unless ``apply_all``)
6. Distance to the last exon and GERP-weighted distance (END_TRUNC)
7. Exon integrity and surrounding introns
8. PhyloCSF conservation
9. Intron size, motif, UTR splice and NAGNAG checks
10. Ancestral allele
11. HC with any filter is downgraded to LC

Evidence sources are injected through a Collaborators container; any that
is not configured is skipped. Collaborator errors propagate.

Example:
    >>> from lofgate.config import LofteeConfig
    >>> from lofgate.core.classify import Collaborators, LofClassifier
    >>> classifier = LofClassifier(LofteeConfig(), Collaborators())
    >>> result = classifier.classify(context)
    >>> result.to_record()
    {'LoF': 'HC', 'LoF_filter': '', 'LoF_flags': '', 'LoF_info': ''}
"""

from __future__ import annotations

import logging
from typing import Any, Iterable, Mapping, Protocol

import attrs

from lofgate.config import LofteeConfig
from lofgate.core import structure
from lofgate.core.models import (
    FRAMESHIFT_VARIANT,
    SPLICE_ACCEPTOR_VARIANT,
    SPLICE_DONOR_VARIANT,
    STOP_GAINED,
    AlternativeSpliceResult,
    ClassificationResult,
    Confidence,
    ConservationRecord,
    DeNovoDonorResult,
    GerpDistance,
    SpliceDisruptionResult,
    SpliceInfo,
    VariantTranscriptContext,
)
from lofgate.utils.sequences import is_single_base_substitution

logger = logging.getLogger(__name__)

# =============================================================================
# Constants
# =============================================================================

# END_TRUNC thresholds
END_TRUNC_MAX_DISTANCE = 50
END_TRUNC_MAX_GERP_DISTANCE = 180

# Filters
FILTER_END_TRUNC = "END_TRUNC"
FILTER_EXON_INTRON_UNDEF = "EXON_INTRON_UNDEF"
FILTER_INCOMPLETE_CDS = "INCOMPLETE_CDS"
FILTER_SMALL_INTRON = "SMALL_INTRON"
FILTER_NON_CAN_SPLICE = "NON_CAN_SPLICE"
FILTER_5UTR_SPLICE = "5UTR_SPLICE"
FILTER_3UTR_SPLICE = "3UTR_SPLICE"
FILTER_ANC_ALLELE = "ANC_ALLELE"

# Flags
FLAG_SINGLE_EXON = "SINGLE_EXON"
FLAG_NON_CAN_SPLICE_SURR = "NON_CAN_SPLICE_SURR"
FLAG_NAGNAG_SITE = "NAGNAG_SITE"
FLAG_PHYLOCSF_UNLIKELY_ORF = "PHYLOCSF_UNLIKELY_ORF"
FLAG_PHYLOCSF_WEAK = "PHYLOCSF_WEAK"

# Info tags
INFO_DE_NOVO_DONOR = "DE_NOVO_DONOR"
INFO_PHYLOCSF_TOO_SHORT = "PHYLOCSF_TOO_SHORT"


# =============================================================================
# Collaborator Contracts
# =============================================================================


class SpliceDisruptionPredictor(Protocol):
    def predict(
        self, context: VariantTranscriptContext, allele: str, vep_splice_lof: bool
    ) -> SpliceDisruptionResult: ...


class AlternativeSpliceScanner(Protocol):
    def scan(
        self, context: VariantTranscriptContext, splice_info: SpliceInfo
    ) -> AlternativeSpliceResult: ...


class DeNovoDonorPredictor(Protocol):
    def predict(self, context: VariantTranscriptContext, allele: str) -> DeNovoDonorResult: ...


class GerpWeightedDistance(Protocol):
    def distance(self, context: VariantTranscriptContext, lof_position: int) -> GerpDistance: ...


class ConservationLookup(Protocol):
    def lookup(self, context: VariantTranscriptContext) -> ConservationRecord | None: ...


class AncestralAlleleCheck(Protocol):
    def matches_ancestral(self, context: VariantTranscriptContext) -> bool: ...


@attrs.define
class Collaborators:
    """Evidence sources used by the classifier; None means not configured.

    Attributes:
        splice_disruption: Predicts disruption of annotated splice sites.
        alternative_splice: Scans for rescuing splice sites.
        denovo_donor: Predicts creation of a de novo donor.
        gerp_distance: GERP-weighted distance to the stop codon.
        conservation: PhyloCSF lookup.
        ancestral: Ancestral allele check.
        sequences: Reference sequence source (motifs, NAGNAG).
        intron_cache: Intron sequence cache; built from ``sequences``
            when not given.
    """

    splice_disruption: SpliceDisruptionPredictor | None = None
    alternative_splice: AlternativeSpliceScanner | None = None
    denovo_donor: DeNovoDonorPredictor | None = None
    gerp_distance: GerpWeightedDistance | None = None
    conservation: ConservationLookup | None = None
    ancestral: AncestralAlleleCheck | None = None
    sequences: structure.SequenceSource | None = None
    intron_cache: structure.IntronSequenceCache | None = None

    def __attrs_post_init__(self) -> None:
        if self.intron_cache is None and self.sequences is not None:
            self.intron_cache = structure.IntronSequenceCache(self.sequences)


# =============================================================================
# Helpers
# =============================================================================


def format_info(key: str, value: Any) -> str:
    """Render an info tag as ``key:value``."""
    return f"{key}:{value}"


def _feature_tags(features: Mapping[str, Any], skip_none: bool = False) -> Iterable[str]:
    for key, value in features.items():
        if skip_none and value is None:
            continue
        yield format_info(key, value)


@attrs.define
class _Evidence:
    """Mutable state of one classification run."""

    result: ClassificationResult = attrs.Factory(ClassificationResult)
    loftee_splice_lof: bool = False
    lof_position: int = -1


# =============================================================================
# Classifier
# =============================================================================


class LofClassifier:
    """Assign a LoF confidence to variant-transcript annotations.

    Attributes:
        config: Classification settings.
        collaborators: Evidence sources.
    """

    def __init__(
        self,
        config: LofteeConfig | None = None,
        collaborators: Collaborators | None = None,
    ) -> None:
        self.config = config or LofteeConfig()
        self.collaborators = collaborators or Collaborators()
        self._warned_no_gerp = False

    def classify(self, context: VariantTranscriptContext) -> ClassificationResult:
        """Classify one annotation.

        Args:
            context: Variant-transcript annotation.

        Returns:
            ClassificationResult. ``skipped`` is set for non-protein-coding
            transcripts; ``confidence`` is None when there is no strong
            evidence and ``apply_all`` is off.
        """
        if not context.transcript.is_protein_coding:
            return ClassificationResult(skipped=True)

        state = _Evidence()
        result = state.result

        genic = structure.is_genic(context)
        five_prime_utr = structure.is_five_prime_utr(context)
        three_prime_utr = structure.is_three_prime_utr(context)
        other_lof = context.has_consequence(STOP_GAINED, FRAMESHIFT_VARIANT)
        vep_splice_lof = context.has_consequence(SPLICE_ACCEPTOR_VARIANT, SPLICE_DONOR_VARIANT)

        if genic and not (five_prime_utr or three_prime_utr or other_lof):
            splice_disrupting = self._check_splice_disruption(context, vep_splice_lof, state)
            if not splice_disrupting:
                self._check_denovo_donor(context, state)

        confidence = Confidence.UNSET
        if state.loftee_splice_lof or vep_splice_lof or other_lof:
            confidence = confidence.transition(Confidence.HC)
        elif not self.config.apply_all:
            logger.debug(f"{context.variant_id}: no strong LoF evidence, skipping filters")
            return result

        if context.exon_number is not None:
            if context.cds_end is not None:
                self._check_end_truncation(context, state)
            self._check_exon_integrity(context, result)
            if self.collaborators.conservation is not None:
                self._check_conservation(context, result)

        if context.intron_number is not None:
            self._check_intron(context, five_prime_utr, three_prime_utr, result)

        if self.collaborators.ancestral is not None:
            if is_single_base_substitution(context.allele_string):
                if self.collaborators.ancestral.matches_ancestral(context):
                    result.filters.append(FILTER_ANC_ALLELE)

        if confidence is Confidence.HC and result.filters:
            confidence = confidence.transition(Confidence.LC)
        result.confidence = confidence
        return result

    # -------------------------------------------------------------------------
    # Splice evidence
    # -------------------------------------------------------------------------

    def _check_splice_disruption(
        self,
        context: VariantTranscriptContext,
        vep_splice_lof: bool,
        state: _Evidence,
    ) -> bool:
        """Run the extended splice prediction; return True if disrupting."""
        predictor = self.collaborators.splice_disruption
        if predictor is None:
            return False

        prediction = predictor.predict(context, context.allele, vep_splice_lof)
        splice_info = prediction.splice_info
        if splice_info is None:
            return prediction.is_disrupting

        info = state.result.info
        if self.config.get_splice_features and prediction.features is not None:
            info.extend(_feature_tags(prediction.features))

        if prediction.is_disrupting:
            state.loftee_splice_lof = True
            info.append(f"{splice_info.type}_DISRUPTING")
            if self.collaborators.alternative_splice is not None:
                scan = self.collaborators.alternative_splice.scan(context, splice_info)
                if self.config.get_splice_features and scan.features is not None:
                    info.extend(_feature_tags(scan.features, skip_none=True))
                if scan.rescue.rescued:
                    state.result.filters.append(scan.rescue.rescue_tag)
                else:
                    state.lof_position = scan.rescue.lof_position
        elif vep_splice_lof:
            state.result.filters.append(f"NON_{splice_info.type}_DISRUPTING")

        return prediction.is_disrupting

    def _check_denovo_donor(self, context: VariantTranscriptContext, state: _Evidence) -> None:
        predictor = self.collaborators.denovo_donor
        if predictor is None:
            return

        prediction = predictor.predict(context, context.allele)
        info = state.result.info
        if prediction.probability > self.config.denovo_donor_cutoff:
            info.append(INFO_DE_NOVO_DONOR)
            state.lof_position = prediction.lof_position
            state.loftee_splice_lof = prediction.is_lof

        if prediction.probability > 0 and self.config.get_splice_features and prediction.features:
            seen = set(info)
            for tag in _feature_tags(prediction.features):
                if tag not in seen:
                    info.append(tag)
                    seen.add(tag)

    # -------------------------------------------------------------------------
    # Exonic checks
    # -------------------------------------------------------------------------

    def _check_end_truncation(self, context: VariantTranscriptContext, state: _Evidence) -> None:
        """Apply the 50 bp rule and GERP-weighted distance (END_TRUNC).

        The percentile and distance from the last exon need only the
        transcript; END_TRUNC also needs the GERP-weighted distance.
        """
        result = state.result
        lof_position = state.lof_position if state.lof_position >= 0 else context.start

        gerp = self.collaborators.gerp_distance
        distance = None
        if gerp is not None:
            distance = gerp.distance(context, lof_position)
            raw_distance = distance.raw_distance
            result.info.append(format_info("GERP_DIST", distance.weighted_distance))
            result.info.append(format_info("BP_DIST", raw_distance))
        else:
            if not self._warned_no_gerp:
                logger.warning("No GERP source configured; END_TRUNC filter disabled")
                self._warned_no_gerp = True
            raw_distance = structure.coding_distance_to_stop(context, lof_position)
        result.info.append(format_info("PERCENTILE", structure.cds_percentile(context)))

        d = raw_distance - structure.last_exon_coding_length(context)
        result.info.append(format_info("DIST_FROM_LAST_EXON", d))
        result.info.append(format_info("50_BP_RULE", "FAIL" if d <= END_TRUNC_MAX_DISTANCE else "PASS"))
        if (
            distance is not None
            and d <= END_TRUNC_MAX_DISTANCE
            and distance.weighted_distance <= END_TRUNC_MAX_GERP_DISTANCE
        ):
            result.filters.append(FILTER_END_TRUNC)

    def _check_exon_integrity(
        self, context: VariantTranscriptContext, result: ClassificationResult
    ) -> None:
        if structure.has_exon_annotation_errors(context):
            result.filters.append(FILTER_EXON_INTRON_UNDEF)
        elif structure.is_single_exon(context):
            result.flags.append(FLAG_SINGLE_EXON)
        else:
            if self.config.check_complete_cds and structure.is_incomplete_cds(context):
                result.filters.append(FILTER_INCOMPLETE_CDS)
            if structure.has_non_canonical_surrounding_introns(
                context, self.config.min_intron_size, self.collaborators.intron_cache
            ):
                result.flags.append(FLAG_NON_CAN_SPLICE_SURR)

    def _check_conservation(
        self, context: VariantTranscriptContext, result: ClassificationResult
    ) -> None:
        record = self.collaborators.conservation.lookup(context)
        if record is None:
            result.info.append(INFO_PHYLOCSF_TOO_SHORT)
            return
        result.info.append(format_info("ANN_ORF", record.corresponding_orf_score))
        result.info.append(format_info("MAX_ORF", record.max_score))
        if record.corresponding_orf_score < 0:
            if record.max_score > 0:
                result.flags.append(FLAG_PHYLOCSF_UNLIKELY_ORF)
            else:
                result.flags.append(FLAG_PHYLOCSF_WEAK)

    # -------------------------------------------------------------------------
    # Intronic checks
    # -------------------------------------------------------------------------

    def _check_intron(
        self,
        context: VariantTranscriptContext,
        five_prime_utr: bool,
        three_prime_utr: bool,
        result: ClassificationResult,
    ) -> None:
        if structure.has_intron_annotation_errors(context):
            result.filters.append(FILTER_EXON_INTRON_UNDEF)
            return

        size = structure.intron_size(context)
        result.info.append(format_info("INTRON_SIZE", size))
        if size < self.config.min_intron_size:
            result.filters.append(FILTER_SMALL_INTRON)

        introns = self.collaborators.intron_cache
        if introns is not None and structure.has_non_canonical_intron_motif(context, introns):
            result.filters.append(FILTER_NON_CAN_SPLICE)

        if context.has_consequence(SPLICE_ACCEPTOR_VARIANT, SPLICE_DONOR_VARIANT):
            if five_prime_utr:
                result.filters.append(FILTER_5UTR_SPLICE)
            if three_prime_utr:
                result.filters.append(FILTER_3UTR_SPLICE)

        if context.has_consequence(SPLICE_ACCEPTOR_VARIANT) and self.collaborators.sequences is not None:
            if structure.is_nagnag_site(context, self.collaborators.sequences):
                result.flags.append(FLAG_NAGNAG_SITE)
