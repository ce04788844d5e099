"""Data structures for LoF classification.

This module defines the per-evaluation input (VariantTranscriptContext),
the tagged result structs returned by evidence collaborators, and the
ClassificationResult produced by the pipeline.

Coordinates are 1-based and inclusive (VEP convention).

Example:
    >>> from lofgate.core.models import Feature, TranscriptInfo, VariantTranscriptContext
    >>> tx = TranscriptInfo(
    ...     transcript_id="ENST01", biotype="protein_coding", strand=1, seqid="1",
    ...     coding_region_start=1000, coding_region_end=5000,
    ...     exons=[Feature(900, 1200), Feature(4800, 5200)],
    ...     introns=[Feature(1201, 4799)], cds_length=603,
    ... )
"""

from __future__ import annotations

from enum import Enum
from typing import Any, Mapping

import attrs

# =============================================================================
# Constants
# =============================================================================

PROTEIN_CODING = "protein_coding"

# SO consequence terms used by the pipeline
UPSTREAM_GENE_VARIANT = "upstream_gene_variant"
DOWNSTREAM_GENE_VARIANT = "downstream_gene_variant"
STOP_GAINED = "stop_gained"
FRAMESHIFT_VARIANT = "frameshift_variant"
SPLICE_ACCEPTOR_VARIANT = "splice_acceptor_variant"
SPLICE_DONOR_VARIANT = "splice_donor_variant"


# =============================================================================
# Confidence
# =============================================================================


class InvalidTransitionError(ValueError):
    """Raised on a confidence transition the state machine forbids."""

    pass


class Confidence(Enum):
    """LoF confidence levels.

    UNSET -> HC is the only way up; HC -> LC is the only way down.
    """

    UNSET = ""
    LC = "LC"
    HC = "HC"

    def transition(self, target: "Confidence") -> "Confidence":
        """Return ``target`` if the move from this state is allowed.

        Raises:
            InvalidTransitionError: For any other move.
        """
        if target not in _ALLOWED_TRANSITIONS[self]:
            raise InvalidTransitionError(f"Cannot move confidence from {self.name} to {target.name}")
        return target


_ALLOWED_TRANSITIONS: dict[Confidence, frozenset[Confidence]] = {
    Confidence.UNSET: frozenset({Confidence.HC}),
    Confidence.HC: frozenset({Confidence.LC}),
    Confidence.LC: frozenset(),
}


# =============================================================================
# Transcript and Variant Context
# =============================================================================


@attrs.define(frozen=True, slots=True)
class Feature:
    """An exon or intron span (1-based, inclusive)."""

    start: int
    end: int

    @property
    def length(self) -> int:
        """Length in base pairs."""
        return self.end - self.start + 1


@attrs.define(frozen=True, slots=True)
class FeaturePosition:
    """Exon or intron number as reported by VEP (``index/total``, 1-based)."""

    index: int
    total: int

    @classmethod
    def parse(cls, value: str) -> "FeaturePosition":
        """Parse a VEP ``"3/12"`` string."""
        index, total = value.split("/")
        return cls(int(index), int(total))

    def __str__(self) -> str:
        return f"{self.index}/{self.total}"


@attrs.define(frozen=True, slots=True)
class TranscriptInfo:
    """Transcript structure needed by the structural checks.

    Attributes:
        transcript_id: Stable transcript identifier.
        biotype: Transcript biotype.
        strand: 1 or -1.
        seqid: Chromosome name.
        coding_region_start: Genomic start of the CDS (None if non-coding).
        coding_region_end: Genomic end of the CDS (None if non-coding).
        exons: Exons in transcript order.
        introns: Introns in transcript order.
        cds_length: Length of the translateable sequence.
        cds_start_nf: CDS start not found (incomplete 5').
        cds_end_nf: CDS end not found (incomplete 3').
    """

    transcript_id: str
    biotype: str
    strand: int
    seqid: str = ""
    coding_region_start: int | None = None
    coding_region_end: int | None = None
    exons: tuple[Feature, ...] = attrs.field(default=(), converter=tuple)
    introns: tuple[Feature, ...] = attrs.field(default=(), converter=tuple)
    cds_length: int = 0
    cds_start_nf: bool = False
    cds_end_nf: bool = False

    @property
    def is_protein_coding(self) -> bool:
        return self.biotype == PROTEIN_CODING


@attrs.define(frozen=True, slots=True)
class VariantTranscriptContext:
    """One variant allele annotated against one transcript.

    Attributes:
        transcript: Transcript structure.
        seqid: Chromosome of the variant.
        start: Variant start (genomic).
        end: Variant end (genomic).
        allele_string: VEP allele string, e.g. "C/T".
        allele: Alternate allele sequence of this annotation.
        consequences: SO consequence terms.
        exon_number: Exon position, if exonic.
        intron_number: Intron position, if intronic.
        cds_start: CDS coordinate of the variant start, if coding.
        cds_end: CDS coordinate of the variant end, if coding.
        variant_id: Label for output.
        handles: Opaque objects passed through to collaborators.
    """

    transcript: TranscriptInfo
    seqid: str
    start: int
    end: int
    allele_string: str
    allele: str
    consequences: frozenset[str] = attrs.field(factory=frozenset, converter=frozenset)
    exon_number: FeaturePosition | None = None
    intron_number: FeaturePosition | None = None
    cds_start: int | None = None
    cds_end: int | None = None
    variant_id: str = ""
    handles: Mapping[str, Any] = attrs.field(factory=dict, eq=False)

    def has_consequence(self, *terms: str) -> bool:
        """Check whether any of ``terms`` is among the consequences."""
        return any(term in self.consequences for term in terms)


# =============================================================================
# Collaborator Results
# =============================================================================


@attrs.define(frozen=True, slots=True)
class SpliceInfo:
    """Annotated splice site affected by a variant.

    Attributes:
        type: Site type tag, e.g. "DONOR" or "ACCEPTOR".
        extra: Collaborator-specific details (site position, scores).
    """

    type: str
    extra: Mapping[str, Any] = attrs.Factory(dict)


@attrs.define(frozen=True, slots=True)
class SpliceDisruptionResult:
    """Outcome of the splice-disruption predictor."""

    is_disrupting: bool = False
    features: Mapping[str, float] | None = None
    splice_info: SpliceInfo | None = None


@attrs.define(frozen=True, slots=True)
class RescueInfo:
    """Whether a nearby alternative splice site rescues a disrupted site."""

    rescued: bool = False
    rescue_tag: str = ""
    lof_position: int = -1


@attrs.define(frozen=True, slots=True)
class AlternativeSpliceResult:
    """Outcome of the alternative splice-site scan."""

    features: Mapping[str, Any] | None = None
    rescue: RescueInfo = attrs.Factory(RescueInfo)


@attrs.define(frozen=True, slots=True)
class DeNovoDonorResult:
    """Outcome of the de novo donor predictor."""

    probability: float = 0.0
    features: Mapping[str, float] | None = None
    is_lof: bool = False
    lof_position: int = -1


@attrs.define(frozen=True, slots=True)
class GerpDistance:
    """Distance from a truncation to the stop codon."""

    weighted_distance: float
    raw_distance: int


@attrs.define(frozen=True, slots=True)
class ConservationRecord:
    """PhyloCSF scores for one exon of a transcript."""

    corresponding_orf_score: float
    max_score: float


# =============================================================================
# Classification Result
# =============================================================================


@attrs.define(slots=True)
class ClassificationResult:
    """LoF call with the tags explaining it.

    Attributes:
        confidence: Final confidence, or None when it is omitted.
        filters: Reasons the call is not HC, in insertion order.
        flags: Warning flags, in insertion order.
        info: ``key:value`` details, in insertion order.
        skipped: True when the transcript was gated out entirely.
    """

    confidence: Confidence | None = None
    filters: list[str] = attrs.Factory(list)
    flags: list[str] = attrs.Factory(list)
    info: list[str] = attrs.Factory(list)
    skipped: bool = False

    def to_record(self) -> dict[str, str]:
        """Render as the LoF output fields.

        ``LoF`` is absent when confidence is omitted; a skipped result
        renders as an empty record.
        """
        if self.skipped:
            return {}
        record = {}
        if self.confidence is not None:
            record["LoF"] = self.confidence.value
        record["LoF_filter"] = ",".join(self.filters)
        record["LoF_flags"] = ",".join(self.flags)
        record["LoF_info"] = ",".join(self.info)
        return record
