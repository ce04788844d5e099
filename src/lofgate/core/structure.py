"""Structural and positional predicates for LoF filtering.

These checks look at where a variant falls in its transcript: UTR
membership, exon/intron integrity, neighbouring intron size and
splice motifs, NAGNAG acceptor context, and the coding distances
(to the stop codon, last exon length) used by the 50 bp rule.

Intron sequences are fetched through a SequenceSource and memoized per
transcript in an IntronSequenceCache.
"""

from __future__ import annotations

import logging
import re
import threading
from typing import Iterator, Protocol

from lofgate.core.models import (
    DOWNSTREAM_GENE_VARIANT,
    UPSTREAM_GENE_VARIANT,
    TranscriptInfo,
    VariantTranscriptContext,
)
from lofgate.utils.sequences import reverse_complement

logger = logging.getLogger(__name__)

# =============================================================================
# Constants
# =============================================================================

CANONICAL_DONOR = "GT"
CANONICAL_ACCEPTOR = "AG"

NAGNAG_FLANK = 4
NAGNAG_WINDOW = 2 * NAGNAG_FLANK + 1
NAGNAG_PATTERN = re.compile(r"AG.AG")

# Returned when no exon holds the stop codon
NO_LAST_EXON_LENGTH = -1000


# =============================================================================
# Sequence Access
# =============================================================================


class SequenceSource(Protocol):
    """Reference sequence lookups needed by the structural checks."""

    def intron_sequence(self, transcript: TranscriptInfo, intron_index: int) -> str:
        """Sequence of an intron on the transcript strand (0-based index)."""
        ...

    def fetch(self, seqid: str, start: int, end: int) -> str:
        """Forward-strand sequence for a 1-based inclusive region."""
        ...


class IntronSequenceCache:
    """Per-transcript intron sequences, filled lazily and never evicted.

    Thread-safe; concurrent callers always see the first sequence stored.
    """

    def __init__(self, source: SequenceSource) -> None:
        self.source = source
        self._sequences: dict[tuple[str, int], str] = {}
        self._lock = threading.Lock()

    def __len__(self) -> int:
        return len(self._sequences)

    def get(self, transcript: TranscriptInfo, intron_index: int) -> str:
        key = (transcript.transcript_id, intron_index)
        with self._lock:
            if key in self._sequences:
                return self._sequences[key]
        sequence = self.source.intron_sequence(transcript, intron_index).upper()
        with self._lock:
            return self._sequences.setdefault(key, sequence)

    def motif_start_non_canonical(self, transcript: TranscriptInfo, intron_index: int) -> bool:
        """True if the intron does not start with GT."""
        sequence = self.get(transcript, intron_index)
        if sequence[:2] != CANONICAL_DONOR:
            logger.debug(f"{transcript.transcript_id} intron {intron_index + 1} starts with {sequence[:2]}")
            return True
        return False

    def motif_end_non_canonical(self, transcript: TranscriptInfo, intron_index: int) -> bool:
        """True if the intron does not end with AG."""
        return self.get(transcript, intron_index)[-2:] != CANONICAL_ACCEPTOR


# =============================================================================
# Consequence and Region Predicates
# =============================================================================


def is_genic(context: VariantTranscriptContext) -> bool:
    """Variant is not purely upstream or downstream of the gene."""
    return not context.has_consequence(UPSTREAM_GENE_VARIANT, DOWNSTREAM_GENE_VARIANT)


def is_five_prime_utr(context: VariantTranscriptContext) -> bool:
    """Variant lies entirely 5' of the coding region (intronic UTR included)."""
    tx = context.transcript
    if tx.coding_region_start is None or tx.coding_region_end is None:
        return False
    if tx.strand == 1:
        return context.end < tx.coding_region_start
    return context.start > tx.coding_region_end


def is_three_prime_utr(context: VariantTranscriptContext) -> bool:
    """Variant lies entirely 3' of the coding region (intronic UTR included)."""
    tx = context.transcript
    if tx.coding_region_start is None or tx.coding_region_end is None:
        return False
    if tx.strand == 1:
        return context.start > tx.coding_region_end
    return context.end < tx.coding_region_start


# =============================================================================
# Exonic Checks
# =============================================================================


def cds_percentile(context: VariantTranscriptContext) -> float:
    """Relative CDS position of the variant end.

    Raises:
        ValueError: If the variant has no CDS end or the transcript no CDS.
    """
    if context.cds_end is None:
        raise ValueError(f"{context.variant_id or context.start}: no CDS position")
    if context.transcript.cds_length <= 0:
        raise ValueError(f"{context.transcript.transcript_id}: CDS length is zero")
    return context.cds_end / context.transcript.cds_length


def last_exon_coding_length(context: VariantTranscriptContext) -> int:
    """Coding length of the exon holding the stop codon.

    Exons are scanned from the 3' end back to the variant's exon.

    Returns:
        Coding bases of that exon, or NO_LAST_EXON_LENGTH if none holds it.
    """
    tx = context.transcript
    exon_idx = context.exon_number.index - 1
    if tx.strand == 1:
        stop_codon_pos = tx.coding_region_end
    else:
        stop_codon_pos = tx.coding_region_start
    if stop_codon_pos is None:
        return NO_LAST_EXON_LENGTH

    last = min(context.exon_number.total, len(tx.exons)) - 1
    for i in range(last, exon_idx - 1, -1):
        exon = tx.exons[i]
        if tx.strand == 1:
            if exon.start > stop_codon_pos:
                continue
            if exon.end >= stop_codon_pos:
                return stop_codon_pos - exon.start
        else:
            if exon.end < stop_codon_pos:
                continue
            if exon.start <= stop_codon_pos:
                return exon.end - stop_codon_pos
    return NO_LAST_EXON_LENGTH


def coding_positions(context: VariantTranscriptContext, lof_position: int) -> Iterator[int]:
    """Coding bases from ``lof_position`` to the stop codon, in transcript order.

    The LoF position itself is excluded. Bases outside the coding region
    are skipped.
    """
    tx = context.transcript
    if tx.coding_region_start is None or tx.coding_region_end is None:
        return
    for exon in tx.exons:
        lo = max(exon.start, tx.coding_region_start)
        hi = min(exon.end, tx.coding_region_end)
        if lo > hi:
            continue
        if tx.strand == 1:
            yield from range(max(lo, lof_position + 1), hi + 1)
        else:
            yield from range(min(hi, lof_position - 1), lo - 1, -1)


def coding_distance_to_stop(context: VariantTranscriptContext, lof_position: int) -> int:
    """Number of coding bases between ``lof_position`` and the stop codon."""
    return sum(1 for _ in coding_positions(context, lof_position))


def has_exon_annotation_errors(context: VariantTranscriptContext) -> bool:
    """Exon position or exon structure is missing or inconsistent.

    The transcript must list every exon in the position total and the
    introns between them.
    """
    if context.exon_number is None:
        return True
    total = context.exon_number.total
    tx = context.transcript
    return len(tx.exons) != total or len(tx.introns) != total - 1


def is_single_exon(context: VariantTranscriptContext) -> bool:
    return context.exon_number is not None and context.exon_number.total == 1


def is_incomplete_cds(context: VariantTranscriptContext) -> bool:
    """Transcript lacks a complete CDS start or end."""
    return context.transcript.cds_start_nf or context.transcript.cds_end_nf


def is_small_intron(transcript: TranscriptInfo, intron_index: int, min_intron_size: int) -> bool:
    return transcript.introns[intron_index].length < min_intron_size


def has_non_canonical_surrounding_introns(
    context: VariantTranscriptContext,
    min_intron_size: int,
    introns: IntronSequenceCache | None,
) -> bool:
    """Check the introns flanking the variant's exon.

    First exon: next intron only. Last exon: previous intron only.
    Internal exons: both. An intron fails if it is smaller than
    ``min_intron_size`` or lacks GT (next intron) / AG (previous intron).
    Motifs are skipped when no sequence cache is available.
    """
    tx = context.transcript
    exon_idx = context.exon_number.index - 1
    total = context.exon_number.total

    def next_intron_bad() -> bool:
        return is_small_intron(tx, exon_idx, min_intron_size) or (
            introns is not None and introns.motif_start_non_canonical(tx, exon_idx)
        )

    def previous_intron_bad() -> bool:
        return is_small_intron(tx, exon_idx - 1, min_intron_size) or (
            introns is not None and introns.motif_end_non_canonical(tx, exon_idx - 1)
        )

    if exon_idx == 0:
        return next_intron_bad()
    if exon_idx == total - 1:
        return previous_intron_bad()
    return (
        is_small_intron(tx, exon_idx, min_intron_size)
        or is_small_intron(tx, exon_idx - 1, min_intron_size)
        or (introns is not None and introns.motif_start_non_canonical(tx, exon_idx))
        or (introns is not None and introns.motif_end_non_canonical(tx, exon_idx - 1))
    )


# =============================================================================
# Intronic Checks
# =============================================================================


def has_intron_annotation_errors(context: VariantTranscriptContext) -> bool:
    """Intron position or intron structure is missing or inconsistent."""
    if context.intron_number is None:
        return True
    return len(context.transcript.introns) != context.intron_number.total


def intron_size(context: VariantTranscriptContext) -> int:
    return context.transcript.introns[context.intron_number.index - 1].length


def has_non_canonical_intron_motif(
    context: VariantTranscriptContext,
    introns: IntronSequenceCache,
) -> bool:
    """The variant's intron does not follow the GT...AG rule."""
    idx = context.intron_number.index - 1
    tx = context.transcript
    return introns.motif_start_non_canonical(tx, idx) or introns.motif_end_non_canonical(tx, idx)


def is_nagnag_site(context: VariantTranscriptContext, source: SequenceSource) -> bool:
    """Acceptor context around the variant matches NAGNAG.

    Only single-base variants qualify, i.e. the +/-4 bp window must be
    exactly 9 bases.
    """
    sequence = source.fetch(
        context.seqid, context.start - NAGNAG_FLANK, context.end + NAGNAG_FLANK
    ).upper()
    if context.transcript.strand == -1:
        sequence = reverse_complement(sequence)
    if len(sequence) != NAGNAG_WINDOW:
        return False
    return NAGNAG_PATTERN.search(sequence) is not None
