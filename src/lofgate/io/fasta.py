"""FASTA access for reference and ancestral sequences.

This module provides indexed random access to FASTA files through
pyfaidx. GenomeAccessor serves the reference genome to the structural
checks (intron motifs, NAGNAG context); FastaAncestralAlleleCheck reads
an ancestral-sequence FASTA such as ``human_ancestor.fa.gz``.

Coordinates are 1-based and inclusive, as in VEP.

Example:
    >>> from lofgate.io.fasta import GenomeAccessor
    >>> genome = GenomeAccessor("GRCh38.fa")
    >>> genome.fetch("1", 1000, 1008)
    'ACGTAGCAG'
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any

import pyfaidx

from lofgate.core.models import TranscriptInfo, VariantTranscriptContext
from lofgate.utils.sequences import reverse_complement

logger = logging.getLogger(__name__)


# =============================================================================
# Main Accessor Class
# =============================================================================


class GenomeAccessor:
    """Indexed FASTA access using pyfaidx.

    Attributes:
        path: Path to the FASTA file.

    Example:
        >>> with GenomeAccessor("genome.fa") as genome:
        ...     seq = genome.fetch("chr1", 1000, 2000)
    """

    def __init__(self, fasta_path: Path | str) -> None:
        """Initialize the genome accessor.

        Args:
            fasta_path: Path to FASTA file. Will create .fai index if needed.

        Raises:
            FileNotFoundError: If FASTA file doesn't exist.
        """
        self.path = Path(fasta_path)
        if not self.path.exists():
            raise FileNotFoundError(f"FASTA file not found: {self.path}")

        self._fasta: pyfaidx.Fasta | None = None
        self._scaffold_lengths: dict[str, int] = {}
        self._open()

    def _open(self) -> None:
        """Open the FASTA file with pyfaidx."""
        self._fasta = pyfaidx.Fasta(
            str(self.path),
            sequence_always_upper=True,
            read_ahead=10000,
            rebuild=False,
        )
        self._scaffold_lengths = {seqid: len(self._fasta[seqid]) for seqid in self._fasta.keys()}
        logger.info(f"Opened FASTA: {self.path.name}, {len(self._scaffold_lengths)} scaffolds")

    def __enter__(self) -> GenomeAccessor:
        """Context manager entry."""
        return self

    def __exit__(self, *args: Any) -> None:
        """Context manager exit."""
        self.close()

    def __contains__(self, seqid: str) -> bool:
        return seqid in self._scaffold_lengths

    def close(self) -> None:
        """Close the FASTA file."""
        if self._fasta is not None:
            self._fasta.close()
            self._fasta = None

    def fetch(self, seqid: str, start: int, end: int) -> str:
        """Forward-strand sequence for a 1-based inclusive region.

        The region is clipped to the scaffold, so windows that run off a
        scaffold end come back shorter than requested.

        Raises:
            KeyError: If seqid is not in the FASTA.
        """
        if self._fasta is None:
            raise RuntimeError("FASTA file not opened")
        if seqid not in self._scaffold_lengths:
            raise KeyError(f"Unknown scaffold: {seqid}")

        start = max(1, start)
        end = min(self._scaffold_lengths[seqid], end)
        if start > end:
            return ""
        # pyfaidx slices are 0-based half-open
        return str(self._fasta[seqid][start - 1 : end])

    def intron_sequence(self, transcript: TranscriptInfo, intron_index: int) -> str:
        """Sequence of an intron on the transcript strand."""
        intron = transcript.introns[intron_index]
        sequence = self.fetch(transcript.seqid, intron.start, intron.end)
        if transcript.strand == -1:
            sequence = reverse_complement(sequence)
        return sequence


# =============================================================================
# Ancestral Allele
# =============================================================================


class FastaAncestralAlleleCheck:
    """Compare the alternate allele with an ancestral sequence FASTA.

    Scaffolds absent from the ancestral FASTA never match.
    """

    def __init__(self, accessor: GenomeAccessor) -> None:
        self.accessor = accessor

    @classmethod
    def open(cls, fasta_path: Path | str) -> "FastaAncestralAlleleCheck":
        return cls(GenomeAccessor(fasta_path))

    def close(self) -> None:
        self.accessor.close()

    def ancestral_allele(self, context: VariantTranscriptContext) -> str:
        if context.seqid not in self.accessor:
            logger.debug(f"No ancestral sequence for scaffold {context.seqid}")
            return ""
        return self.accessor.fetch(context.seqid, context.start, context.end).upper()

    def matches_ancestral(self, context: VariantTranscriptContext) -> bool:
        return self.ancestral_allele(context) == context.allele.upper()
