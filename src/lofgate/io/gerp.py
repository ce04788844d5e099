"""GERP-weighted truncation distance.

GERP RS scores are read from a bgzipped, tabix-indexed text file with
``chrom pos score`` columns (1-based positions) through pysam. The
weighted distance of a truncation is the sum of GERP scores over the
coding bases between the LoF position and the stop codon; the raw
distance is the number of those bases.

Example:
    >>> from lofgate.io.gerp import GerpWeightedDistanceCalculator, TabixGerpScores
    >>> with TabixGerpScores("GERP_scores.final.sorted.txt.gz") as scores:
    ...     calc = GerpWeightedDistanceCalculator(scores)
    ...     dist = calc.distance(context, lof_position)
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any

import pysam

from lofgate.core.models import GerpDistance, VariantTranscriptContext
from lofgate.core.structure import coding_positions

logger = logging.getLogger(__name__)

# GERP file columns
COL_CHROM = 0
COL_POS = 1
COL_SCORE = 2


class TabixGerpScores:
    """Per-base GERP scores from a tabix-indexed file.

    Attributes:
        path: Path to the bgzipped score file.
    """

    def __init__(self, gerp_path: Path | str) -> None:
        """Open the score file.

        Raises:
            FileNotFoundError: If the file doesn't exist.
            ValueError: If the tabix index is missing.
        """
        self.path = Path(gerp_path)
        if not self.path.exists():
            raise FileNotFoundError(f"GERP file not found: {self.path}")
        if not Path(str(self.path) + ".tbi").exists():
            raise ValueError(f"Tabix index not found. Please run: tabix -s1 -b2 -e2 {self.path}")

        self._tabix: pysam.TabixFile | None = None
        self._open()

    def _open(self) -> None:
        self._tabix = pysam.TabixFile(str(self.path))
        logger.info(f"Opened GERP scores: {self.path.name}")

    def __enter__(self) -> TabixGerpScores:
        return self

    def __exit__(self, *args: Any) -> None:
        self.close()

    def close(self) -> None:
        if self._tabix is not None:
            self._tabix.close()
            self._tabix = None

    def scores(self, seqid: str, start: int, end: int) -> dict[int, float]:
        """GERP score by position for a 1-based inclusive region."""
        if self._tabix is None:
            raise RuntimeError("GERP file not open")
        if seqid not in self._tabix.contigs:
            return {}
        result = {}
        # pysam regions are 0-based half-open
        for line in self._tabix.fetch(seqid, start - 1, end):
            fields = line.split("\t")
            result[int(fields[COL_POS])] = float(fields[COL_SCORE])
        return result


class GerpWeightedDistanceCalculator:
    """Distance from a truncation to the stop codon, weighted by GERP.

    Positions without a GERP score contribute 0 to the weighted distance.
    """

    def __init__(self, gerp_scores: TabixGerpScores) -> None:
        self.gerp_scores = gerp_scores

    def distance(self, context: VariantTranscriptContext, lof_position: int) -> GerpDistance:
        positions = list(coding_positions(context, lof_position))
        if not positions:
            return GerpDistance(weighted_distance=0.0, raw_distance=0)

        seqid = context.transcript.seqid or context.seqid
        scores = self.gerp_scores.scores(seqid, min(positions), max(positions))
        weighted = sum(scores.get(pos, 0.0) for pos in positions)
        return GerpDistance(weighted_distance=weighted, raw_distance=len(positions))
