"""Input/output handlers for lofgate.

- FASTA: reference and ancestral sequences (pyfaidx)
- GERP: tabix-indexed per-base scores (pysam)
- PhyloCSF: per-exon conservation (SQLite)
- Records: JSON-lines contexts in, TSV results out

Example:
    >>> from lofgate.io import GenomeAccessor, read_contexts
    >>> genome = GenomeAccessor("GRCh38.fa")
    >>> contexts = list(read_contexts("contexts.jsonl"))
"""

from lofgate.io.conservation import PhyloCSFDatabase
from lofgate.io.fasta import FastaAncestralAlleleCheck, GenomeAccessor
from lofgate.io.gerp import GerpWeightedDistanceCalculator, TabixGerpScores
from lofgate.io.records import ResultWriter, format_vep_info, read_contexts

__all__: list[str] = [
    "FastaAncestralAlleleCheck",
    "GenomeAccessor",
    "GerpWeightedDistanceCalculator",
    "PhyloCSFDatabase",
    "ResultWriter",
    "TabixGerpScores",
    "format_vep_info",
    "read_contexts",
]
