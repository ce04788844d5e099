"""Sequence manipulation utilities.

Example:
    >>> from lofgate.utils.sequences import reverse_complement
    >>> reverse_complement("ATGCATGC")
    'GCATGCAT'
"""

# =============================================================================
# Constants
# =============================================================================

# IUPAC-aware complement, case preserved
COMPLEMENT_TABLE = str.maketrans(
    "ACGTacgtNnRYSWKMBDHVryswkmbdhv",
    "TGCAtgcaNnYRSWMKVHDByrswmkvhdb",
)


# =============================================================================
# Complement and Reverse Complement
# =============================================================================


def complement(sequence: str) -> str:
    """Get the complement of a DNA sequence.

    Args:
        sequence: DNA sequence string.

    Returns:
        Complement sequence.
    """
    return sequence.translate(COMPLEMENT_TABLE)


def reverse_complement(sequence: str) -> str:
    """Get the reverse complement of a DNA sequence.

    Args:
        sequence: DNA sequence string.

    Returns:
        Reverse complement sequence.
    """
    return complement(sequence)[::-1]


# =============================================================================
# Allele Strings
# =============================================================================


def is_single_base_substitution(allele_string: str) -> bool:
    """Check a VEP allele string such as ``"C/T"`` describes an SNV.

    Indels (``-``) and anything that is not exactly ``X/Y`` are rejected.
    """
    return "-" not in allele_string and len(allele_string) == 3

