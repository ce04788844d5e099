"""Utility functions for lofgate.

- Logging configuration
- Sequence manipulation

Example:
    >>> from lofgate.utils.sequences import reverse_complement
    >>> reverse_complement("AGGT")
    'ACCT'
"""

from lofgate.utils.sequences import complement, is_single_base_substitution, reverse_complement

__all__ = [
    "complement",
    "is_single_base_substitution",
    "reverse_complement",
]
