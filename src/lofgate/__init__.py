"""lofgate: Loss-of-function confidence calls for variant annotations.

lofgate assigns a high- or low-confidence loss-of-function label to
variant-transcript annotations, explaining each decision through filter,
flag and info tags. Splice evidence is scored with kernel (SVM) models.

Example:
    >>> import lofgate
    >>> lofgate.__version__
    '0.1.0'

Modules:
    core: Kernel scorer, structural checks and the classification pipeline
    io: Reference, GERP and conservation lookups; record readers and writers
    utils: Logging and sequence helpers
"""

__version__ = "0.1.0"

from lofgate.config import LofteeConfig
from lofgate.core.classify import Collaborators, LofClassifier
from lofgate.core.models import ClassificationResult, Confidence, VariantTranscriptContext

__all__ = [
    "__version__",
    "ClassificationResult",
    "Collaborators",
    "Confidence",
    "LofClassifier",
    "LofteeConfig",
    "VariantTranscriptContext",
]
