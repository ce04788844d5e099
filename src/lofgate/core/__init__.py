"""Core classification logic for lofgate.

This module contains the kernel scorer and the LoF pipeline:

- SVM decision function and probability calibration
- Exon/intron structure predicates
- De novo donor scoring
- The classification pipeline

Example:
    >>> from lofgate.core.svm import KernelScorer, load_kernel_model
    >>> from lofgate.core.classify import LofClassifier
"""

from lofgate.core.classify import Collaborators, LofClassifier
from lofgate.core.models import ClassificationResult, Confidence, VariantTranscriptContext
from lofgate.core.svm import (
    KernelModel,
    KernelScorer,
    ScoreCache,
    evaluate_margin,
    load_kernel_model,
    to_probability,
)

__all__: list[str] = [
    # Pipeline
    "ClassificationResult",
    "Collaborators",
    "Confidence",
    "LofClassifier",
    "VariantTranscriptContext",
    # Kernel scorer
    "KernelModel",
    "KernelScorer",
    "ScoreCache",
    "evaluate_margin",
    "load_kernel_model",
    "to_probability",
]
