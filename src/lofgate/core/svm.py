"""Kernel-machine (SVM) decision function evaluation.

This module loads trained support-vector models from plain-text tables and
evaluates their decision function for named feature maps. Margins are
memoized per model in a ScoreCache, because splice collaborators tend to
score the same feature vector from several pipeline branches.

Model directory layout:
    sv.txt      Header row of feature names plus a trailing coefficient
                column, then one support vector per row.
    center.txt  ``name value`` per line, subtracted before scaling.
    scale.txt   ``name value`` per line, divisor after centering.
    misc.txt    ``name value`` per line; needs gamma, rho, probA, probB.

Example:
    >>> from lofgate.core.svm import KernelScorer, ScoreCache, load_kernel_model
    >>> model = load_kernel_model("splice_data/de_novo_donor_SVM")
    >>> scorer = KernelScorer(model, kernel="radial", cache=ScoreCache())
    >>> p = scorer.probability({"mes_alt": 8.1, "mes_ref": 2.4})
"""

from __future__ import annotations

import logging
import math
import threading
from pathlib import Path
from typing import Mapping

import attrs
import numpy as np

logger = logging.getLogger(__name__)

# =============================================================================
# Constants
# =============================================================================

SUPPORT_VECTOR_FILE = "sv.txt"
CENTER_FILE = "center.txt"
SCALE_FILE = "scale.txt"
MISC_FILE = "misc.txt"

REQUIRED_MISC_KEYS = ("gamma", "rho", "probA", "probB")

KERNEL_LINEAR = "linear"
KERNEL_RADIAL = "radial"


# =============================================================================
# Exceptions
# =============================================================================


class KernelModelError(Exception):
    """Base class for kernel model errors."""

    pass


class ModelLoadError(KernelModelError):
    """Raised when a model file is missing or malformed."""

    pass


class InvalidModelError(KernelModelError):
    """Raised when model data violates an invariant (e.g. zero scale)."""

    pass


class MissingFeatureError(KernelModelError, KeyError):
    """Raised when a feature map lacks a feature the model expects."""

    def __init__(self, feature: str, model_name: str = "") -> None:
        self.feature = feature
        self.model_name = model_name
        super().__init__(f"Feature '{feature}' required by model '{model_name}' is missing")

    def __str__(self) -> str:
        return self.args[0]


# =============================================================================
# Model
# =============================================================================


@attrs.define(frozen=True, eq=False)
class KernelModel:
    """A trained kernel model, immutable after construction.

    Equality and hashing are by identity, so a model instance is its own
    cache identity.

    Attributes:
        features: Feature names in support-vector column order.
        support_vectors: Matrix of shape (n_sv, n_features), already scaled.
        alphas: Coefficient of each support vector.
        center: Per-feature centering values.
        scale: Per-feature scaling divisors (non-zero).
        misc: Hyperparameters (gamma, rho, probA, probB).
        name: Label for logging.
    """

    features: tuple[str, ...]
    support_vectors: np.ndarray
    alphas: np.ndarray
    center: Mapping[str, float]
    scale: Mapping[str, float]
    misc: Mapping[str, float]
    name: str = "svm"

    def __attrs_post_init__(self) -> None:
        n_sv, n_features = self.support_vectors.shape
        if n_features != len(self.features):
            raise InvalidModelError(
                f"Model '{self.name}': {n_features} support vector columns "
                f"for {len(self.features)} features"
            )
        if self.alphas.shape != (n_sv,):
            raise InvalidModelError(
                f"Model '{self.name}': expected {n_sv} coefficients, got {self.alphas.shape[0]}"
            )
        for feature in self.features:
            if feature not in self.center:
                raise InvalidModelError(f"Model '{self.name}': no center value for '{feature}'")
            if feature not in self.scale:
                raise InvalidModelError(f"Model '{self.name}': no scale value for '{feature}'")
            if self.scale[feature] == 0:
                raise InvalidModelError(f"Model '{self.name}': scale for '{feature}' is zero")
        missing = [key for key in REQUIRED_MISC_KEYS if key not in self.misc]
        if missing:
            raise InvalidModelError(
                f"Model '{self.name}': missing parameters {', '.join(missing)}"
            )

    @property
    def n_support_vectors(self) -> int:
        """Number of support vectors."""
        return int(self.support_vectors.shape[0])

    @property
    def center_vector(self) -> np.ndarray:
        """Center values aligned to ``features``."""
        return np.array([self.center[f] for f in self.features], dtype=float)

    @property
    def scale_vector(self) -> np.ndarray:
        """Scale values aligned to ``features``."""
        return np.array([self.scale[f] for f in self.features], dtype=float)


# =============================================================================
# Loading
# =============================================================================


def _read_rows(path: Path) -> list[list[str]]:
    if not path.exists():
        raise ModelLoadError(f"Model file not found: {path}")
    with open(path) as f:
        return [line.split() for line in f if line.strip()]


def _read_table(path: Path) -> dict[str, float]:
    """Read a two-column ``name value`` table."""
    table = {}
    for lineno, row in enumerate(_read_rows(path), start=1):
        if len(row) != 2:
            raise ModelLoadError(f"{path}:{lineno}: expected 2 columns, got {len(row)}")
        try:
            table[row[0]] = float(row[1])
        except ValueError:
            raise ModelLoadError(f"{path}:{lineno}: non-numeric value '{row[1]}'") from None
    return table


def load_kernel_model(model_dir: Path | str) -> KernelModel:
    """Load a kernel model from its directory of tables.

    Args:
        model_dir: Directory holding sv.txt, center.txt, scale.txt, misc.txt.

    Returns:
        Loaded KernelModel.

    Raises:
        ModelLoadError: If a file is missing or malformed.
        InvalidModelError: If the data violates a model invariant.
    """
    model_dir = Path(model_dir)
    if not model_dir.is_dir():
        raise ModelLoadError(f"Model directory not found: {model_dir}")

    rows = _read_rows(model_dir / SUPPORT_VECTOR_FILE)
    if len(rows) < 2:
        raise ModelLoadError(f"{model_dir / SUPPORT_VECTOR_FILE}: no support vectors")

    header = rows[0]
    if len(header) < 2:
        raise ModelLoadError(f"{model_dir / SUPPORT_VECTOR_FILE}: header needs features and a coefficient column")

    values = []
    for lineno, row in enumerate(rows[1:], start=2):
        if len(row) != len(header):
            raise ModelLoadError(
                f"{model_dir / SUPPORT_VECTOR_FILE}:{lineno}: "
                f"row has {len(row)} columns, header has {len(header)}"
            )
        try:
            values.append([float(v) for v in row])
        except ValueError:
            raise ModelLoadError(
                f"{model_dir / SUPPORT_VECTOR_FILE}:{lineno}: non-numeric value"
            ) from None

    matrix = np.array(values, dtype=float)
    misc = _read_table(model_dir / MISC_FILE)
    missing = [key for key in REQUIRED_MISC_KEYS if key not in misc]
    if missing:
        raise ModelLoadError(f"{model_dir / MISC_FILE}: missing {', '.join(missing)}")

    model = KernelModel(
        features=tuple(header[:-1]),
        support_vectors=matrix[:, :-1],
        alphas=matrix[:, -1],
        center=_read_table(model_dir / CENTER_FILE),
        scale=_read_table(model_dir / SCALE_FILE),
        misc=misc,
        name=model_dir.name,
    )
    logger.info(
        f"Loaded kernel model {model.name}: {model.n_support_vectors} support vectors, "
        f"{len(model.features)} features"
    )
    return model


# =============================================================================
# Score Cache
# =============================================================================


def feature_signature(features: Mapping[str, float]) -> str:
    """Canonical signature of a feature map: sorted ``name:value`` joined by ``_``."""
    return "_".join(f"{name}:{features[name]}" for name in sorted(features))


class ScoreCache:
    """Memoized margins keyed by (model identity, feature signature).

    Append-only and never evicted. Thread-safe.

    Attributes:
        hits: Number of lookups answered from the cache.
        misses: Number of margins computed and stored after a failed lookup.
    """

    def __init__(self) -> None:
        self._margins: dict[tuple[KernelModel, str], float] = {}
        self._lock = threading.Lock()
        self.hits = 0
        self.misses = 0

    def __len__(self) -> int:
        return len(self._margins)

    def get(self, model: KernelModel, signature: str) -> float | None:
        with self._lock:
            margin = self._margins.get((model, signature))
            if margin is not None:
                self.hits += 1
            return margin

    def put(self, model: KernelModel, signature: str, margin: float) -> float:
        """Store a freshly computed margin.

        The first value is kept if another worker won the race.
        """
        with self._lock:
            self.misses += 1
            return self._margins.setdefault((model, signature), margin)


# =============================================================================
# Evaluation
# =============================================================================


def align_features(model: KernelModel, features: Mapping[str, float]) -> np.ndarray:
    """Order feature values by the model's header.

    Raises:
        MissingFeatureError: If a model feature is absent from ``features``.
    """
    aligned = np.empty(len(model.features), dtype=float)
    for i, name in enumerate(model.features):
        if name not in features:
            raise MissingFeatureError(name, model.name)
        aligned[i] = features[name]
    return aligned


def _decision_function(model: KernelModel, scaled: np.ndarray, kernel: str) -> float:
    if kernel == KERNEL_RADIAL:
        sq_dist = np.sum((model.support_vectors - scaled) ** 2, axis=1)
        k = np.exp(-model.misc["gamma"] * sq_dist)
    else:
        if kernel != KERNEL_LINEAR:
            logger.debug(f"{model.name}: unknown kernel {kernel!r}, evaluating as linear")
        k = model.support_vectors @ scaled
    return float(np.dot(model.alphas, k)) - model.misc["rho"]


def evaluate_margin(
    model: KernelModel,
    features: Mapping[str, float],
    kernel: str = KERNEL_LINEAR,
    cache: ScoreCache | None = None,
) -> float:
    """Evaluate the decision-function margin for a feature map.

    Args:
        model: Kernel model.
        features: Feature name to value. Extra names are ignored.
        kernel: "radial" for an RBF kernel; anything else is linear.
        cache: Optional shared cache.

    Returns:
        Margin (sum of alpha * kernel value, minus rho).

    Raises:
        MissingFeatureError: If a model feature is missing.
    """
    signature = feature_signature(features)
    if cache is not None:
        cached = cache.get(model, signature)
        if cached is not None:
            return cached

    aligned = align_features(model, features)
    scaled = (aligned - model.center_vector) / model.scale_vector
    margin = _decision_function(model, scaled, kernel)
    logger.debug(f"{model.name}: computed margin {margin:.4f} for {signature}")

    if cache is not None:
        margin = cache.put(model, signature, margin)
    return margin


def to_probability(margin: float, model: KernelModel) -> float:
    """Platt-scale a margin into a probability in (0, 1)."""
    logit = model.misc["probA"] * margin + model.misc["probB"]
    # Split on sign so exp() never overflows
    if logit >= 0:
        return 1.0 / (1.0 + math.exp(-logit))
    z = math.exp(logit)
    return z / (1.0 + z)


class KernelScorer:
    """A kernel model bound to a kernel kind and a shared score cache.

    Example:
        >>> scorer = KernelScorer(model, kernel="radial")
        >>> scorer.margin({"a": 1.0, "b": 2.0})
    """

    def __init__(
        self,
        model: KernelModel,
        kernel: str = KERNEL_LINEAR,
        cache: ScoreCache | None = None,
    ) -> None:
        self.model = model
        self.kernel = kernel
        self.cache = cache if cache is not None else ScoreCache()

    def margin(self, features: Mapping[str, float]) -> float:
        """Decision-function margin for ``features``."""
        return evaluate_margin(self.model, features, self.kernel, self.cache)

    def probability(self, features: Mapping[str, float]) -> float:
        """Calibrated probability for ``features``."""
        return to_probability(self.margin(features), self.model)
