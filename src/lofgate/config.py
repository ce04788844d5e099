"""Configuration management for lofgate.

Settings mirror the LoF plugin parameters of VEP and can come from:
- Default values
- A VEP-style parameter string (``key:value,key:value``)
- A mapping (e.g. parsed from JSON, or CLI options)

Example:
    >>> from lofgate.config import LofteeConfig
    >>> config = LofteeConfig.from_params("min_intron_size:20,apply_all:true")
    >>> config.min_intron_size
    20
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Mapping

import attrs

logger = logging.getLogger(__name__)

# =============================================================================
# Default Configuration Values
# =============================================================================

# General filters
DEFAULT_FILTER_POSITION = 0.05
DEFAULT_MIN_INTRON_SIZE = 15

# Splice prediction
DEFAULT_WEAK_DONOR_CUTOFF = -4.0

# Extended splice (disruption of annotated sites)
DEFAULT_DONOR_DISRUPTION_MES_CUTOFF = 6.0
DEFAULT_ACCEPTOR_DISRUPTION_MES_CUTOFF = 7.0
DEFAULT_DONOR_DISRUPTION_CUTOFF = 0.98
DEFAULT_ACCEPTOR_DISRUPTION_CUTOFF = 0.99

# Alternative splice site scan
DEFAULT_MAX_SCAN_DISTANCE = 15
DEFAULT_DONOR_RESCUE_CUTOFF = 8.5
DEFAULT_ACCEPTOR_RESCUE_CUTOFF = 8.5

# De novo donor
DEFAULT_MAX_DENOVO_DONOR_DISTANCE = 200
DEFAULT_DENOVO_DONOR_CUTOFF = 0.995
DEFAULT_SRE_FLANKSIZE = 100

# Values treated as "not configured" for file parameters
DISABLED_PATH_VALUES = {"", "false", "none"}

TRUE_VALUES = {"true", "1", "yes"}
FALSE_VALUES = {"false", "0", "no"}


# =============================================================================
# Converters
# =============================================================================


def _to_bool(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float)):
        return bool(value)
    text = str(value).strip().lower()
    if text in TRUE_VALUES:
        return True
    if text in FALSE_VALUES:
        return False
    raise ValueError(f"Invalid boolean value: {value!r}")


def _to_path(value: Any) -> Path | None:
    if value is None or isinstance(value, Path):
        return value
    if str(value).strip().lower() in DISABLED_PATH_VALUES:
        return None
    return Path(value)


# =============================================================================
# Configuration Class
# =============================================================================


@attrs.define
class LofteeConfig:
    """LoF classification settings.

    Only ``min_intron_size``, ``check_complete_cds``, ``get_splice_features``,
    ``denovo_donor_cutoff`` and ``apply_all`` drive the classifier itself;
    the remaining thresholds are passed through to splice collaborators.
    ``filter_position`` is reserved and currently unused.

    Attributes:
        filter_position: Reserved CDS-percentile cutoff.
        min_intron_size: Introns below this size are suspicious.
        check_complete_cds: Report INCOMPLETE_CDS.
        get_splice_features: Copy splice feature maps into info.
        weak_donor_cutoff: Reference donor score below which de novo
            events are ignored.
        donor_disruption_mes_cutoff: MES drop for donor disruption.
        acceptor_disruption_mes_cutoff: MES drop for acceptor disruption.
        donor_disruption_cutoff: Probability cutoff for donor disruption.
        acceptor_disruption_cutoff: Probability cutoff for acceptor disruption.
        max_scan_distance: Window for rescue splice sites.
        donor_rescue_cutoff: Score needed for a rescuing donor.
        acceptor_rescue_cutoff: Score needed for a rescuing acceptor.
        exonic_denovo_only: Only consider exonic de novo donors.
        max_denovo_donor_distance: Window for de novo donors.
        denovo_donor_cutoff: Probability above which a de novo donor counts.
        sre_flanksize: Flank in which splice regulatory elements act.
        apply_all: Evaluate filters even without strong LoF evidence.
        human_ancestor_fa: Ancestral sequence FASTA.
        conservation_file: PhyloCSF SQLite database.
        gerp_file: Tabix-indexed GERP scores.
        reference_fa: Reference genome FASTA (intron motifs, NAGNAG).
        donor_svm_dir: De novo donor SVM model directory.
        debug: Log the effective parameters at startup.
    """

    filter_position: float = attrs.field(default=DEFAULT_FILTER_POSITION, converter=float)
    min_intron_size: int = attrs.field(default=DEFAULT_MIN_INTRON_SIZE, converter=int)
    check_complete_cds: bool = attrs.field(default=False, converter=_to_bool)
    get_splice_features: bool = attrs.field(default=True, converter=_to_bool)

    weak_donor_cutoff: float = attrs.field(default=DEFAULT_WEAK_DONOR_CUTOFF, converter=float)
    donor_disruption_mes_cutoff: float = attrs.field(
        default=DEFAULT_DONOR_DISRUPTION_MES_CUTOFF, converter=float
    )
    acceptor_disruption_mes_cutoff: float = attrs.field(
        default=DEFAULT_ACCEPTOR_DISRUPTION_MES_CUTOFF, converter=float
    )
    donor_disruption_cutoff: float = attrs.field(
        default=DEFAULT_DONOR_DISRUPTION_CUTOFF, converter=float
    )
    acceptor_disruption_cutoff: float = attrs.field(
        default=DEFAULT_ACCEPTOR_DISRUPTION_CUTOFF, converter=float
    )
    max_scan_distance: int = attrs.field(default=DEFAULT_MAX_SCAN_DISTANCE, converter=int)
    donor_rescue_cutoff: float = attrs.field(default=DEFAULT_DONOR_RESCUE_CUTOFF, converter=float)
    acceptor_rescue_cutoff: float = attrs.field(
        default=DEFAULT_ACCEPTOR_RESCUE_CUTOFF, converter=float
    )

    exonic_denovo_only: bool = attrs.field(default=True, converter=_to_bool)
    max_denovo_donor_distance: int = attrs.field(
        default=DEFAULT_MAX_DENOVO_DONOR_DISTANCE, converter=int
    )
    denovo_donor_cutoff: float = attrs.field(default=DEFAULT_DENOVO_DONOR_CUTOFF, converter=float)
    sre_flanksize: int = attrs.field(default=DEFAULT_SRE_FLANKSIZE, converter=int)

    apply_all: bool = attrs.field(default=False, converter=_to_bool)

    human_ancestor_fa: Path | None = attrs.field(default=None, converter=_to_path)
    conservation_file: Path | None = attrs.field(default=None, converter=_to_path)
    gerp_file: Path | None = attrs.field(default=None, converter=_to_path)
    reference_fa: Path | None = attrs.field(default=None, converter=_to_path)
    donor_svm_dir: Path | None = attrs.field(default=None, converter=_to_path)

    debug: bool = attrs.field(default=False, converter=_to_bool)

    @min_intron_size.validator
    def _check_min_intron_size(self, attribute: attrs.Attribute, value: int) -> None:
        if value < 0:
            raise ValueError(f"min_intron_size must be non-negative, got {value}")

    @denovo_donor_cutoff.validator
    def _check_denovo_cutoff(self, attribute: attrs.Attribute, value: float) -> None:
        if not 0.0 <= value <= 1.0:
            raise ValueError(f"denovo_donor_cutoff must be in [0, 1], got {value}")

    @classmethod
    def from_mapping(cls, values: Mapping[str, Any]) -> "LofteeConfig":
        """Build a configuration from a mapping of parameter names.

        Raises:
            ValueError: On unknown parameter names or invalid values.
        """
        known = {field.name for field in attrs.fields(cls)}
        unknown = sorted(set(values) - known)
        if unknown:
            raise ValueError(f"Unknown LoF parameter(s): {', '.join(unknown)}")
        config = cls(**dict(values))
        if config.debug:
            for key, value in config.to_dict().items():
                logger.debug(f"{key} : {value}")
        return config

    @classmethod
    def from_params(cls, params: str | None) -> "LofteeConfig":
        """Parse a VEP plugin parameter string.

        Parameters are comma-separated ``key:value`` (or ``key=value``)
        pairs, e.g. ``"apply_all:true,min_intron_size:20"``.

        Raises:
            ValueError: On malformed pairs or unknown names.
        """
        values: dict[str, str] = {}
        if params:
            for item in params.split(","):
                item = item.strip()
                if not item:
                    continue
                positions = [pos for pos in (item.find(":"), item.find("=")) if pos > 0]
                if not positions:
                    raise ValueError(f"Malformed LoF parameter: {item!r}")
                split_at = min(positions)
                values[item[:split_at].strip()] = item[split_at + 1 :].strip()
        return cls.from_mapping(values)

    def to_dict(self) -> dict[str, Any]:
        """Convert configuration to dictionary."""
        return attrs.asdict(self)
