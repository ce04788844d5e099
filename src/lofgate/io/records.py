"""Reading annotation contexts and writing LoF results.

Contexts are read from JSON lines, one variant-transcript annotation per
line:

    {"variant_id": "1-55051215-G-A", "seqid": "1", "start": 55051215,
     "end": 55051215, "allele_string": "G/A", "allele": "A",
     "consequences": ["stop_gained"], "exon_number": "5/12",
     "cds_start": 812, "cds_end": 812,
     "transcript": {"transcript_id": "ENST00000302118",
                    "biotype": "protein_coding", "strand": 1,
                    "coding_region_start": 55039548,
                    "coding_region_end": 55064852,
                    "exons": [[55039447, 55040044], ...],
                    "introns": [[55040045, 55043842], ...],
                    "cds_length": 2079}}

Results are written as TSV or rendered as a VEP-style INFO string.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Iterable, Iterator, Mapping

from lofgate.core.models import (
    ClassificationResult,
    Feature,
    FeaturePosition,
    TranscriptInfo,
    VariantTranscriptContext,
)

logger = logging.getLogger(__name__)

# Output columns
RESULT_COLUMNS = ["variant_id", "transcript_id", "LoF", "LoF_filter", "LoF_flags", "LoF_info"]

# LoF cell when the classifier omitted confidence (no strong evidence)
NO_CALL = "."


# =============================================================================
# Parsing
# =============================================================================


def _position(value: Any) -> FeaturePosition | None:
    if value is None or value == "":
        return None
    if isinstance(value, str):
        return FeaturePosition.parse(value)
    index, total = value
    return FeaturePosition(int(index), int(total))


def _features(values: Iterable[Iterable[int]]) -> tuple[Feature, ...]:
    return tuple(Feature(int(start), int(end)) for start, end in values)


def transcript_from_dict(data: Mapping[str, Any], seqid: str = "") -> TranscriptInfo:
    """Build a TranscriptInfo from a parsed JSON object."""
    return TranscriptInfo(
        transcript_id=data["transcript_id"],
        biotype=data["biotype"],
        strand=int(data["strand"]),
        seqid=str(data.get("seqid", seqid)),
        coding_region_start=data.get("coding_region_start"),
        coding_region_end=data.get("coding_region_end"),
        exons=_features(data.get("exons", [])),
        introns=_features(data.get("introns", [])),
        cds_length=int(data.get("cds_length", 0)),
        cds_start_nf=bool(data.get("cds_start_nf", False)),
        cds_end_nf=bool(data.get("cds_end_nf", False)),
    )


def context_from_dict(data: Mapping[str, Any]) -> VariantTranscriptContext:
    """Build a VariantTranscriptContext from a parsed JSON object.

    Raises:
        KeyError: If a required field is missing.
        ValueError: If a field has the wrong shape.
    """
    seqid = str(data["seqid"])
    transcript = transcript_from_dict(data["transcript"], seqid=seqid)
    return VariantTranscriptContext(
        transcript=transcript,
        seqid=seqid,
        start=int(data["start"]),
        end=int(data["end"]),
        allele_string=data["allele_string"],
        allele=data["allele"],
        consequences=frozenset(data.get("consequences", [])),
        exon_number=_position(data.get("exon_number")),
        intron_number=_position(data.get("intron_number")),
        cds_start=data.get("cds_start"),
        cds_end=data.get("cds_end"),
        variant_id=str(data.get("variant_id", "")),
        handles=dict(data.get("handles", {})),
    )


def read_contexts(path: Path | str) -> Iterator[VariantTranscriptContext]:
    """Stream contexts from a JSON-lines file.

    Raises:
        FileNotFoundError: If the file doesn't exist.
        ValueError: On a malformed line (line number included).
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Context file not found: {path}")

    with open(path) as f:
        for lineno, line in enumerate(f, start=1):
            line = line.strip()
            if not line or line.startswith("#"):
                continue
            try:
                yield context_from_dict(json.loads(line))
            except (KeyError, TypeError, ValueError) as e:
                raise ValueError(f"{path}:{lineno}: invalid context: {e}") from e


# =============================================================================
# Output
# =============================================================================


def format_vep_info(result: ClassificationResult) -> str:
    """Render a result as a VEP-style ``key=value;...`` string."""
    return ";".join(f"{key}={value}" for key, value in result.to_record().items())


class ResultWriter:
    """Write LoF results to various formats."""

    @staticmethod
    def to_tsv(
        results: Iterable[tuple[VariantTranscriptContext, ClassificationResult]],
        output_path: Path | str,
    ) -> int:
        """Write tab-separated results.

        Columns: variant_id, transcript_id, LoF, LoF_filter, LoF_flags, LoF_info

        An omitted confidence is written as ``.`` in the LoF column and an
        unset one (``apply_all`` without strong evidence) as an empty cell.
        Skipped transcripts leave every LoF column empty.

        Args:
            results: (context, result) pairs.
            output_path: Output file path.

        Returns:
            Number of rows written.
        """
        output_path = Path(output_path)
        n_rows = 0

        with open(output_path, "w") as f:
            f.write("\t".join(RESULT_COLUMNS) + "\n")
            for context, result in results:
                record = result.to_record()
                if record and "LoF" not in record:
                    record["LoF"] = NO_CALL
                data = {
                    "variant_id": context.variant_id,
                    "transcript_id": context.transcript.transcript_id,
                    **record,
                }
                f.write("\t".join(str(data.get(col, "")) for col in RESULT_COLUMNS) + "\n")
                n_rows += 1

        logger.info(f"Wrote {n_rows} LoF results to {output_path}")
        return n_rows
