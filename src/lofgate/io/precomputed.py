"""Splice evidence carried inside context handles.

When splice features are computed upstream (motif scanning, MaxEntScan),
their outcome can travel with each context under ``handles``:

    "splice_disruption": {"is_disrupting": true,
                          "features": {"mes_diff": 7.2},
                          "splice_info": {"type": "DONOR"}},
    "alternative_splice": {"features": {"rescue_mes": null},
                           "rescued": false, "rescue_tag": "",
                           "lof_position": 1234567},
    "denovo_candidates": [{"position": 1234500, "distance": 67,
                           "features": {...}, "causes_frameshift": true}]

The adapters below expose these as classifier collaborators. A context
without the handle yields the "no evidence" result.
"""

from __future__ import annotations

from typing import Any, Mapping, Sequence

from lofgate.core.denovo import DonorCandidate
from lofgate.core.models import (
    AlternativeSpliceResult,
    RescueInfo,
    SpliceDisruptionResult,
    SpliceInfo,
    VariantTranscriptContext,
)

HANDLE_SPLICE_DISRUPTION = "splice_disruption"
HANDLE_ALTERNATIVE_SPLICE = "alternative_splice"
HANDLE_DENOVO_CANDIDATES = "denovo_candidates"


def _splice_info(data: Mapping[str, Any] | None) -> SpliceInfo | None:
    if not data:
        return None
    extra = {key: value for key, value in data.items() if key != "type"}
    return SpliceInfo(type=str(data["type"]), extra=extra)


class PrecomputedSpliceDisruption:
    """Splice-disruption predictions read from ``handles``."""

    def predict(
        self, context: VariantTranscriptContext, allele: str, vep_splice_lof: bool
    ) -> SpliceDisruptionResult:
        data = context.handles.get(HANDLE_SPLICE_DISRUPTION)
        if not data:
            return SpliceDisruptionResult()
        return SpliceDisruptionResult(
            is_disrupting=bool(data.get("is_disrupting", False)),
            features=data.get("features"),
            splice_info=_splice_info(data.get("splice_info")),
        )


class PrecomputedAlternativeSplice:
    """Alternative splice-site scan results read from ``handles``."""

    def scan(
        self, context: VariantTranscriptContext, splice_info: SpliceInfo
    ) -> AlternativeSpliceResult:
        data = context.handles.get(HANDLE_ALTERNATIVE_SPLICE)
        if not data:
            return AlternativeSpliceResult()
        return AlternativeSpliceResult(
            features=data.get("features"),
            rescue=RescueInfo(
                rescued=bool(data.get("rescued", False)),
                rescue_tag=str(data.get("rescue_tag", "")),
                lof_position=int(data.get("lof_position", -1)),
            ),
        )


class HandleDonorCandidateSource:
    """De novo donor candidates read from ``handles``."""

    def candidates(
        self, context: VariantTranscriptContext, allele: str
    ) -> Sequence[DonorCandidate]:
        return [
            DonorCandidate(
                position=int(item["position"]),
                distance=int(item["distance"]),
                features={key: float(value) for key, value in item["features"].items()},
                causes_frameshift=bool(item.get("causes_frameshift", False)),
                exonic=bool(item.get("exonic", True)),
                authentic_donor_score=item.get("authentic_donor_score"),
            )
            for item in context.handles.get(HANDLE_DENOVO_CANDIDATES, [])
        ]
