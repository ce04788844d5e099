"""Pytest configuration and shared fixtures for lofgate tests.

This module contains fixtures that are shared across multiple test modules.
Fixtures are organized by category:

- Kernel model fixtures: Write small SVM model directories
- Transcript fixtures: Build synthetic transcripts and contexts
- Sequence fixtures: In-memory reference sequences
"""

from pathlib import Path
from typing import Any, Callable

import pytest

from lofgate.core.models import (
    Feature,
    FeaturePosition,
    TranscriptInfo,
    VariantTranscriptContext,
)
from lofgate.utils.sequences import reverse_complement


# =============================================================================
# Kernel Model Fixtures
# =============================================================================


def _write_table(path: Path, values: dict[str, Any]) -> None:
    with open(path, "w") as f:
        for key, value in values.items():
            f.write(f"{key}\t{value}\n")


@pytest.fixture
def write_model(tmp_path: Path) -> Callable[..., Path]:
    """Return a function that writes a kernel model directory.

    Support vector rows carry the coefficient (alpha) in their last column.
    Center defaults to 0 and scale to 1 for every feature.
    """

    def _write(
        features: list[str],
        rows: list[list[float]],
        center: dict[str, float] | None = None,
        scale: dict[str, float] | None = None,
        misc: dict[str, float] | None = None,
        name: str = "model",
    ) -> Path:
        model_dir = tmp_path / name
        model_dir.mkdir()
        with open(model_dir / "sv.txt", "w") as f:
            f.write("\t".join(features + ["alpha"]) + "\n")
            for row in rows:
                f.write("\t".join(str(v) for v in row) + "\n")
        _write_table(model_dir / "center.txt", center or {name_: 0.0 for name_ in features})
        _write_table(model_dir / "scale.txt", scale or {name_: 1.0 for name_ in features})
        _write_table(
            model_dir / "misc.txt",
            misc or {"gamma": 1.0, "rho": 0.0, "probA": 1.0, "probB": 0.0},
        )
        return model_dir

    return _write


@pytest.fixture
def two_feature_model_dir(write_model: Callable[..., Path]) -> Path:
    """Two features, two support vectors, alpha 1 each, rho 0."""
    return write_model(
        ["a", "b"],
        [[0.5, 0.5, 1.0], [-0.5, -0.5, 1.0]],
        name="two_feature",
    )


# =============================================================================
# Transcript Fixtures
# =============================================================================


@pytest.fixture
def plus_transcript() -> TranscriptInfo:
    """Three-exon plus-strand transcript on chr1.

    Exons 100-200, 301-400, 501-700; CDS 150-650 (301 coding bases).
    """
    return TranscriptInfo(
        transcript_id="ENST0001",
        biotype="protein_coding",
        strand=1,
        seqid="chr1",
        coding_region_start=150,
        coding_region_end=650,
        exons=(Feature(100, 200), Feature(301, 400), Feature(501, 700)),
        introns=(Feature(201, 300), Feature(401, 500)),
        cds_length=301,
    )


@pytest.fixture
def minus_transcript() -> TranscriptInfo:
    """Three-exon minus-strand transcript, exons in transcript order."""
    return TranscriptInfo(
        transcript_id="ENST0002",
        biotype="protein_coding",
        strand=-1,
        seqid="chr1",
        coding_region_start=150,
        coding_region_end=650,
        exons=(Feature(501, 700), Feature(301, 400), Feature(100, 200)),
        introns=(Feature(401, 500), Feature(201, 300)),
        cds_length=301,
    )


@pytest.fixture
def make_context(plus_transcript: TranscriptInfo) -> Callable[..., VariantTranscriptContext]:
    """Return a builder for contexts on the plus-strand transcript.

    Defaults describe a stop_gained SNV at 350 in exon 2/3.
    """

    def _make(**overrides: Any) -> VariantTranscriptContext:
        values: dict[str, Any] = {
            "transcript": plus_transcript,
            "seqid": "chr1",
            "start": 350,
            "end": 350,
            "allele_string": "C/T",
            "allele": "T",
            "consequences": {"stop_gained"},
            "exon_number": FeaturePosition(2, 3),
            "cds_start": 101,
            "cds_end": 101,
            "variant_id": "var1",
        }
        values.update(overrides)
        return VariantTranscriptContext(**values)

    return _make


# =============================================================================
# Sequence Fixtures
# =============================================================================


class FakeSequenceSource:
    """In-memory reference; introns read from the genome string.

    Counts intron fetches so tests can check caching.
    """

    def __init__(self, genome: dict[str, str]) -> None:
        self.genome = genome
        self.intron_calls = 0

    def fetch(self, seqid: str, start: int, end: int) -> str:
        sequence = self.genome[seqid]
        start = max(1, start)
        end = min(len(sequence), end)
        return sequence[start - 1 : end]

    def intron_sequence(self, transcript: TranscriptInfo, intron_index: int) -> str:
        self.intron_calls += 1
        intron = transcript.introns[intron_index]
        sequence = self.fetch(transcript.seqid, intron.start, intron.end)
        if transcript.strand == -1:
            sequence = reverse_complement(sequence)
        return sequence


def place(sequence: list[str], position: int, bases: str) -> None:
    """Write ``bases`` into ``sequence`` starting at 1-based ``position``."""
    for offset, base in enumerate(bases):
        sequence[position - 1 + offset] = base


@pytest.fixture
def canonical_genome() -> dict[str, str]:
    """1 kb chr1 of C with GT...AG introns at 201-300 and 401-500."""
    bases = ["C"] * 1000
    for start, end in [(201, 300), (401, 500)]:
        place(bases, start, "GT")
        place(bases, end - 1, "AG")
    return {"chr1": "".join(bases)}


@pytest.fixture
def sequence_source(canonical_genome: dict[str, str]) -> FakeSequenceSource:
    return FakeSequenceSource(canonical_genome)


@pytest.fixture
def make_source(canonical_genome: dict[str, str]) -> Callable[..., FakeSequenceSource]:
    """Return a builder for a source over the canonical genome with edits.

    Each edit is a ``(position, bases)`` pair written over chr1.
    """

    def _make(*edits: tuple[int, str]) -> FakeSequenceSource:
        bases = list(canonical_genome["chr1"])
        for position, text in edits:
            place(bases, position, text)
        return FakeSequenceSource({"chr1": "".join(bases)})

    return _make
