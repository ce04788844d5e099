"""PhyloCSF conservation lookup.

Reads per-exon PhyloCSF scores from a SQLite database holding a
``phylocsf_data`` table with at least these columns:

    transcript, exon_number, corresponding_orf_score, max_score

Example:
    >>> from lofgate.io.conservation import PhyloCSFDatabase
    >>> with PhyloCSFDatabase("phylocsf_gerp.sql") as db:
    ...     record = db.lookup(context)
"""

from __future__ import annotations

import logging
import sqlite3
from pathlib import Path
from typing import Any

from lofgate.core.models import ConservationRecord, VariantTranscriptContext

logger = logging.getLogger(__name__)

PHYLOCSF_QUERY = "SELECT * FROM phylocsf_data WHERE transcript = ? AND exon_number = ?"


class PhyloCSFDatabase:
    """PhyloCSF scores keyed by transcript and exon number.

    Attributes:
        path: Path to the SQLite database.
    """

    def __init__(self, db_path: Path | str) -> None:
        """Open the database.

        Raises:
            FileNotFoundError: If the database file doesn't exist.
        """
        self.path = Path(db_path)
        if not self.path.exists():
            raise FileNotFoundError(f"Conservation database not found: {self.path}")

        self._connection: sqlite3.Connection | None = sqlite3.connect(
            str(self.path), check_same_thread=False
        )
        self._connection.row_factory = sqlite3.Row
        logger.info(f"Opened conservation database: {self.path.name}")

    def __enter__(self) -> PhyloCSFDatabase:
        return self

    def __exit__(self, *args: Any) -> None:
        self.close()

    def close(self) -> None:
        if self._connection is not None:
            self._connection.close()
            self._connection = None

    def lookup(self, context: VariantTranscriptContext) -> ConservationRecord | None:
        """Scores for the variant's exon, or None if the exon has no row."""
        if self._connection is None:
            raise RuntimeError("Conservation database not open")
        if context.exon_number is None:
            return None

        row = self._connection.execute(
            PHYLOCSF_QUERY,
            (context.transcript.transcript_id, context.exon_number.index),
        ).fetchone()
        if row is None:
            return None
        return ConservationRecord(
            corresponding_orf_score=float(row["corresponding_orf_score"]),
            max_score=float(row["max_score"]),
        )
