"""Command-line interface for lofgate.

This module provides the main entry point for the lofgate CLI tool.
It uses Click to define commands.

Commands:
    classify: Assign LoF confidence to variant-transcript annotations
    svm-score: Score one feature vector with a kernel model
    show-config: Print the effective LoF parameters

Example:
    $ lofgate --help
    $ lofgate classify -i contexts.jsonl -o lof.tsv --gerp-file GERP_scores.txt.gz
    $ lofgate svm-score --model-dir de_novo_donor_SVM -f mes_diff=4.2 -f dist=30 --kernel radial
    $ lofgate show-config --params "min_intron_size:20,apply_all:true"
"""

from collections import Counter
from contextlib import ExitStack
from pathlib import Path
from typing import Any, Optional

import click
from rich.console import Console
from rich.table import Table

# Initialize rich console for pretty output
console = Console()


@click.group()
@click.version_option(prog_name="lofgate")
@click.option("-v", "--verbose", is_flag=True, help="Enable verbose output.")
@click.option("-q", "--quiet", is_flag=True, help="Suppress non-error output.")
@click.option(
    "--log-file",
    type=click.Path(dir_okay=False, path_type=Path),
    help="Write a debug log of every classification step to this file.",
)
@click.pass_context
def main(
    ctx: click.Context, verbose: bool, quiet: bool, log_file: Optional[Path]
) -> None:
    """lofgate: Loss-of-function confidence calls for variant annotations.

    lofgate combines stop-gain, frameshift and splice evidence with
    truncation position, conservation and ancestral-allele checks to
    label each variant-transcript annotation as high (HC) or low (LC)
    confidence LoF.
    """
    from lofgate.utils.logging import setup_logging

    # Ensure context object exists
    ctx.ensure_object(dict)
    ctx.obj["verbose"] = verbose
    ctx.obj["quiet"] = quiet
    setup_logging(verbosity=0 if quiet else (2 if verbose else 1), log_file=log_file)


def _build_config(params: Optional[str], overrides: dict[str, Any]) -> Any:
    from lofgate.config import LofteeConfig

    config = LofteeConfig.from_params(params)
    values = config.to_dict()
    values.update({key: value for key, value in overrides.items() if value is not None})
    return LofteeConfig.from_mapping(values)


# =============================================================================
# classify command
# =============================================================================


@main.command()
@click.option(
    "-i",
    "--input",
    "input_path",
    type=click.Path(exists=True, path_type=Path),
    required=True,
    help="Variant-transcript contexts (JSON lines).",
)
@click.option(
    "-o",
    "--output",
    type=click.Path(path_type=Path),
    required=True,
    help="Output TSV of LoF calls.",
)
@click.option(
    "--params",
    type=str,
    help="VEP-style LoF parameters, e.g. 'min_intron_size:20,apply_all:true'.",
)
@click.option(
    "--human-ancestor-fa",
    type=click.Path(exists=True, path_type=Path),
    help="Ancestral sequence FASTA (enables ANC_ALLELE).",
)
@click.option(
    "--conservation-file",
    type=click.Path(exists=True, path_type=Path),
    help="PhyloCSF SQLite database.",
)
@click.option(
    "--gerp-file",
    type=click.Path(exists=True, path_type=Path),
    help="Tabix-indexed GERP scores for END_TRUNC (required here or as gerp_file in --params).",
)
@click.option(
    "--reference-fa",
    type=click.Path(exists=True, path_type=Path),
    help="Reference genome FASTA (intron motifs, NAGNAG sites).",
)
@click.option(
    "--donor-svm-dir",
    type=click.Path(exists=True, file_okay=False, path_type=Path),
    help="De novo donor SVM model directory.",
)
@click.option(
    "--apply-all",
    is_flag=True,
    help="Apply filters to every transcript, not only strong LoF candidates.",
)
@click.pass_context
def classify(
    ctx: click.Context,
    input_path: Path,
    output: Path,
    params: Optional[str],
    human_ancestor_fa: Optional[Path],
    conservation_file: Optional[Path],
    gerp_file: Optional[Path],
    reference_fa: Optional[Path],
    donor_svm_dir: Optional[Path],
    apply_all: bool,
) -> None:
    """Classify variant-transcript annotations as HC or LC loss-of-function.

    Splice evidence computed upstream is read from each context's
    ``handles``. GERP scores are required; reference, conservation and
    ancestral lookups are enabled by the corresponding files.

    \b
    Examples:
        $ lofgate classify -i contexts.jsonl -o lof.tsv \\
            --gerp-file GERP_scores.final.sorted.txt.gz
        $ lofgate classify -i contexts.jsonl -o lof.tsv \\
            --gerp-file GERP_scores.final.sorted.txt.gz \\
            --conservation-file phylocsf_gerp.sql \\
            --human-ancestor-fa human_ancestor.fa.gz
    """
    import logging

    from lofgate.core.classify import Collaborators, LofClassifier
    from lofgate.core.denovo import SvmDeNovoDonorPredictor
    from lofgate.core.svm import KERNEL_RADIAL, KernelScorer, load_kernel_model
    from lofgate.io.conservation import PhyloCSFDatabase
    from lofgate.io.fasta import FastaAncestralAlleleCheck, GenomeAccessor
    from lofgate.io.gerp import GerpWeightedDistanceCalculator, TabixGerpScores
    from lofgate.io.precomputed import (
        HandleDonorCandidateSource,
        PrecomputedAlternativeSplice,
        PrecomputedSpliceDisruption,
    )
    from lofgate.io.records import ResultWriter, read_contexts
    from lofgate.utils.logging import Timer

    verbose = ctx.obj.get("verbose", False)
    quiet = ctx.obj.get("quiet", False)
    logger = logging.getLogger("lofgate.cli")

    try:
        config = _build_config(
            params,
            {
                "human_ancestor_fa": human_ancestor_fa,
                "conservation_file": conservation_file,
                "gerp_file": gerp_file,
                "reference_fa": reference_fa,
                "donor_svm_dir": donor_svm_dir,
                "apply_all": True if apply_all else None,
            },
        )
        if config.gerp_file is None:
            raise ValueError(
                "A GERP score file is required: pass --gerp-file or gerp_file in --params."
            )

        if not quiet:
            console.print(f"[blue]Input:[/blue] {input_path}")
            for label, path in [
                ("Reference", config.reference_fa),
                ("GERP", config.gerp_file),
                ("PhyloCSF", config.conservation_file),
                ("Ancestor", config.human_ancestor_fa),
                ("Donor SVM", config.donor_svm_dir),
            ]:
                if path is not None:
                    console.print(f"[blue]{label}:[/blue] {path}")

        with ExitStack() as stack:
            collaborators = Collaborators(
                splice_disruption=PrecomputedSpliceDisruption(),
                alternative_splice=PrecomputedAlternativeSplice(),
                sequences=(
                    stack.enter_context(GenomeAccessor(config.reference_fa))
                    if config.reference_fa is not None
                    else None
                ),
            )
            if config.gerp_file is not None:
                scores = stack.enter_context(TabixGerpScores(config.gerp_file))
                collaborators.gerp_distance = GerpWeightedDistanceCalculator(scores)
            if config.conservation_file is not None:
                collaborators.conservation = stack.enter_context(
                    PhyloCSFDatabase(config.conservation_file)
                )
            if config.human_ancestor_fa is not None:
                ancestral = FastaAncestralAlleleCheck.open(config.human_ancestor_fa)
                stack.callback(ancestral.close)
                collaborators.ancestral = ancestral
            if config.donor_svm_dir is not None:
                scorer = KernelScorer(load_kernel_model(config.donor_svm_dir), KERNEL_RADIAL)
                collaborators.denovo_donor = SvmDeNovoDonorPredictor.from_config(
                    scorer, HandleDonorCandidateSource(), config
                )

            classifier = LofClassifier(config, collaborators)
            results = []
            with Timer("Classification", logger, unit="contexts") as timer:
                for context in read_contexts(input_path):
                    results.append((context, classifier.classify(context)))
                    timer.tick()

        n_rows = ResultWriter.to_tsv(results, output)

        if not quiet:
            console.print(f"[green]Wrote {n_rows} LoF calls to:[/green] {output}")

            counts = Counter(
                "skipped" if result.skipped
                else (result.confidence.value if result.confidence is not None else "none")
                for _, result in results
            )
            console.print("\n[bold]Confidence Distribution:[/bold]")
            for label in ["HC", "LC", "", "none", "skipped"]:
                count = counts.get(label, 0)
                pct = count / n_rows * 100 if n_rows else 0
                name = {"": "unset", "none": "no call"}.get(label, label)
                console.print(f"  {name}: {count} ({pct:.1f}%)")

    except Exception as e:
        console.print(f"[red]Error:[/red] {e}")
        if verbose:
            import traceback
            traceback.print_exc()
        raise SystemExit(1)


# =============================================================================
# svm-score command
# =============================================================================


def _parse_features(values: tuple[str, ...]) -> dict[str, float]:
    features: dict[str, float] = {}
    for item in values:
        name, sep, value = item.partition("=")
        if not sep or not name:
            raise click.BadParameter(f"expected name=value, got {item!r}", param_hint="--feature")
        try:
            features[name.strip()] = float(value)
        except ValueError as e:
            raise click.BadParameter(f"non-numeric value in {item!r}", param_hint="--feature") from e
    return features


@main.command("svm-score")
@click.option(
    "--model-dir",
    type=click.Path(exists=True, file_okay=False, path_type=Path),
    required=True,
    help="Directory with sv.txt, center.txt, scale.txt and misc.txt.",
)
@click.option(
    "-f",
    "--feature",
    "feature_values",
    multiple=True,
    help="Feature value as name=value. Repeat for each feature.",
)
@click.option(
    "--kernel",
    type=click.Choice(["linear", "radial"]),
    default="linear",
    show_default=True,
    help="Kernel function.",
)
@click.pass_context
def svm_score(
    ctx: click.Context,
    model_dir: Path,
    feature_values: tuple[str, ...],
    kernel: str,
) -> None:
    """Evaluate a kernel model on one feature vector.

    Prints the decision-function margin and the calibrated probability.

    \b
    Examples:
        $ lofgate svm-score --model-dir donor_disruption_SVM -f mes_ref=9.1 -f mes_alt=2.3
    """
    from lofgate.core.svm import KernelScorer, load_kernel_model

    verbose = ctx.obj.get("verbose", False)
    features = _parse_features(feature_values)

    try:
        scorer = KernelScorer(load_kernel_model(model_dir), kernel=kernel)
        margin = scorer.margin(features)
        probability = scorer.probability(features)

        console.print(f"[bold]Margin:[/bold] {margin:.6f}")
        console.print(f"[bold]Probability:[/bold] {probability:.6f}")

    except Exception as e:
        console.print(f"[red]Error:[/red] {e}")
        if verbose:
            import traceback
            traceback.print_exc()
        raise SystemExit(1)


# =============================================================================
# show-config command
# =============================================================================


@main.command("show-config")
@click.option(
    "--params",
    type=str,
    help="VEP-style LoF parameters, e.g. 'min_intron_size:20,apply_all:true'.",
)
@click.pass_context
def show_config(ctx: click.Context, params: Optional[str]) -> None:
    """Print the effective LoF parameters."""
    verbose = ctx.obj.get("verbose", False)

    try:
        config = _build_config(params, {})

        table = Table(title="LoF parameters")
        table.add_column("Parameter", style="cyan")
        table.add_column("Value")
        for key, value in config.to_dict().items():
            table.add_row(key, "" if value is None else str(value))
        console.print(table)

    except Exception as e:
        console.print(f"[red]Error:[/red] {e}")
        if verbose:
            import traceback
            traceback.print_exc()
        raise SystemExit(1)


if __name__ == "__main__":
    main()
