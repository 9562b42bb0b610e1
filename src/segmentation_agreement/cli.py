"""
Segmentation agreement CLI.

Command-line interface for computing agreement between segmentations.

Usage:
    seg-agreement gamma study.json --seed 7
    seg-agreement alpha study.csv --raters 2 --length 24
    seg-agreement align study.json
    seg-agreement init
"""

from __future__ import annotations

import json
import logging
import shutil
import sys
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional

import click
from rich.console import Console
from rich.logging import RichHandler
from rich.progress import Progress, SpinnerColumn, TextColumn
from rich.table import Table

from segmentation_agreement import __version__
from segmentation_agreement.aligning.aligner import PairwiseAligner
from segmentation_agreement.aligning.dissimilarity import NominalFeatureTextDissimilarity
from segmentation_agreement.aligning.gamma import TextGammaAgreement
from segmentation_agreement.aligning.merge import merge_annotated_texts
from segmentation_agreement.aligning.sampler import SimpleDisorderSampler
from segmentation_agreement.config import AgreementConfig, load_config
from segmentation_agreement.loaders import load_continuum_study, load_text_study
from segmentation_agreement.models import AnnotatedText, TextStudy
from segmentation_agreement.report import generate_text_report, interpret_agreement
from segmentation_agreement.unitizing import KrippendorffAlphaUnitizing

console = Console()

LOG_LEVELS = ["DEBUG", "INFO", "WARNING", "ERROR"]


def setup_logging(
    level: str,
    rich_console: bool = True,
    fmt: str = "%(asctime)s - %(name)s - %(levelname)s - %(message)s",
) -> None:
    """Configure logging with optional rich formatting."""
    log_level = getattr(logging, level.upper(), logging.INFO)

    if rich_console:
        logging.basicConfig(
            level=log_level,
            format="%(message)s",
            datefmt="[%X]",
            handlers=[RichHandler(console=console, rich_tracebacks=True)],
        )
    else:
        logging.basicConfig(
            level=log_level,
            format=fmt,
        )


def _load_settings(
    config: Optional[Path],
    overrides: Dict[str, Any],
    log_level: Optional[str],
) -> AgreementConfig:
    """Load configuration and set up logging, exiting on invalid settings."""
    try:
        cfg = load_config(
            config_path=config,
            project_root=Path.cwd(),
            overrides=overrides if overrides else None,
        )
    except Exception as e:
        console.print(f"[red]Error loading configuration:[/red] {e}")
        sys.exit(1)

    setup_logging(
        log_level or cfg.logging.level,
        rich_console=cfg.logging.rich_console,
        fmt=cfg.logging.format,
    )
    return cfg


def _load_texts(file: Path) -> List[AnnotatedText]:
    data = load_text_study(file)
    if isinstance(data, TextStudy):
        if data.rater_count != 2:
            raise ValueError(f"Expected a study with 2 raters, got {data.rater_count}")
        return data.texts()
    return data


def _check_chance_sources(texts: List[AnnotatedText], cfg: AgreementConfig) -> None:
    """Reject sampler settings under which every chance sample is 0."""
    rates = (cfg.sampler.text_change_rate, cfg.sampler.segment_change_rate)
    if any(rates) or any(text.feature_names for text in texts):
        return
    raise ValueError(
        "Units carry no features and both sampler change rates are 0, so no chance "
        "disorder can be sampled; set --text-change-rate or --segment-change-rate"
    )


def _echo_json(data: Dict[str, Any], indent: int) -> None:
    click.echo(json.dumps(data, indent=indent or None))


config_option = click.option(
    "--config",
    "-c",
    type=click.Path(exists=True, path_type=Path),
    default=None,
    help="Path to configuration YAML file.",
)
log_level_option = click.option(
    "--log-level",
    "-l",
    type=click.Choice(LOG_LEVELS, case_sensitive=False),
    default=None,
    help="Logging verbosity level (default: from config).",
)
json_option = click.option(
    "--json",
    "as_json",
    is_flag=True,
    help="Print the result as JSON.",
)


@click.group()
@click.version_option(version=__version__, prog_name="seg-agreement")
def main() -> None:
    """
    Segmentation agreement - inter-rater agreement for segmentations.

    Computes the gamma measure for segmented texts and Krippendorff's
    unitizing alpha for categorized units on a continuum.

    \b
    Examples:
        seg-agreement gamma study.json
        seg-agreement alpha units.csv --raters 2 --length 24
        seg-agreement align study.json
    """
    pass


@main.command()
@click.argument("file", type=click.Path(exists=True, path_type=Path))
@config_option
@click.option("--precision", type=float, default=None, help="Relative precision of the estimate.")
@click.option("--alpha", type=float, default=None, help="Confidence complement of the estimate.")
@click.option("--seed", type=int, default=None, help="Random seed of the disorder sampler.")
@click.option(
    "--text-change-rate",
    type=float,
    default=None,
    help="Probability per unit of a random text change.",
)
@click.option(
    "--segment-change-rate",
    type=float,
    default=None,
    help="Probability per unit of a random segmentation change.",
)
@click.option("--max-samples", type=int, default=None, help="Cap on disorder samples.")
@json_option
@log_level_option
def gamma(
    file: Path,
    config: Optional[Path],
    precision: Optional[float],
    alpha: Optional[float],
    seed: Optional[int],
    text_change_rate: Optional[float],
    segment_change_rate: Optional[float],
    max_samples: Optional[int],
    as_json: bool,
    log_level: Optional[str],
) -> None:
    """
    Compute gamma agreement between two segmentations of a text.

    \b
    Example:
        seg-agreement gamma study.json --seed 7 --text-change-rate 0.1
    """
    overrides: Dict[str, Any] = {}
    for key, value in (
        ("gamma.precision", precision),
        ("gamma.alpha", alpha),
        ("gamma.max_samples", max_samples),
        ("sampler.random_seed", seed),
        ("sampler.text_change_rate", text_change_rate),
        ("sampler.segment_change_rate", segment_change_rate),
    ):
        if value is not None:
            overrides[key] = value

    cfg = _load_settings(config, overrides, log_level)
    logger = logging.getLogger("segmentation_agreement.cli")

    try:
        texts = _load_texts(file)
        _check_chance_sources(texts, cfg)
        measure = TextGammaAgreement(
            cfg,
            texts=texts,
            sampler_factory=SimpleDisorderSampler.factory(
                text_change_rate=cfg.sampler.text_change_rate,
                segment_change_rate=cfg.sampler.segment_change_rate,
                seed=cfg.sampler.random_seed,
            ),
        )

        with Progress(
            SpinnerColumn(),
            TextColumn("[progress.description]{task.description}"),
            console=console if not as_json else Console(quiet=True),
        ) as progress:
            task = progress.add_task("Estimating expected disorder...", total=None)
            result = measure.result()
            progress.update(task, completed=True)

    except Exception as e:
        logger.debug("Gamma computation failed", exc_info=True)
        console.print(f"[red]Gamma error:[/red] {e}")
        sys.exit(1)

    if as_json:
        _echo_json(result.to_dict(cfg.output.decimals), cfg.output.json_indent)
    else:
        console.print(generate_text_report(result, cfg.output.decimals), markup=False)


@main.command()
@click.argument("file", type=click.Path(exists=True, path_type=Path))
@config_option
@click.option("--raters", type=int, default=None, help="Number of raters (default: inferred).")
@click.option("--begin", type=int, default=None, help="Continuum begin (default: inferred).")
@click.option("--length", type=int, default=None, help="Continuum length (default: inferred).")
@click.option("--category", default=None, help="Only report agreement for this category.")
@json_option
@log_level_option
def alpha(
    file: Path,
    config: Optional[Path],
    raters: Optional[int],
    begin: Optional[int],
    length: Optional[int],
    category: Optional[str],
    as_json: bool,
    log_level: Optional[str],
) -> None:
    """
    Compute Krippendorff's unitizing alpha for a continuum study.

    \b
    Example:
        seg-agreement alpha units.csv --raters 2 --length 24
        seg-agreement alpha study.json --category A --json
    """
    cfg = _load_settings(config, {}, log_level)
    logger = logging.getLogger("segmentation_agreement.cli")

    try:
        study = load_continuum_study(file, rater_count=raters, begin=begin, length=length)
        measure = KrippendorffAlphaUnitizing.from_config(study, cfg)

        if category is not None:
            if category not in study.categories:
                raise ValueError(f"Category {category!r} does not occur in the study")
            value = measure.category_agreement(category)
            if as_json:
                _echo_json(
                    {"category": category, "agreement": round(value, cfg.output.decimals)},
                    cfg.output.json_indent,
                )
            else:
                console.print(
                    f"Category {category}: {value:.{cfg.output.decimals}f} "
                    f"({interpret_agreement(value)})",
                    markup=False,
                )
            return

        result = measure.result()

    except Exception as e:
        logger.debug("Alpha computation failed", exc_info=True)
        console.print(f"[red]Alpha error:[/red] {e}")
        sys.exit(1)

    if as_json:
        _echo_json(result.to_dict(cfg.output.decimals), cfg.output.json_indent)
        return

    table = Table(title=f"Unitizing alpha ({study.rater_count} raters, L={study.length})")
    table.add_column("Category")
    table.add_column("Observed", justify="right")
    table.add_column("Expected", justify="right")
    table.add_column("Alpha", justify="right")

    digits = cfg.output.decimals
    for entry in result.categories:
        table.add_row(
            str(entry.category),
            f"{entry.observed:.{digits}f}",
            f"{entry.expected:.{digits}f}",
            f"{entry.agreement:.{digits}f}",
        )

    console.print(table)
    console.print(generate_text_report(result, digits), markup=False)


@main.command()
@click.argument("file", type=click.Path(exists=True, path_type=Path))
@config_option
@log_level_option
def align(file: Path, config: Optional[Path], log_level: Optional[str]) -> None:
    """
    Show the best alignments between two segmentations of a text.

    \b
    Example:
        seg-agreement align study.json
    """
    cfg = _load_settings(config, {}, log_level)
    settings = cfg.gamma
    dissimilarity = NominalFeatureTextDissimilarity()

    try:
        text1, text2 = _load_texts(file)
        aligner = PairwiseAligner.from_texts(
            text1, text2, gap_weight=settings.gap_weight, max_alignments=settings.max_alignments
        )
        alignments = merge_annotated_texts(
            text1,
            text2,
            max_distance=settings.max_distance,
            gap_weight=settings.gap_weight,
            max_alignments=settings.max_alignments,
        )
    except Exception as e:
        console.print(f"[red]Alignment error:[/red] {e}")
        sys.exit(1)

    console.print(
        f"[bold]Edits:[/bold] {aligner.insertions} insertion(s), "
        f"{aligner.deletions} deletion(s), {aligner.substitutions} substitution(s)"
    )
    if aligner.truncated:
        console.print(f"[yellow]Enumeration stopped after {settings.max_alignments} alignments[/yellow]")
    console.print(f"[bold]Alignments retained:[/bold] {len(alignments)}")

    for number, alignment in enumerate(alignments, 1):
        console.print()
        console.print(
            f"[bold]Alignment {number}[/bold] "
            f"(disorder {alignment.disorder(dissimilarity):.{cfg.output.decimals}f})"
        )
        for line in alignment.describe():
            console.print(f"  {line}", markup=False)


DEFAULT_CONFIG_YAML = """# Segmentation Agreement Configuration
# Environment variables override these values, e.g. SEGAGREE_GAMMA__PRECISION=0.05

# Gamma measure and expected disorder estimation
gamma:
  precision: 0.01
  alpha: 0.05
  gap_weight: 1
  max_alignments: 10000
  max_distance: null
  min_samples: 30
  max_samples: 1000000

# Random perturbations used to sample chance disorder
sampler:
  text_change_rate: 0.1
  segment_change_rate: 0.1
  random_seed: 42

# Krippendorff's unitizing alpha
unitizing:
  decimal_precision: 34

logging:
  level: "INFO"
  rich_console: true

output:
  json_indent: 2
  decimals: 4
"""


@main.command()
def init() -> None:
    """
    Initialize a new project with default configuration.

    Creates config/config.yml. If config.yml already exists, creates a
    timestamped backup first.
    """
    config_dir = Path("config")
    config_dir.mkdir(exist_ok=True)

    config_file = config_dir / "config.yml"

    if config_file.exists():
        timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
        backup_file = config_dir / f"config_{timestamp}.yml"
        shutil.copy(config_file, backup_file)
        console.print(f"[yellow]Backed up:[/yellow] {config_file} → {backup_file}")

    config_file.write_text(DEFAULT_CONFIG_YAML)
    console.print(f"[green]Created:[/green] {config_file}")


if __name__ == "__main__":
    main()
