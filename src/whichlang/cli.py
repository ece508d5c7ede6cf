"""Command-line interface for whichlang.

Provides ``algorithms``, ``train``, ``classify``, ``rate``, ``shrink-svm``
and ``subsample`` commands with rich terminal output using the ``click``
and ``rich`` libraries.

Usage::

    whichlang train svm samples/ svm.json --ubiquity 10
    whichlang classify svm svm.json main.go
    whichlang rate svm svm.json test-samples/
"""

from __future__ import annotations

import json
import logging
import sys
from pathlib import Path
from typing import NoReturn

import click
from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table

from . import registry
from .config import config_for, parse_overrides
from .idtree import IDTree
from .models import Algorithm
from .rater import rate as rate_samples
from .svm import SVMClassifier
from .tokens import (
    count_tokens,
    num_tokens,
    prune,
    read_sample_counts,
    sample_freqs,
    subsample_directory,
    to_freqs,
)

console = Console()


def _setup_logging(verbosity: int) -> None:
    level = {0: logging.WARNING, 1: logging.INFO}.get(verbosity, logging.DEBUG)
    logging.basicConfig(
        level=level,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=Console(stderr=True), show_path=False)],
        force=True,
    )


def _fail(message: object) -> NoReturn:
    console.print(f"[bold red]Error:[/] {escape(str(message))}")
    sys.exit(1)


def _load_model(algorithm: str, model: Path):
    try:
        return registry.decode(algorithm, model.read_bytes())
    except (ValueError, OSError) as e:
        _fail(e)


@click.group()
@click.version_option(package_name="whichlang")
@click.option("--verbose", "-v", count=True, help="Log progress (repeat for debug output).")
@click.pass_context
def main(ctx: click.Context, verbose: int) -> None:
    """Guess the programming language of source files.

    Train classifiers on a directory of labeled samples, then use them to
    classify new files.
    """
    ctx.ensure_object(dict)
    ctx.obj["verbose"] = verbose
    _setup_logging(verbose)


@main.command()
def algorithms() -> None:
    """List the available classification algorithms."""
    table = Table(title="Algorithms")
    table.add_column("Name", style="cyan")
    table.add_column("Description", style="white")
    for algorithm in Algorithm:
        table.add_row(algorithm.value, registry.DESCRIPTIONS[algorithm])
    console.print(table)


@main.command()
@click.argument("algorithm")
@click.argument("sample_dir", type=click.Path(exists=True, file_okay=False, path_type=Path))
@click.argument("output", type=click.Path(dir_okay=False, path_type=Path))
@click.option("--ubiquity", "-u", type=click.IntRange(min=0), default=0, show_default=True,
              help="Drop tokens which appear in this many files or fewer.")
@click.option("--param", "-p", "params", multiple=True,
              help="Trainer parameter as key=value (repeatable).")
@click.pass_context
def train(
    ctx: click.Context,
    algorithm: str,
    sample_dir: Path,
    output: Path,
    ubiquity: int,
    params: tuple[str, ...],
) -> None:
    """Train a classifier on a directory of labeled samples.

    SAMPLE_DIR holds one sub-directory of source files per language.

    Example: whichlang train knn samples/ knn.json --param validation_fraction=0.2
    """
    try:
        name = registry.lookup(algorithm).value
        overrides = parse_overrides(name, list(params))
        if ctx.obj.get("verbose"):
            overrides.setdefault("verbose", True)
        config = config_for(name, **overrides)
    except (ValueError, TypeError) as e:
        _fail(e)

    try:
        with console.status("[bold blue]Reading samples...", spinner="dots"):
            counts = read_sample_counts(sample_dir)
        old_count = num_tokens(counts)
        counts = prune(counts, ubiquity)
        new_count = num_tokens(counts)
        console.print(f"Pruned {old_count - new_count}/{old_count} tokens.")

        with console.status(f"[bold blue]Training {name}...", spinner="dots"):
            classifier = registry.train(name, sample_freqs(counts), config)

        output.write_bytes(classifier.encode())
    except (ValueError, OSError) as e:
        _fail(e)

    console.print(
        f"[green]Saved[/] {name} model for {len(classifier.languages())} languages to {output}"
    )


@main.command()
@click.argument("algorithm")
@click.argument("model", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.argument("file", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option("--output", "-o", type=click.Choice(["rich", "json"]), default="rich",
              help="Output format.")
def classify(algorithm: str, model: Path, file: Path, output: str) -> None:
    """Classify a source file with a trained model.

    Example: whichlang classify svm svm.json main.go
    """
    classifier = _load_model(algorithm, model)
    try:
        freqs = to_freqs(count_tokens(file.read_text(encoding="utf-8", errors="replace")))
    except OSError as e:
        _fail(e)

    result: dict = {"file": str(file), "algorithm": classifier.algorithm.value}
    if isinstance(classifier, IDTree):
        result["language"], result["confidence"] = classifier.classify_with_confidence(freqs)
    else:
        result["language"] = classifier.classify(freqs)

    if output == "json":
        click.echo(json.dumps(result, indent=2))
        return

    body = f"[bold]{result['language']}[/]"
    if "confidence" in result:
        body += f"\nLeaf confidence: {result['confidence']:.0%}"
    console.print(Panel(body, title=f"Classification: {file.name}", border_style="blue"))


@main.command()
@click.argument("algorithm")
@click.argument("model", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.argument("sample_dir", type=click.Path(exists=True, file_okay=False, path_type=Path))
@click.option("--output", "-o", type=click.Choice(["rich", "json"]), default="rich",
              help="Output format.")
@click.option("--workers", "-w", type=click.IntRange(min=1), default=None,
              help="Worker threads (default: CPU count).")
def rate(algorithm: str, model: Path, sample_dir: Path, output: str, workers: int | None) -> None:
    """Measure a model's accuracy on a directory of labeled samples.

    Example: whichlang rate svm svm.json test-samples/
    """
    classifier = _load_model(algorithm, model)
    try:
        with console.status("[bold blue]Rating...", spinner="dots"):
            rating = rate_samples(classifier, read_sample_counts(sample_dir), workers=workers)
    except (ValueError, OSError) as e:
        _fail(e)

    if output == "json":
        click.echo(json.dumps(rating.to_dict(), indent=2))
        return

    table = Table(title=f"Rating: {model.name}")
    table.add_column("Language", style="cyan")
    table.add_column("Correct", justify="right")
    table.add_column("Success rate", justify="right")
    table.add_column("Precision", justify="right")
    table.add_column("Most confused with", style="yellow")
    for r in rating.ranked():
        table.add_row(
            r.language,
            f"{r.correct}/{r.total}",
            f"{r.success_rate:.2%}",
            f"{r.precision:.2%}",
            r.most_mistaken_for or "",
        )
    console.print(table)
    console.print(
        f"Overall: [bold]{rating.success_rate:.2%}[/] ({rating.correct}/{rating.total})"
    )


@main.command("shrink-svm")
@click.argument("input_file", metavar="INPUT", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.argument("output", type=click.Path(dir_okay=False, path_type=Path))
def shrink_svm(input_file: Path, output: Path) -> None:
    """Collapse a linear SVM's support vectors into one vector per language.

    Example: whichlang shrink-svm svm.json svm-small.json
    """
    classifier = _load_model(Algorithm.SVM.value, input_file)
    if not isinstance(classifier, SVMClassifier):
        _fail(f"{input_file} is not an SVM model")
    try:
        shrunk = classifier.shrink()
        output.write_bytes(shrunk.encode())
    except (ValueError, OSError) as e:
        _fail(e)
    console.print(
        f"[green]Shrunk[/] {classifier.support_vector_count} support vectors "
        f"to {shrunk.support_vector_count}; saved to {output}"
    )


@main.command()
@click.argument("num_lines", type=int)
@click.argument("sample_dir", type=click.Path(exists=True, file_okay=False, path_type=Path))
def subsample(num_lines: int, sample_dir: Path) -> None:
    """Write NUM_LINES-line excerpts of every sample file.

    Each excerpt is saved next to its source as <name>_subsample_<n><ext>.

    Example: whichlang subsample 20 samples/
    """
    try:
        written = subsample_directory(sample_dir, num_lines)
    except (ValueError, OSError) as e:
        _fail(e)
    console.print(f"Wrote {len(written)} subsample files.")


if __name__ == "__main__":
    main()
