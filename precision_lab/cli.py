"""
cli.py - Rich Command Line Interface for Precision Lab

A thin driver around the pipeline: read a CSV, build precision graphs, print
summaries and write renderer-ready snapshots.

Usage:
    precision-lab --help
    precision-lab build returns.csv --rank 5 --quantile 0.9 --output graph.json
    precision-lab sweep returns.csv --rank 5 -q 0.8 -q 0.9 -q 0.95 --workers 4
    precision-lab spectrum returns.csv --top 10
    precision-lab version
"""

from __future__ import annotations

from enum import Enum
from pathlib import Path
from typing import List, Optional, Tuple

import numpy as np
import typer
from rich import box
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from .errors import PrecisionLabError

# Initialize Typer app and Rich console
app = typer.Typer(
    name="precision-lab",
    help="Precision Lab: regularized precision graphs and their communities",
    add_completion=False,
    rich_markup_mode="rich",
)
console = Console()


# =============================================================================
# ENUMS FOR CLI OPTIONS
# =============================================================================

class SolverChoice(str, Enum):
    """Eigen-solver choices."""
    lapack = "lapack"
    jacobi = "jacobi"


class ExecutorChoice(str, Enum):
    """Sweep pool types."""
    thread = "thread"
    process = "process"


class OutputFormat(str, Enum):
    """Snapshot file formats."""
    json = "json"
    npz = "npz"


# =============================================================================
# UTILITY FUNCTIONS
# =============================================================================

def load_input(path: Path, prices: bool, index_col: bool) -> Tuple[np.ndarray, List[str]]:
    """Load returns (or prices converted to log returns) from CSV."""
    from precision_lab.io import load_returns_csv
    from precision_lab.preprocessing import prices_to_returns

    try:
        data, labels = load_returns_csv(path, index_col=index_col)
        if prices:
            data = prices_to_returns(data)
    except FileNotFoundError:
        console.print(f"[red]Error:[/red] File not found: {path}")
        raise typer.Exit(1)
    except PrecisionLabError as e:
        console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(1)
    return data, labels


def print_snapshot_summary(snapshot, title: str = "Precision Graph"):
    """Print a rich summary of a graph snapshot."""
    assignment = snapshot.assignment

    table = Table(title=title, box=box.ROUNDED, show_header=False, title_style="bold cyan")
    table.add_column("Property", style="dim")
    table.add_column("Value", style="bold")

    table.add_row("Series", str(len(snapshot.nodes)))
    table.add_row("Rank", str(snapshot.rank))
    table.add_row("Quantile", f"{snapshot.quantile:.3f}")
    table.add_row("Threshold", f"{snapshot.threshold:.4f}")
    table.add_row("Edges", str(len(snapshot.edges)))
    n_comm = assignment.n_groups - (1 if assignment.unassociated_group else 0)
    table.add_row("Communities", str(n_comm))
    if assignment.unassociated_group:
        n_alone = len(assignment.members(assignment.unassociated_group))
        table.add_row("Unassociated", str(n_alone))
    console.print(table)

    groups = Table(title="Groups", box=box.SIMPLE)
    groups.add_column("Id", justify="right")
    groups.add_column("Color")
    groups.add_column("Size", justify="right")
    groups.add_column("Members", style="cyan")
    for gid, members in assignment.groups().items():
        color = assignment.color_of(gid)
        names = [snapshot.nodes[i].label for i in members]
        shown = ", ".join(names[:8]) + ("..." if len(names) > 8 else "")
        name = f"{gid}*" if gid == assignment.unassociated_group else str(gid)
        groups.add_row(name, f"[{color}]■[/] {color}", str(len(members)), shown)
    console.print(groups)


def _fail(e: Exception):
    console.print(f"[red]Error:[/red] {e}")
    raise typer.Exit(1)


# =============================================================================
# COMMANDS
# =============================================================================

@app.command()
def build(
    input_file: Path = typer.Argument(..., help="CSV file (rows=time, cols=series, header=labels)"),
    rank: int = typer.Option(..., "--rank", "-r", help="Truncation rank N"),
    quantile: float = typer.Option(0.9, "--quantile", "-q", help="Threshold quantile in (0, 1)"),
    floor: float = typer.Option(1e-10, "--floor", help="Eigenvalue floor"),
    method: SolverChoice = typer.Option(SolverChoice.lapack, "--method", "-m", help="Eigen-solver"),
    budget: int = typer.Option(100, "--budget", help="Jacobi sweep budget"),
    prices: bool = typer.Option(False, "--prices", help="Input holds prices; convert to log returns"),
    index_col: bool = typer.Option(False, "--index-col", help="First column is an index (e.g. dates)"),
    offdiag: bool = typer.Option(False, "--offdiag", help="Take the quantile over off-diagonal entries only"),
    seed: int = typer.Option(42, "--seed", "-s", help="Louvain seed"),
    output: Optional[Path] = typer.Option(None, "--output", "-o", help="Snapshot output path"),
    format: OutputFormat = typer.Option(OutputFormat.json, "--format", "-f", help="Output format"),
):
    """
    Build one precision graph and detect its communities.

    Example:
        precision-lab build returns.csv --rank 5 --quantile 0.9 -o graph.json
    """
    from precision_lab import PipelineConfig, PrecisionGraphPipeline, save_snapshot, SnapshotFormat

    console.print(Panel.fit("🕸  [bold]Precision Graph[/bold]", border_style="blue"))

    returns, labels = load_input(input_file, prices, index_col)
    T, S = returns.shape
    console.print(f"  Loaded returns: [cyan]{T}[/cyan] observations × [cyan]{S}[/cyan] series")

    try:
        cfg = PipelineConfig(
            rank=rank,
            threshold_quantile=quantile,
            eigenvalue_floor=floor,
            convergence_budget=budget,
            eigen_method=method.value,
            include_diagonal=not offdiag,
            seed=seed,
        )
        pipeline = PrecisionGraphPipeline(cfg)
        with console.status("[bold blue]Estimating precision matrix..."):
            result = pipeline.fit(returns, labels)
        with console.status("[bold blue]Detecting communities..."):
            snapshot = pipeline.graph(result)
    except PrecisionLabError as e:
        _fail(e)

    console.print("  [green]✓[/green] Graph built successfully\n")
    print_snapshot_summary(snapshot)

    if output is not None:
        save_snapshot(snapshot, output, SnapshotFormat(format.value))
        console.print(f"\n  💾 Saved to: [bold]{output}[/bold]")


@app.command()
def sweep(
    input_file: Path = typer.Argument(..., help="CSV file (rows=time, cols=series, header=labels)"),
    rank: int = typer.Option(..., "--rank", "-r", help="Truncation rank N"),
    quantiles: List[float] = typer.Option(..., "--quantile", "-q", help="Threshold quantile (repeatable)"),
    workers: Optional[int] = typer.Option(None, "--workers", "-w", help="Parallel workers"),
    executor: ExecutorChoice = typer.Option(ExecutorChoice.thread, "--executor", help="Pool type"),
    prices: bool = typer.Option(False, "--prices", help="Input holds prices; convert to log returns"),
    index_col: bool = typer.Option(False, "--index-col", help="First column is an index (e.g. dates)"),
    output: Optional[Path] = typer.Option(None, "--output", "-o", help="JSON file for all snapshots"),
):
    """
    Build graphs for several threshold quantiles over one precision matrix.

    Example:
        precision-lab sweep returns.csv -r 5 -q 0.8 -q 0.9 -q 0.95 -w 4
    """
    from precision_lab import PipelineConfig, PrecisionGraphPipeline, save_sweep

    console.print(Panel.fit("🔁 [bold]Threshold Sweep[/bold]", border_style="blue"))

    returns, labels = load_input(input_file, prices, index_col)

    try:
        cfg = PipelineConfig(rank=rank, threshold_quantile=quantiles[0])
        pipeline = PrecisionGraphPipeline(cfg)
        with console.status("[bold blue]Estimating precision matrix..."):
            result = pipeline.fit(returns, labels)
        with console.status(f"[bold blue]Building {len(quantiles)} graphs..."):
            snapshots = pipeline.sweep(result, quantiles, max_workers=workers, executor=executor.value)
    except PrecisionLabError as e:
        _fail(e)

    table = Table(title="Sweep Results", box=box.ROUNDED)
    table.add_column("Quantile", justify="right")
    table.add_column("Threshold", justify="right")
    table.add_column("Edges", justify="right")
    table.add_column("Communities", justify="right")
    table.add_column("Unassociated", justify="right")
    for snap in snapshots:
        a = snap.assignment
        n_alone = len(a.members(a.unassociated_group)) if a.unassociated_group else 0
        n_comm = a.n_groups - (1 if a.unassociated_group else 0)
        table.add_row(
            f"{snap.quantile:.3f}",
            f"{snap.threshold:.4f}",
            str(len(snap.edges)),
            str(n_comm),
            str(n_alone),
        )
    console.print(table)

    if output is not None:
        save_sweep(snapshots, output)
        console.print(f"\n  💾 Saved to: [bold]{output}[/bold]")


@app.command()
def spectrum(
    input_file: Path = typer.Argument(..., help="CSV file (rows=time, cols=series, header=labels)"),
    top: int = typer.Option(10, "--top", "-n", help="Number of eigenvalues to show"),
    prices: bool = typer.Option(False, "--prices", help="Input holds prices; convert to log returns"),
    index_col: bool = typer.Option(False, "--index-col", help="First column is an index (e.g. dates)"),
):
    """
    Show the correlation spectrum and suggested ranks.

    Example:
        precision-lab spectrum returns.csv --top 15
    """
    from precision_lab import (
        estimate_correlation,
        spectral_decomposition,
        marchenko_pastur_rank,
        select_rank_by_variance,
    )

    returns, labels = load_input(input_file, prices, index_col)

    try:
        corr = estimate_correlation(returns, labels)
        decomp = spectral_decomposition(corr)
    except PrecisionLabError as e:
        _fail(e)

    T = corr.n_observations
    edge = (1.0 + np.sqrt(corr.size / T)) ** 2

    table = Table(title="Correlation Spectrum", box=box.ROUNDED)
    table.add_column("#", justify="right", style="dim")
    table.add_column("Eigenvalue", justify="right")
    table.add_column("Cumulative", justify="right")
    table.add_column("Signal", justify="center")
    n_show = min(top, decomp.size)
    for i in range(n_show):
        val = decomp.eigenvalues[i]
        table.add_row(
            str(i + 1),
            f"{val:.4f}",
            f"{decomp.explained_variance(i + 1):.1%}",
            "[green]✓[/green]" if val > edge else "",
        )
    if decomp.size > n_show:
        table.add_row("...", f"({decomp.size - n_show} more)", "", "")
    console.print(table)

    console.print(f"  Marchenko-Pastur edge: [cyan]{edge:.4f}[/cyan]")
    console.print(f"  Suggested rank (MP): [cyan]{marchenko_pastur_rank(decomp, T)}[/cyan]")
    console.print(f"  Suggested rank (90% variance): [cyan]{select_rank_by_variance(decomp, 0.9)}[/cyan]")


@app.command()
def version():
    """Show version information."""
    from precision_lab import __version__

    console.print(Panel(
        f"[bold cyan]Precision Lab[/bold cyan] v{__version__}\n\n"
        "Regularized precision matrices, thresholded graphs\n"
        "and community detection for many time series.",
        border_style="cyan"
    ))


# =============================================================================
# ENTRY POINT
# =============================================================================

def main():
    """Main entry point for the CLI."""
    app()


if __name__ == "__main__":
    main()
