"""spatialaug command-line interface."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import TYPE_CHECKING, Annotated, Any, NoReturn

import typer
from rich import box
from rich.console import Console
from rich.panel import Panel
from rich.progress import (
    BarColumn,
    Progress,
    SpinnerColumn,
    TextColumn,
    TimeElapsedColumn,
)
from rich.table import Table
from rich.tree import Tree

if TYPE_CHECKING:
    from spatialaug.api import Banksy
    from spatialaug.config import BanksyConfig

app = typer.Typer(
    name="spatialaug",
    help="spatialaug: neighborhood-augmented clustering for spatial omics",
    add_completion=False,
    rich_markup_mode="rich",
    no_args_is_help=True,
)

console = Console()

BANNER = """[bold cyan]
 ┌─┐┌─┐┌─┐┌┬┐┬┌─┐┬  ┌─┐┬ ┬┌─┐
 └─┐├─┘├─┤ │ │├─┤│  ├─┤│ ││ ┬
 └─┘┴  ┴ ┴ ┴ ┴┴ ┴┴─┘┴ ┴└─┘└─┘
[/bold cyan]
[dim]  ⬡ Neighborhood-augmented features for spatial omics ⬡[/dim]
"""


def _progress() -> Progress:
    return Progress(
        SpinnerColumn(),
        TextColumn("[bold blue]{task.description}"),
        BarColumn(bar_width=40),
        TimeElapsedColumn(),
        console=console,
        transient=False,
    )


def _fail(message: str) -> NoReturn:
    console.print(Panel(f"[red]{message}[/red]", border_style="red"))
    raise typer.Exit(1)


def _run_augment(
    input_path: str,
    coords: str | None,
    cfg: BanksyConfig,
    quiet: bool,
) -> Banksy:
    from spatialaug.api import Banksy

    inp = Path(input_path)
    if inp.suffix == ".csv" and coords is None:
        _fail("--coords is required for CSV input")

    banksy = Banksy(config=cfg)
    try:
        with _progress() as progress:
            task = progress.add_task("Building augmented matrix...", total=None)
            banksy.fit_transform(str(inp), coords=coords, verbose=not quiet)
            progress.update(task, completed=1, total=1)
    except (ValueError, KeyError) as exc:
        _fail(str(exc))
    return banksy


def _make_config(**kwargs: Any) -> BanksyConfig:
    from spatialaug.config import BanksyConfig
    from spatialaug.errors import SpatialAugError

    try:
        return BanksyConfig(**kwargs)
    except (SpatialAugError, ValueError) as exc:
        _fail(str(exc))


def _block_table(banksy: Banksy) -> Table:
    aug = banksy.augmented_
    tbl = Table(
        title="Augmented Matrix",
        box=box.DOUBLE_EDGE,
        show_header=True,
        header_style="bold cyan",
    )
    tbl.add_column("Block", style="bold")
    tbl.add_column("Columns", justify="right", style="green")
    tbl.add_column("Weight", justify="right", style="yellow")
    for name, cols in aug.blocks.items():
        tbl.add_row(name, f"{len(cols):,}", f"{aug.weights[name]:.4f}")
    tbl.add_row("[dim]observations[/dim]", f"{aug.shape[0]:,}", "")
    return tbl


# -----------------------------------------------------------------------
# augment
# -----------------------------------------------------------------------
@app.command()
def augment(
    input_path: Annotated[str, typer.Argument(help="Path to .h5ad or expression CSV")],
    coords: Annotated[
        str | None,
        typer.Option("--coords", "-c", help="Path to coordinates CSV (required for CSV input)"),
    ] = None,
    output_dir: Annotated[
        str, typer.Option("--output-dir", "-o", help="Output directory")
    ] = "spatialaug_output",
    lambda_: Annotated[
        float, typer.Option("--lambda", "-l", help="Neighborhood mixing weight in [0, 1]")
    ] = 0.2,
    k_geom: Annotated[int, typer.Option("--k-geom", "-k", help="Spatial neighbors")] = 15,
    group: Annotated[
        str | None, typer.Option("--group", "-g", help="Group/batch column")
    ] = None,
    no_split_scale: Annotated[
        bool, typer.Option("--no-split-scale", help="Scale globally instead of per group")
    ] = False,
    gradient: Annotated[
        bool, typer.Option("--gradient", help="Add the azimuthal gradient block")
    ] = False,
    harmonic: Annotated[int, typer.Option("--harmonic", help="Gradient harmonic order")] = 1,
    features: Annotated[
        str, typer.Option("--features", "-f", help="Feature selection: all or variable")
    ] = "variable",
    n_top: Annotated[
        int, typer.Option("--n-top", help="Number of highly variable features")
    ] = 2000,
    x_key: Annotated[str, typer.Option("--x-key", help="x coordinate column")] = "x",
    y_key: Annotated[str, typer.Option("--y-key", help="y coordinate column")] = "y",
    n_jobs: Annotated[int, typer.Option("--n-jobs", "-j", help="Per-group worker threads")] = 1,
    quiet: Annotated[bool, typer.Option("--quiet", "-q", help="Minimal output")] = False,
) -> None:
    """[bold cyan]Augment[/bold cyan] a feature matrix with neighborhood features.

    Writes the lambda-weighted matrix (own, neighbor mean and optional
    gradient blocks) for use with any downstream reduction or clustering.

    [bold]Examples:[/bold]
        spatialaug augment data.h5ad --lambda 0.2
        spatialaug augment expression.csv --coords coords.csv --group sample
    """
    from spatialaug.io.exporters import save_matrix, save_parameters

    if not quiet:
        console.print(BANNER)

    logging.basicConfig(
        level=logging.INFO if not quiet else logging.WARNING,
        format="%(message)s",
    )

    cfg = _make_config(
        lambda_=lambda_,
        k_geom=k_geom,
        group=group,
        split_scale=not no_split_scale,
        compute_gradient=gradient,
        harmonic=harmonic,
        features=features,
        n_top_features=n_top,
        coord_keys=(x_key, y_key),
        n_jobs=n_jobs,
    )

    out = Path(output_dir)
    out.mkdir(parents=True, exist_ok=True)

    banksy = _run_augment(input_path, coords, cfg, quiet)

    save_matrix(banksy.augmented_.values, out / "augmented.csv")
    save_parameters(banksy.params_, out / "parameters.json")
    if banksy.staggered_ is not None:
        save_matrix(banksy.staggered_, out / "staggered_coords.csv")

    console.print()
    console.print(_block_table(banksy))

    tree = Tree(f"[bold green]{out}/[/bold green]", guide_style="dim")
    tree.add("[cyan]augmented.csv[/cyan] -- augmented matrix")
    tree.add("[cyan]parameters.json[/cyan] -- parameters used")
    if banksy.staggered_ is not None:
        tree.add("[cyan]staggered_coords.csv[/cyan] -- plotting coordinates")

    console.print()
    console.print(Panel(tree, title="Output Files", border_style="green"))


# -----------------------------------------------------------------------
# cluster
# -----------------------------------------------------------------------
@app.command()
def cluster(
    input_path: Annotated[str, typer.Argument(help="Path to .h5ad or expression CSV")],
    coords: Annotated[
        str | None,
        typer.Option("--coords", "-c", help="Path to coordinates CSV (required for CSV input)"),
    ] = None,
    output_dir: Annotated[
        str, typer.Option("--output-dir", "-o", help="Output directory")
    ] = "spatialaug_output",
    lambda_: Annotated[
        float, typer.Option("--lambda", "-l", help="Neighborhood mixing weight in [0, 1]")
    ] = 0.2,
    k_geom: Annotated[int, typer.Option("--k-geom", "-k", help="Spatial neighbors")] = 15,
    group: Annotated[
        str | None, typer.Option("--group", "-g", help="Group/batch column")
    ] = None,
    no_split_scale: Annotated[
        bool, typer.Option("--no-split-scale", help="Scale globally instead of per group")
    ] = False,
    gradient: Annotated[
        bool, typer.Option("--gradient", help="Add the azimuthal gradient block")
    ] = False,
    harmonic: Annotated[int, typer.Option("--harmonic", help="Gradient harmonic order")] = 1,
    features: Annotated[
        str, typer.Option("--features", "-f", help="Feature selection: all or variable")
    ] = "variable",
    n_top: Annotated[
        int, typer.Option("--n-top", help="Number of highly variable features")
    ] = 2000,
    x_key: Annotated[str, typer.Option("--x-key", help="x coordinate column")] = "x",
    y_key: Annotated[str, typer.Option("--y-key", help="y coordinate column")] = "y",
    n_jobs: Annotated[int, typer.Option("--n-jobs", "-j", help="Per-group worker threads")] = 1,
    n_pcs: Annotated[int, typer.Option("--n-pcs", help="Principal components")] = 20,
    method: Annotated[
        str, typer.Option("--method", "-m", help="Clustering: leiden or kmeans")
    ] = "leiden",
    resolution: Annotated[float, typer.Option("--resolution", "-r", help="Leiden resolution")] = 0.8,
    n_clusters: Annotated[int, typer.Option("--n-clusters", help="k-means clusters")] = 8,
    embedding: Annotated[
        str, typer.Option("--embedding", "-e", help="Embedding: umap, pacmap or none")
    ] = "umap",
    seed: Annotated[int, typer.Option("--seed", help="Random seed")] = 42,
    no_plot: Annotated[
        bool, typer.Option("--no-plot", help="Skip generating visualisation")
    ] = False,
    quiet: Annotated[bool, typer.Option("--quiet", "-q", help="Minimal output")] = False,
) -> None:
    """[bold cyan]Cluster[/bold cyan] observations on the augmented matrix.

    Builds the augmented matrix, then runs PCA, Leiden or k-means
    clustering and a UMAP or PaCMAP embedding.

    [bold]Examples:[/bold]
        spatialaug cluster data.h5ad --lambda 0.8 --resolution 0.5
        spatialaug cluster data.h5ad --group sample --embedding pacmap
    """
    from spatialaug.io.exporters import save_matrix, save_parameters

    if not quiet:
        console.print(BANNER)

    logging.basicConfig(
        level=logging.INFO if not quiet else logging.WARNING,
        format="%(message)s",
    )

    cfg = _make_config(
        lambda_=lambda_,
        k_geom=k_geom,
        group=group,
        split_scale=not no_split_scale,
        compute_gradient=gradient,
        harmonic=harmonic,
        features=features,
        n_top_features=n_top,
        coord_keys=(x_key, y_key),
        n_jobs=n_jobs,
        n_pcs=n_pcs,
        cluster_method=method,
        resolution=resolution,
        n_clusters=n_clusters,
        embedding=None if embedding == "none" else embedding,
        random_state=seed,
    )

    out = Path(output_dir)
    out.mkdir(parents=True, exist_ok=True)

    banksy = _run_augment(input_path, coords, cfg, quiet)

    try:
        with _progress() as progress:
            task = progress.add_task("Clustering...", total=None)
            clusters = banksy.embed_and_cluster()
            progress.update(task, completed=1, total=1)
    except ImportError as exc:
        _fail(str(exc))

    save_matrix(clusters, out / "clusters.csv")
    save_parameters(banksy.params_, out / "parameters.json")

    if not no_plot:
        try:
            with _progress() as progress:
                task = progress.add_task("Generating plots...", total=None)
                banksy.plot_results(save_path=str(out / "clusters.png"))
                progress.update(task, completed=1, total=1)
        except Exception as exc:
            console.print(f"[yellow]Warning: could not generate plots: {exc}[/yellow]")

    summary = Table(
        title="Clusters",
        box=box.DOUBLE_EDGE,
        show_header=True,
        header_style="bold cyan",
    )
    summary.add_column("Cluster", style="bold")
    summary.add_column("Count", justify="right", style="green")
    summary.add_column("Percentage", justify="right", style="yellow")

    total = len(clusters)
    counts = clusters["cluster"].value_counts().sort_index()
    for label, count in counts.items():
        summary.add_row(str(label), f"{count:,}", f"{count / total * 100:.1f}%")

    console.print()
    console.print(_block_table(banksy))
    console.print()
    console.print(summary)

    tree = Tree(f"[bold green]{out}/[/bold green]", guide_style="dim")
    tree.add("[cyan]clusters.csv[/cyan] -- cluster labels and embedding")
    tree.add("[cyan]parameters.json[/cyan] -- parameters used")
    if not no_plot:
        tree.add("[cyan]clusters.png[/cyan] -- visualisation")

    console.print()
    console.print(Panel(tree, title="Output Files", border_style="green"))


# -----------------------------------------------------------------------
# info
# -----------------------------------------------------------------------
@app.command()
def info() -> None:
    """[bold cyan]Show[/bold cyan] spatialaug version and dependency information.

    [bold]Examples:[/bold]
        spatialaug info
    """
    import importlib.metadata as importlib_metadata

    from spatialaug import __version__

    console.print(BANNER)

    tbl = Table(box=box.ROUNDED, show_header=False)
    tbl.add_column("", style="cyan")
    tbl.add_column("")

    tbl.add_row("Version", f"[bold]{__version__}[/bold]")
    tbl.add_row("Package", "spatialaug")

    for dist in ("numpy", "pandas", "scikit-learn", "scanpy", "anndata", "leidenalg", "pacmap"):
        try:
            version = importlib_metadata.version(dist)
        except importlib_metadata.PackageNotFoundError:
            version = "[red]not installed[/red]"
        tbl.add_row(dist, version)

    console.print(tbl)


if __name__ == "__main__":
    app()
