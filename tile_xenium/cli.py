"""Command-line interface for Tile-Xenium."""

import json
import logging
import sys
from pathlib import Path

import click
import numpy as np

from . import __version__
from .config import DEFAULT_EXCLUDE_PREFIXES, TileConfig
from .errors import ConfigError
from .io.reader import read_transcripts
from .pipeline import TilingPipeline
from .transcripts.cell_id import UNASSIGNED_CELL_IDS


def setup_logging(verbose: bool) -> None:
    """Configure logging based on verbosity level."""
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        handlers=[logging.StreamHandler(sys.stdout)],
    )


def _run_pipeline(config: TileConfig) -> None:
    logger = logging.getLogger(__name__)

    try:
        config.validate()
    except (FileNotFoundError, ConfigError) as e:
        logger.error(f"Configuration error: {e}")
        raise click.ClickException(str(e))

    pipeline = TilingPipeline(config)
    try:
        pipeline.run()
        logger.info("Tiling completed successfully!")
    except Exception as e:
        logger.error(f"Pipeline failed: {e}")
        raise click.ClickException(str(e))


@click.group()
@click.version_option(version=__version__)
def main():
    """Tile-Xenium CLI.

    Create tiles and filter transcripts from a Xenium transcripts table
    based on Q-Score. Removes negative controls.
    """
    pass


@main.command()
@click.argument(
    "in_file",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
)
@click.option(
    "--min-qv",
    default=20.0,
    type=float,
    show_default=True,
    help="Minimum Q-Score to pass filtering",
)
@click.option("--width", default=4000.0, type=float, show_default=True, help="Tile width (microns)")
@click.option("--height", default=4000.0, type=float, show_default=True, help="Tile height (microns)")
@click.option(
    "--overlap",
    default=500.0,
    type=float,
    show_default=True,
    help="Overlap between tiles, also the expansion step for sparse tiles",
)
@click.option(
    "--minimal-transcripts",
    default=100000,
    type=int,
    show_default=True,
    help="Minimal number of transcripts per tile; sparser tiles are expanded by the overlap",
)
@click.option(
    "--nucleus-only",
    is_flag=True,
    default=False,
    help="Only keep cell assignments of transcripts in the nucleus",
)
@click.option(
    "--exclude-genes",
    "exclude_genes",
    multiple=True,
    help=(
        "Feature name prefix to drop (can specify multiple). "
        f"Default: {', '.join(DEFAULT_EXCLUDE_PREFIXES)}"
    ),
)
@click.option(
    "--out-dir",
    default=Path("."),
    type=click.Path(file_okay=False, path_type=Path),
    show_default=True,
    help="Output directory. Tiles are named "
    "X{x-min}-{x-max}_Y{y-min}-{y-max}_filtered_transcripts_nucleus_only_{nucleus_only}.csv",
)
@click.option("--workers", "-j", default=4, type=int, show_default=True, help="Threads computing tiles")
@click.option(
    "--batch-size",
    default=1_000_000,
    type=int,
    show_default=True,
    help="Rows read per input chunk",
)
@click.option(
    "--verbose", "-v",
    is_flag=True,
    help="Enable verbose logging",
)
def run(
    in_file: Path,
    min_qv: float,
    width: float,
    height: float,
    overlap: float,
    minimal_transcripts: int,
    nucleus_only: bool,
    exclude_genes: tuple[str, ...],
    out_dir: Path,
    workers: int,
    batch_size: int,
    verbose: bool,
):
    """Filter IN_FILE (transcripts.csv[.gz] or .parquet) and write tiles.

    Example:
        tile-xenium run transcripts.parquet --out-dir tiles --nucleus-only
    """
    setup_logging(verbose)
    logger = logging.getLogger(__name__)

    logger.info(f"Input: {in_file}")
    logger.info(f"Output: {out_dir}")

    config = TileConfig(
        input_path=in_file,
        output_dir=out_dir,
        min_qv=min_qv,
        width=width,
        height=height,
        overlap=overlap,
        minimal_transcripts=minimal_transcripts,
        nucleus_only=nucleus_only,
        n_workers=workers,
        batch_size=batch_size,
    )
    if exclude_genes:
        config.exclude_prefixes = list(exclude_genes)

    _run_pipeline(config)


@main.command()
@click.option(
    "--config", "-c",
    "config_path",
    required=True,
    type=click.Path(exists=True, path_type=Path),
    help="Path to YAML configuration file",
)
@click.option(
    "--verbose", "-v",
    is_flag=True,
    help="Enable verbose logging",
)
def from_config(config_path: Path, verbose: bool):
    """Run tiling from a YAML configuration file.

    Example:
        tile-xenium from-config -c config.yaml
    """
    setup_logging(verbose)
    logger = logging.getLogger(__name__)

    logger.info(f"Loading configuration from: {config_path}")

    try:
        config = TileConfig.from_yaml(config_path)
    except ConfigError as e:
        raise click.ClickException(str(e))

    _run_pipeline(config)


@main.command()
@click.option(
    "--output", "-o",
    "output_path",
    required=True,
    type=click.Path(path_type=Path),
    help="Output path for example configuration",
)
def init_config(output_path: Path):
    """Generate an example configuration file.

    Example:
        tile-xenium init-config -o config.yaml
    """
    config = TileConfig(
        input_path=Path("transcripts.parquet"),
        output_dir=Path("./tiles"),
    )
    config.to_yaml(output_path)
    click.echo(f"Configuration saved to: {output_path}")


@main.command()
@click.argument(
    "in_file",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
)
@click.option(
    "--batch-size",
    default=1_000_000,
    type=int,
    help="Rows read per input chunk",
)
def info(in_file: Path, batch_size: int):
    """Print a JSON summary of a transcripts table.

    Example:
        tile-xenium info transcripts.parquet
    """
    n_rows = 0
    n_unassigned = 0
    n_in_nucleus = 0
    x_lo = y_lo = np.inf
    x_hi = y_hi = -np.inf
    prefix_counts = {p: 0 for p in DEFAULT_EXCLUDE_PREFIXES}
    qvs = []
    columns: list[str] = []

    try:
        for chunk in read_transcripts(in_file, batch_size=batch_size):
            columns = columns or list(chunk.columns)
            n_rows += len(chunk)
            n_unassigned += int(chunk["cell_id"].isin(UNASSIGNED_CELL_IDS).sum())
            n_in_nucleus += int(chunk["overlaps_nucleus"].sum())
            x_lo = min(x_lo, chunk["x_location"].min())
            x_hi = max(x_hi, chunk["x_location"].max())
            y_lo = min(y_lo, chunk["y_location"].min())
            y_hi = max(y_hi, chunk["y_location"].max())
            for prefix in prefix_counts:
                prefix_counts[prefix] += int(chunk["feature_name"].str.startswith(prefix).sum())
            qvs.append(chunk["qv"].to_numpy())
    except ValueError as e:
        raise click.ClickException(str(e))

    summary = {
        "file": str(in_file),
        "n_transcripts": n_rows,
        "columns": columns,
        "n_unassigned": n_unassigned,
        "n_overlaps_nucleus": n_in_nucleus,
        "excluded_prefix_counts": prefix_counts,
    }
    if n_rows:
        qv = np.concatenate(qvs)
        summary["x_range"] = [float(x_lo), float(x_hi)]
        summary["y_range"] = [float(y_lo), float(y_hi)]
        quantiles = (0.05, 0.25, 0.5, 0.75, 0.95)
        summary["qv_quantiles"] = {
            str(q): float(v) for q, v in zip(quantiles, np.quantile(qv, quantiles))
        }
        summary["n_qv_ge_20"] = int((qv >= 20).sum())

    click.echo(json.dumps(summary, indent=2))


if __name__ == "__main__":
    main()
