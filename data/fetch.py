from pathlib import Path

import click

RAW_DATA_DIR = Path(__file__).parent / "raw"

PRACTICES_TABLE = "practices"
BENCHMARKS_TABLE = "benchmarks"
PROVIDER_CODES_TABLE = "provider_codes"


def find_data_dir(data_dir: Path | None = None) -> Path:
    if data_dir is None:
        data_dir = RAW_DATA_DIR

    if not data_dir.exists():
        raise click.ClickException(
            f"Data directory {data_dir} not found. "
            "Place practices.csv (or .parquet) in data/raw/ or pass --data-dir."
        )
    return data_dir


def find_table(data_dir: Path, name: str, required: bool = True) -> Path | None:
    """Find the file holding table `name` in the data directory.

    Prefers Parquet over CSV for faster loading.
    """
    for suffix in (".parquet", ".csv"):
        path = data_dir / f"{name}{suffix}"
        if path.exists():
            return path

    if required:
        raise click.ClickException(
            f"No {name}.parquet or {name}.csv found in {data_dir}."
        )
    return None
