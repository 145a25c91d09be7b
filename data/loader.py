from pathlib import Path

import click
import polars as pl
import polars.selectors as cs

from data.fetch import (
    BENCHMARKS_TABLE,
    PRACTICES_TABLE,
    PROVIDER_CODES_TABLE,
    find_data_dir,
    find_table,
)
from data.models import (
    CodeStats,
    PracticeProfile,
    ProgramAdoptionCounts,
    SpecialtyBenchmark,
    SpecialtyStateAggregate,
    StateAggregate,
)

# Column name mapping: internal -> CMS-derived table columns
COLUMN_MAP = {
    "total_payment": "total_medicare_payment",
    "ccm_services": "ccm_99490_services",
    "ccm_payment": "ccm_99490_payment",
    "bhi_services": "bhi_99484_services",
    "bhi_payment": "bhi_99484_payment",
    "avg_patients": "avg_medicare_patients",
}

REVERSE_MAP = {v: k for k, v in COLUMN_MAP.items()}

PRACTICE_REQUIRED = ["npi", "specialty", "state", "total_beneficiaries", "total_services", "total_payment"]
PRACTICE_COUNTS = [
    "em_99213", "em_99214", "em_99215", "em_total",
    "ccm_services", "rpm_99454_services", "rpm_99457_services", "bhi_services",
    "awv_g0438_services", "awv_g0439_services",
]
PRACTICE_AMOUNTS = ["ccm_payment", "rpm_payment", "bhi_payment", "awv_payment"]

BENCHMARK_REQUIRED = [
    "specialty", "provider_count", "avg_patients", "avg_revenue_per_patient", "avg_total_payment",
    "pct_99213", "pct_99214", "pct_99215",
]
ADOPTION_RATES = ["ccm_adoption_rate", "rpm_adoption_rate", "bhi_adoption_rate", "awv_adoption_rate"]
CHRONIC_COLUMNS = [
    "chronic_diabetes_pct", "chronic_hypertension_pct", "chronic_heart_failure_pct",
    "chronic_depression_pct", "chronic_copd_pct",
]

CODE_REQUIRED = ["npi", "hcpcs_code", "services", "payment"]

MIN_BENCHMARK_PROVIDERS = 10
CODE_FAMILY_PREFIX = 4


def _normalize(lf: pl.LazyFrame) -> pl.LazyFrame:
    """Rename table columns to internal names, cast ids to string, read nulls as zero."""
    existing_cols = lf.collect_schema().names()
    rename_map = {raw: internal for raw, internal in REVERSE_MAP.items() if raw in existing_cols}

    if rename_map:
        lf = lf.rename(rename_map)

    names = lf.collect_schema().names()
    for id_col in ["npi", "hcpcs_code"]:
        if id_col in names:
            lf = lf.with_columns(pl.col(id_col).cast(pl.Utf8))

    return lf.with_columns(cs.numeric().fill_null(0), cs.string().fill_null(""))


def load_table(filepath: Path) -> pl.DataFrame:
    """Load a CSV or Parquet table with internal column names."""
    if filepath.suffix == ".parquet":
        lf = pl.scan_parquet(filepath)
    else:
        lf = pl.scan_csv(filepath, infer_schema_length=10000)

    return _normalize(lf).collect()


def _with_defaults(df: pl.DataFrame, columns: list[str]) -> pl.DataFrame:
    missing = [c for c in columns if c not in df.columns]
    if missing:
        df = df.with_columns([pl.lit(0).alias(c) for c in missing])
    return df


def _validate(df: pl.DataFrame, table: str, key: str, required: list[str],
              non_negative: list[str], rates: list[str] = ()) -> None:
    missing = [c for c in required if c not in df.columns]
    if missing:
        raise click.ClickException(f"{table} table is missing column(s): {', '.join(missing)}")

    for col in non_negative:
        bad = df.filter(pl.col(col) < 0)
        if bad.height:
            raise click.ClickException(
                f"{table} table has a negative {col} for {key} {bad[key][0]}"
            )
    for col in rates:
        bad = df.filter((pl.col(col) < 0) | (pl.col(col) > 1))
        if bad.height:
            raise click.ClickException(
                f"{table} table has {col} outside [0, 1] for {key} {bad[key][0]}"
            )


def _practice_name(row: dict) -> str:
    if row.get("name"):
        return row["name"]
    name = " ".join(p for p in [row.get("first_name", ""), row.get("last_name", "")] if p)
    if name and row.get("credential"):
        name += f", {row['credential']}"
    return name


def _to_practice(row: dict, distinct_codes: int | None = None) -> PracticeProfile:
    if distinct_codes is None and row.get("distinct_codes"):
        distinct_codes = int(row["distinct_codes"])
    return PracticeProfile(
        npi=row["npi"],
        specialty=row["specialty"],
        state=row["state"],
        city=row.get("city", ""),
        name=_practice_name(row),
        total_beneficiaries=int(row["total_beneficiaries"]),
        total_services=int(row["total_services"]),
        total_payment=float(row["total_payment"]),
        distinct_codes=distinct_codes,
        **{c: int(row[c]) for c in PRACTICE_COUNTS},
        **{c: float(row[c]) for c in PRACTICE_AMOUNTS},
    )


def _to_benchmark(row: dict) -> SpecialtyBenchmark:
    return SpecialtyBenchmark(
        specialty=row["specialty"],
        provider_count=int(row["provider_count"]),
        avg_patients=float(row["avg_patients"]),
        avg_revenue_per_patient=float(row["avg_revenue_per_patient"]),
        avg_total_payment=float(row["avg_total_payment"]),
        avg_total_services=float(row["avg_total_services"]),
        pct_99213=float(row["pct_99213"]),
        pct_99214=float(row["pct_99214"]),
        pct_99215=float(row["pct_99215"]),
        **{c: float(row[c]) for c in ADOPTION_RATES + CHRONIC_COLUMNS},
    )


def _program_counts_expr() -> list[pl.Expr]:
    return [
        pl.len().alias("total_providers"),
        (pl.col("ccm_services") > 0).sum().alias("ccm_billers"),
        ((pl.col("rpm_99454_services") + pl.col("rpm_99457_services")) > 0).sum().alias("rpm_billers"),
        (pl.col("bhi_services") > 0).sum().alias("bhi_billers"),
        ((pl.col("awv_g0438_services") + pl.col("awv_g0439_services")) > 0).sum().alias("awv_billers"),
    ]


def prepare_practices(practices: pl.DataFrame) -> pl.DataFrame:
    """Fill optional practice columns and reject malformed rows."""
    practices = _with_defaults(practices, PRACTICE_COUNTS + PRACTICE_AMOUNTS)
    for col in ["city", "name", "first_name", "last_name", "credential"]:
        if col not in practices.columns:
            practices = practices.with_columns(pl.lit("").alias(col))
    _validate(practices, PRACTICES_TABLE, "npi", PRACTICE_REQUIRED,
              ["total_beneficiaries", "total_services", "total_payment"]
              + PRACTICE_COUNTS + PRACTICE_AMOUNTS)
    return practices


def prepare_benchmarks(benchmarks: pl.DataFrame) -> pl.DataFrame:
    benchmarks = _with_defaults(benchmarks, ["avg_total_services"] + ADOPTION_RATES + CHRONIC_COLUMNS)
    _validate(benchmarks, BENCHMARKS_TABLE, "specialty", BENCHMARK_REQUIRED,
              ["provider_count", "avg_patients", "avg_revenue_per_patient", "avg_total_payment"],
              ["pct_99213", "pct_99214", "pct_99215"] + ADOPTION_RATES + CHRONIC_COLUMNS)
    return benchmarks.sort("provider_count", descending=True, maintain_order=True)


class BenchmarkRepository:
    """Practice, benchmark and per-code billing tables held in memory as polars frames."""

    def __init__(self, practices: pl.DataFrame, benchmarks: pl.DataFrame,
                 provider_codes: pl.DataFrame | None = None):
        if provider_codes is not None:
            _validate(provider_codes, PROVIDER_CODES_TABLE, "npi", CODE_REQUIRED, ["services", "payment"])

        self.practices = prepare_practices(practices)
        self.benchmarks = prepare_benchmarks(benchmarks)
        self.provider_codes = provider_codes

    @classmethod
    def from_dir(cls, data_dir: Path | None = None) -> "BenchmarkRepository":
        """Load every table found in the data directory.

        When no benchmarks table exists, benchmarks are built from the practices.
        """
        data_dir = find_data_dir(data_dir)

        practices_path = find_table(data_dir, PRACTICES_TABLE)
        click.echo(f"Loading practice table: {practices_path}")
        practices = load_table(practices_path)
        click.echo(f"  -> {len(practices):,} practices")

        benchmarks_path = find_table(data_dir, BENCHMARKS_TABLE, required=False)
        if benchmarks_path is None:
            click.echo("No benchmarks table found. Building benchmarks from practices...")
            benchmarks = build_benchmarks(prepare_practices(practices))
        else:
            benchmarks = load_table(benchmarks_path)
        click.echo(f"  -> {len(benchmarks):,} specialty benchmarks")

        codes_path = find_table(data_dir, PROVIDER_CODES_TABLE, required=False)
        provider_codes = None
        if codes_path is not None:
            click.echo(f"Loading provider code table: {codes_path}")
            provider_codes = load_table(codes_path)

        return cls(practices, benchmarks, provider_codes)

    # --- Practices ---

    def _with_code_counts(self, df: pl.DataFrame) -> pl.DataFrame:
        """Join each practice's distinct billing code count from the code table."""
        if self.provider_codes is None:
            return df.with_columns(pl.lit(None, dtype=pl.UInt32).alias("code_count"))
        counts = self.provider_codes.group_by("npi").agg(pl.col("hcpcs_code").n_unique().alias("code_count"))
        return df.join(counts, on="npi", how="left")

    @staticmethod
    def _row_to_practice(row: dict) -> PracticeProfile:
        # Practices absent from the code table keep an unknown code count
        distinct = None if row.get("distinct_codes") else row["code_count"]
        return _to_practice(row, distinct)

    def get_practice(self, npi: str) -> PracticeProfile | None:
        rows = self.practices.filter(pl.col("npi") == npi)
        if rows.is_empty():
            return None
        return self._row_to_practice(self._with_code_counts(rows).row(0, named=True))

    def list_practices(self, state: str | None = None, specialty: str | None = None,
                       city: str | None = None, npis: list[str] | None = None,
                       limit: int | None = None) -> list[PracticeProfile]:
        """Practices matching every given filter, highest total payment first."""
        df = self.practices
        if state:
            df = df.filter(pl.col("state") == state.upper())
        if specialty:
            df = df.filter(pl.col("specialty") == specialty)
        if city:
            df = df.filter(pl.col("city").str.to_lowercase() == city.lower())
        if npis is not None:
            df = df.filter(pl.col("npi").is_in(npis))

        df = self._with_code_counts(df).sort("total_payment", descending=True, maintain_order=True)
        if limit is not None:
            df = df.head(limit)
        return [self._row_to_practice(row) for row in df.iter_rows(named=True)]

    # --- Benchmarks ---

    def get_benchmark(self, specialty: str) -> SpecialtyBenchmark | None:
        rows = self.benchmarks.filter(pl.col("specialty") == specialty)
        if rows.is_empty():
            return None
        return _to_benchmark(rows.row(0, named=True))

    def list_benchmarks(self) -> list[SpecialtyBenchmark]:
        return [_to_benchmark(row) for row in self.benchmarks.iter_rows(named=True)]

    # --- Geography ---

    def list_state_aggregates(self) -> list[StateAggregate]:
        states = (
            self.practices.filter(pl.col("state") != "")
            .group_by("state")
            .agg([
                pl.len().alias("provider_count"),
                pl.col("total_payment").sum().alias("total_payment"),
                pl.col("total_services").sum().alias("total_services"),
                pl.col("total_payment").mean().alias("avg_payment"),
            ])
            .sort("state")
        )
        return [
            StateAggregate(
                state=row["state"],
                provider_count=row["provider_count"],
                total_payment=float(row["total_payment"]),
                total_services=int(row["total_services"]),
                avg_payment=float(row["avg_payment"]),
            )
            for row in states.iter_rows(named=True)
        ]

    def get_state_aggregate(self, state: str) -> StateAggregate | None:
        state = state.upper()
        return next((s for s in self.list_state_aggregates() if s.state == state), None)

    def _specialty_state_rows(self, df: pl.DataFrame) -> list[SpecialtyStateAggregate]:
        grouped = (
            df.group_by(["specialty", "state"])
            .agg([
                pl.len().alias("provider_count"),
                pl.col("total_payment").mean().alias("avg_payment"),
            ])
            .sort(["provider_count", "specialty", "state"], descending=[True, False, False])
        )
        return [
            SpecialtyStateAggregate(
                specialty=row["specialty"],
                state=row["state"],
                provider_count=row["provider_count"],
                avg_payment=float(row["avg_payment"]),
            )
            for row in grouped.iter_rows(named=True)
        ]

    def state_specialties(self, state: str, limit: int | None = 20) -> list[SpecialtyStateAggregate]:
        """Specialties practiced in a state, most providers first. limit=None returns all."""
        df = self.practices.filter((pl.col("state") == state.upper()) & (pl.col("specialty") != ""))
        rows = self._specialty_state_rows(df)
        return rows if limit is None else rows[:limit]

    def specialty_by_state(self, specialty: str) -> list[SpecialtyStateAggregate]:
        df = self.practices.filter((pl.col("specialty") == specialty) & (pl.col("state") != ""))
        return self._specialty_state_rows(df)

    def program_counts(self, state: str, specialty: str | None = None) -> ProgramAdoptionCounts:
        df = self.practices.filter(pl.col("state") == state.upper())
        if specialty:
            df = df.filter(pl.col("specialty") == specialty)
        if df.is_empty():
            return ProgramAdoptionCounts()
        return ProgramAdoptionCounts(**df.select(_program_counts_expr()).row(0, named=True))

    # --- Billing codes ---

    def _code_stats_frame(self, df: pl.DataFrame) -> pl.DataFrame:
        return (
            df.group_by("hcpcs_code")
            .agg([
                pl.col("npi").n_unique().alias("total_providers"),
                pl.col("services").sum().alias("total_services"),
                pl.col("payment").sum().alias("total_payment"),
            ])
            .with_columns(
                pl.when(pl.col("total_services") > 0)
                .then(pl.col("total_payment") / pl.col("total_services"))
                .otherwise(0.0)
                .alias("avg_payment"),
                (pl.col("total_services") / pl.col("total_providers")).alias("avg_services_per_provider"),
            )
        )

    @staticmethod
    def _to_code_stats(row: dict) -> CodeStats:
        return CodeStats(
            hcpcs_code=row["hcpcs_code"],
            total_providers=row["total_providers"],
            total_services=int(row["total_services"]),
            total_payment=float(row["total_payment"]),
            avg_payment=float(row["avg_payment"]),
            avg_services_per_provider=float(row["avg_services_per_provider"]),
        )

    def code_stats(self, code: str) -> CodeStats | None:
        if self.provider_codes is None:
            return None
        rows = self.provider_codes.filter(pl.col("hcpcs_code") == code)
        if rows.is_empty():
            return None
        return self._to_code_stats(self._code_stats_frame(rows).row(0, named=True))

    def related_codes(self, code: str, limit: int = 5) -> list[CodeStats]:
        """Other codes of the same family (shared prefix), most services first."""
        if self.provider_codes is None:
            return []
        prefix = code[:CODE_FAMILY_PREFIX]
        rows = self.provider_codes.filter(
            pl.col("hcpcs_code").str.starts_with(prefix) & (pl.col("hcpcs_code") != code)
        )
        stats = self._code_stats_frame(rows).sort(
            ["total_services", "hcpcs_code"], descending=[True, False]
        ).head(limit)
        return [self._to_code_stats(row) for row in stats.iter_rows(named=True)]

    def distinct_code_count(self, npi: str) -> int | None:
        if self.provider_codes is None:
            return None
        return self.provider_codes.filter(pl.col("npi") == npi)["hcpcs_code"].n_unique()


def build_benchmarks(practices: pl.DataFrame, chronic: pl.DataFrame | None = None) -> pl.DataFrame:
    """Aggregate a normalized practice table into one benchmark row per specialty.

    Specialties with fewer than MIN_BENCHMARK_PROVIDERS providers are skipped.
    Chronic prevalence is not derivable from billing data; when `chronic` is
    given (a frame keyed by specialty) its prevalence columns are carried over.
    """
    totals = (
        practices.filter(pl.col("specialty") != "")
        .group_by("specialty")
        .agg([
            pl.col("total_beneficiaries").sum().alias("beneficiaries"),
            pl.col("total_payment").sum().alias("payment"),
            pl.col("total_services").sum().alias("services"),
            pl.col("em_99213").sum().alias("em_213"),
            pl.col("em_99214").sum().alias("em_214"),
            pl.col("em_99215").sum().alias("em_215"),
            pl.col("em_total").sum().alias("em_all"),
            *_program_counts_expr(),
        ])
        .rename({"total_providers": "provider_count"})
        .filter(pl.col("provider_count") >= MIN_BENCHMARK_PROVIDERS)
    )

    em_all = pl.when(pl.col("em_all") > 0).then(pl.col("em_all")).otherwise(1)
    avg_patients = pl.col("beneficiaries") / pl.col("provider_count")
    avg_payment = pl.col("payment") / pl.col("provider_count")
    benchmarks = totals.select(
        "specialty",
        "provider_count",
        (avg_patients + 0.5).floor().alias("avg_patients"),
        pl.when(avg_patients > 0).then((avg_payment / avg_patients + 0.5).floor())
        .otherwise(0.0).alias("avg_revenue_per_patient"),
        (avg_payment + 0.5).floor().alias("avg_total_payment"),
        (pl.col("services") / pl.col("provider_count") + 0.5).floor().alias("avg_total_services"),
        (pl.col("em_213") / em_all).round(4).alias("pct_99213"),
        (pl.col("em_214") / em_all).round(4).alias("pct_99214"),
        (pl.col("em_215") / em_all).round(4).alias("pct_99215"),
        *[
            (pl.col(f"{program}_billers") / pl.col("provider_count")).round(4).alias(f"{program}_adoption_rate")
            for program in ["ccm", "rpm", "bhi", "awv"]
        ],
    )

    if chronic is not None:
        present = [c for c in CHRONIC_COLUMNS if c in chronic.columns]
        benchmarks = benchmarks.join(chronic.select(["specialty"] + present), on="specialty", how="left")
        benchmarks = benchmarks.with_columns([pl.col(c).fill_null(0.0) for c in present])

    return benchmarks.sort(["provider_count", "specialty"], descending=[True, False])


def write_benchmarks(benchmarks: pl.DataFrame, data_dir: Path) -> Path:
    output_path = data_dir / f"{BENCHMARKS_TABLE}.parquet"
    raw_names = {internal: raw for internal, raw in COLUMN_MAP.items() if internal in benchmarks.columns}
    benchmarks.rename(raw_names).write_parquet(output_path)
    click.echo(f"  -> {output_path} ({len(benchmarks):,} specialties)")
    return output_path
