"""Tests for the data loader and benchmark repository."""

from pathlib import Path

import click
import polars as pl
import pytest

from data.fetch import find_data_dir, find_table
from data.loader import BenchmarkRepository, build_benchmarks, load_table, prepare_practices, write_benchmarks
from data.models import Program
from tests.conftest import (
    BENCHMARK_ROW,
    NO_BENCHMARK_NPI,
    OPTIMIZED_NPI,
    SPECIALTY,
    UNDERCODED_NPI,
    _practice_row,
    _practice_rows,
    write_csv,
)


def test_load_table_renames_columns(data_dir: Path):
    df = load_table(data_dir / "practices.csv")
    assert "total_payment" in df.columns
    assert "ccm_services" in df.columns
    assert "total_medicare_payment" not in df.columns
    assert df["npi"].dtype == pl.Utf8


def test_load_table_reads_nulls_as_zero(tmp_path: Path):
    path = tmp_path / "practices.csv"
    path.write_text("npi,specialty,state,total_beneficiaries,total_services,total_medicare_payment\n"
                    "1,Cardiology,TX,,10,100.0\n"
                    "2,Cardiology,TX,40,10,100.0\n")
    df = load_table(path)
    assert df["total_beneficiaries"][0] == 0


def test_get_practice(repo: BenchmarkRepository):
    practice = repo.get_practice(OPTIMIZED_NPI)
    assert practice.name == "Jane Smith, MD"
    assert practice.specialty == SPECIALTY
    assert practice.total_payment == 110_000.0
    assert practice.em_total == 1000
    assert practice.ccm_services == 120
    assert practice.distinct_codes == 12


def test_get_practice_without_codes_has_unknown_count(repo: BenchmarkRepository):
    assert repo.get_practice(NO_BENCHMARK_NPI).distinct_codes is None


def test_get_unknown_practice(repo: BenchmarkRepository):
    assert repo.get_practice("9999999999") is None


def test_list_practices(repo: BenchmarkRepository):
    texas = repo.list_practices(state="tx")
    assert [p.npi for p in texas][:2] == [OPTIMIZED_NPI, UNDERCODED_NPI]
    assert len(texas) == 4
    assert len(repo.list_practices(specialty=SPECIALTY)) == 23
    assert [p.npi for p in repo.list_practices(city="dallas")] == [UNDERCODED_NPI]
    assert len(repo.list_practices(limit=5)) == 5
    assert len(repo.list_practices(npis=[OPTIMIZED_NPI, "missing"])) == 1


def test_benchmarks(repo: BenchmarkRepository):
    bench = repo.get_benchmark(SPECIALTY)
    assert bench.provider_count == 12000
    assert bench.avg_patients == 400
    assert bench.chronic_hypertension_pct == 0.60
    assert repo.get_benchmark("Chiropractic") is None
    assert [b.specialty for b in repo.list_benchmarks()] == [SPECIALTY]


def test_state_aggregates(repo: BenchmarkRepository):
    states = {s.state: s for s in repo.list_state_aggregates()}
    assert set(states) == {"TX", "OK", "LA"}
    assert states["OK"].provider_count == 10
    assert states["OK"].avg_payment == pytest.approx(94_500)
    assert repo.get_state_aggregate("tx").avg_payment == pytest.approx(55_000)
    assert repo.get_state_aggregate("VT") is None


def test_state_specialties(repo: BenchmarkRepository):
    specialties = repo.state_specialties("TX")
    assert [s.specialty for s in specialties] == [SPECIALTY, "Chiropractic"]
    assert specialties[0].provider_count == 3
    assert len(repo.state_specialties("TX", limit=1)) == 1


def test_specialty_by_state(repo: BenchmarkRepository):
    rows = {s.state: s for s in repo.specialty_by_state(SPECIALTY)}
    assert set(rows) == {"TX", "OK", "LA"}
    assert rows["LA"].avg_payment == pytest.approx(74_500)


def test_program_counts(repo: BenchmarkRepository):
    counts = repo.program_counts("TX")
    assert counts.total_providers == 4
    assert counts.ccm_billers == 1
    assert counts.rate(Program.AWV) == 0.25
    assert repo.program_counts("TX", SPECIALTY).total_providers == 3
    assert repo.program_counts("VT").total_providers == 0


def test_code_stats(repo: BenchmarkRepository):
    stats = repo.code_stats("99213")
    assert stats.total_providers == 2
    assert stats.total_services == 1000
    assert stats.avg_payment == pytest.approx(92.03)
    assert repo.code_stats("00000") is None


def test_related_codes(repo: BenchmarkRepository):
    related = repo.related_codes("99213")
    assert [c.hcpcs_code for c in related] == ["99214", "99215"]
    assert repo.related_codes("99213", limit=1)[0].total_services == 750


def test_repository_without_code_table(data_dir: Path):
    (data_dir / "provider_codes.csv").unlink()
    repo = BenchmarkRepository.from_dir(data_dir)
    assert repo.code_stats("99213") is None
    assert repo.related_codes("99213") == []
    assert repo.get_practice(OPTIMIZED_NPI).distinct_codes is None


def test_negative_amount_is_rejected(data_dir: Path):
    practices = load_table(data_dir / "practices.csv").with_columns(
        pl.when(pl.col("npi") == OPTIMIZED_NPI).then(-1.0).otherwise(pl.col("total_payment")).alias("total_payment")
    )
    with pytest.raises(click.ClickException, match="negative total_payment"):
        prepare_practices(practices)


def test_missing_column_is_rejected(data_dir: Path):
    practices = load_table(data_dir / "practices.csv").drop("specialty")
    with pytest.raises(click.ClickException, match="missing column"):
        prepare_practices(practices)


def test_adoption_rate_out_of_range_is_rejected(data_dir: Path):
    write_csv(data_dir / "benchmarks.csv", [{**BENCHMARK_ROW, "ccm_adoption_rate": 1.5}])
    with pytest.raises(click.ClickException, match="ccm_adoption_rate outside"):
        BenchmarkRepository.from_dir(data_dir)


def test_build_benchmarks(repo: BenchmarkRepository):
    benchmarks = build_benchmarks(repo.practices)
    # Chiropractic has a single provider and is skipped
    assert benchmarks["specialty"].to_list() == [SPECIALTY]
    row = benchmarks.row(0, named=True)
    assert row["provider_count"] == 23
    assert row["ccm_adoption_rate"] == pytest.approx(0.0435)
    assert row["avg_total_payment"] == pytest.approx(round(1_905_000 / 23))
    # (300 + 700 + 20 * 400) / (1000 + 1000 + 20 * 1000)
    assert row["pct_99213"] == pytest.approx(0.4091)


def test_build_benchmarks_carries_chronic_prevalence(repo: BenchmarkRepository):
    benchmarks = build_benchmarks(repo.practices, repo.benchmarks)
    assert benchmarks["chronic_hypertension_pct"][0] == pytest.approx(0.60)


def test_write_benchmarks_round_trip(repo: BenchmarkRepository, tmp_path: Path):
    path = write_benchmarks(build_benchmarks(repo.practices), tmp_path)
    assert path.suffix == ".parquet"
    assert "avg_medicare_patients" in pl.read_parquet(path).columns
    assert "avg_patients" in load_table(path).columns


def test_benchmarks_built_when_table_missing(data_dir: Path):
    (data_dir / "benchmarks.csv").unlink()
    repo = BenchmarkRepository.from_dir(data_dir)
    assert repo.get_benchmark(SPECIALTY).provider_count == 23


def test_find_table_prefers_parquet(data_dir: Path):
    pl.read_csv(data_dir / "benchmarks.csv").write_parquet(data_dir / "benchmarks.parquet")
    assert find_table(data_dir, "benchmarks").suffix == ".parquet"
    assert find_table(data_dir, "nothing", required=False) is None
    with pytest.raises(click.ClickException):
        find_table(data_dir, "nothing")


def test_find_data_dir_missing(tmp_path: Path):
    with pytest.raises(click.ClickException, match="not found"):
        find_data_dir(tmp_path / "absent")


def test_list_practices_and_get_practice_agree_on_code_count(repo: BenchmarkRepository):
    listed = {p.npi: p for p in repo.list_practices(state="TX")}
    for npi in [OPTIMIZED_NPI, UNDERCODED_NPI, NO_BENCHMARK_NPI]:
        assert listed[npi].distinct_codes == repo.get_practice(npi).distinct_codes
    assert listed[OPTIMIZED_NPI].distinct_codes == 12
    assert listed[UNDERCODED_NPI].distinct_codes == 3
    assert listed[NO_BENCHMARK_NPI].distinct_codes is None


def test_distinct_code_count(repo: BenchmarkRepository):
    assert repo.distinct_code_count(OPTIMIZED_NPI) == 12
    assert repo.distinct_code_count(NO_BENCHMARK_NPI) == 0


def test_state_specialties_without_limit(data_dir: Path):
    extra = [_practice_row(f"95{i:08d}", f"Specialty {i // 2:02d}", "TX", "Austin", 100, 20_000.00)
             for i in range(40)]
    write_csv(data_dir / "practices.csv", _practice_rows() + extra)
    repo = BenchmarkRepository.from_dir(data_dir)

    assert len(repo.state_specialties("TX")) == 20
    everything = repo.state_specialties("TX", limit=None)
    assert len(everything) == 22
    assert everything[-1].specialty == "Chiropractic"
