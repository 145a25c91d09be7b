"""Shared fixtures: synthetic practice, benchmark and per-code tables in the CMS-derived schema."""

import csv
from pathlib import Path

import pytest

from data.loader import BenchmarkRepository
from data.models import PracticeProfile, SpecialtyBenchmark


# Practice NPIs
OPTIMIZED_NPI = "1000000001"    # bills every program, codes at or above peers
UNDERCODED_NPI = "2000000002"   # large panel, no programs, heavy 99213 use
NO_VISIT_NPI = "3000000003"     # no office visits at all
NO_BENCHMARK_NPI = "4000000004"  # specialty too small for a benchmark

SPECIALTY = "Cardiology"


def _practice_row(npi, specialty, state, city, patients, payment, em=(0, 0, 0),
                  first_name="", last_name="", credential="",
                  ccm=(0, 0.0), rpm=(0, 0, 0.0), bhi=(0, 0.0), awv=(0, 0, 0.0)) -> dict:
    return {
        "npi": npi,
        "last_name": last_name,
        "first_name": first_name,
        "credential": credential,
        "specialty": specialty,
        "state": state,
        "city": city,
        "total_beneficiaries": patients,
        "total_services": sum(em) + 200,
        "total_medicare_payment": f"{payment:.2f}",
        "em_99213": em[0],
        "em_99214": em[1],
        "em_99215": em[2],
        "em_total": sum(em),
        "ccm_99490_services": ccm[0],
        "ccm_99490_payment": ccm[1],
        "rpm_99454_services": rpm[0],
        "rpm_99457_services": rpm[1],
        "rpm_payment": rpm[2],
        "bhi_99484_services": bhi[0],
        "bhi_99484_payment": bhi[1],
        "awv_g0438_services": awv[0],
        "awv_g0439_services": awv[1],
        "awv_payment": awv[2],
    }


def _practice_rows() -> list[dict]:
    rows = [
        _practice_row(OPTIMIZED_NPI, SPECIALTY, "TX", "Houston", 400, 110_000.00, em=(300, 500, 200),
                      first_name="Jane", last_name="Smith", credential="MD",
                      ccm=(120, 7920.0), rpm=(60, 60, 6271.0), bhi=(24, 1165.0), awv=(10, 50, 7692.0)),
        _practice_row(UNDERCODED_NPI, SPECIALTY, "TX", "Dallas", 500, 60_000.00, em=(700, 250, 50),
                      first_name="Omar", last_name="Reyes"),
        _practice_row(NO_VISIT_NPI, SPECIALTY, "TX", "Austin", 150, 45_000.00),
        _practice_row(NO_BENCHMARK_NPI, "Chiropractic", "TX", "Austin", 50, 5_000.00),
    ]
    # Filler cardiologists so state and specialty aggregates are meaningful
    for i in range(10):
        rows.append(_practice_row(f"90000000{i:02d}", SPECIALTY, "OK", "Tulsa", 300,
                                  90_000.00 + i * 1000, em=(400, 450, 150)))
        rows.append(_practice_row(f"91000000{i:02d}", SPECIALTY, "LA", "Shreveport", 250,
                                  70_000.00 + i * 1000, em=(400, 450, 150)))
    return rows


BENCHMARK_ROW = {
    "specialty": SPECIALTY,
    "provider_count": 12000,
    "avg_medicare_patients": 400,
    "avg_revenue_per_patient": 250,
    "avg_total_payment": 100000,
    "avg_total_services": 3000,
    "pct_99213": 0.30,
    "pct_99214": 0.50,
    "pct_99215": 0.15,
    "ccm_adoption_rate": 0.10,
    "rpm_adoption_rate": 0.05,
    "bhi_adoption_rate": 0.02,
    "awv_adoption_rate": 0.30,
    "chronic_diabetes_pct": 0.30,
    "chronic_hypertension_pct": 0.60,
    "chronic_heart_failure_pct": 0.10,
    "chronic_depression_pct": 0.15,
    "chronic_copd_pct": 0.10,
}

# (npi, hcpcs_code, services, payment)
CODE_ROWS = [
    (OPTIMIZED_NPI, "99213", 300, 27609.00),
    (OPTIMIZED_NPI, "99214", 500, 65020.00),
    (OPTIMIZED_NPI, "99215", 200, 35230.00),
    (OPTIMIZED_NPI, "99490", 120, 7920.00),
    (OPTIMIZED_NPI, "99454", 60, 3343.20),
    (OPTIMIZED_NPI, "99457", 60, 2928.00),
    (OPTIMIZED_NPI, "99484", 24, 1165.44),
    (OPTIMIZED_NPI, "G0438", 10, 1747.90),
    (OPTIMIZED_NPI, "G0439", 50, 5944.00),
    (OPTIMIZED_NPI, "93000", 40, 680.00),
    (OPTIMIZED_NPI, "93306", 30, 6300.00),
    (OPTIMIZED_NPI, "93005", 20, 160.00),
    (UNDERCODED_NPI, "99213", 700, 64421.00),
    (UNDERCODED_NPI, "99214", 250, 32510.00),
    (UNDERCODED_NPI, "99215", 50, 8807.50),
]


def write_csv(filepath: Path, rows: list[dict]) -> Path:
    with open(filepath, "w", newline="") as f:
        writer = csv.DictWriter(f, fieldnames=list(rows[0].keys()))
        writer.writeheader()
        writer.writerows(rows)
    return filepath


@pytest.fixture
def data_dir(tmp_path: Path) -> Path:
    """Write practices, benchmarks and provider_codes CSVs and return their directory."""
    directory = tmp_path / "raw"
    directory.mkdir()
    write_csv(directory / "practices.csv", _practice_rows())
    write_csv(directory / "benchmarks.csv", [BENCHMARK_ROW])
    write_csv(directory / "provider_codes.csv", [
        {"npi": npi, "hcpcs_code": code, "services": services, "payment": payment,
         "beneficiaries": services // 3}
        for npi, code, services, payment in CODE_ROWS
    ])
    return directory


@pytest.fixture
def repo(data_dir: Path) -> BenchmarkRepository:
    return BenchmarkRepository.from_dir(data_dir)


@pytest.fixture
def cardiology() -> SpecialtyBenchmark:
    return SpecialtyBenchmark(
        specialty=SPECIALTY,
        provider_count=12000,
        avg_patients=400,
        avg_revenue_per_patient=250,
        avg_total_payment=100_000,
        avg_total_services=3000,
        pct_99213=0.30,
        pct_99214=0.50,
        pct_99215=0.15,
        ccm_adoption_rate=0.10,
        rpm_adoption_rate=0.05,
        bhi_adoption_rate=0.02,
        awv_adoption_rate=0.30,
        chronic_diabetes_pct=0.30,
        chronic_hypertension_pct=0.60,
        chronic_heart_failure_pct=0.10,
        chronic_depression_pct=0.15,
        chronic_copd_pct=0.10,
    )


@pytest.fixture
def optimized_practice() -> PracticeProfile:
    return PracticeProfile(
        npi=OPTIMIZED_NPI, specialty=SPECIALTY, state="TX", city="Houston", name="Jane Smith, MD",
        total_beneficiaries=400, total_services=1200, total_payment=110_000.0,
        em_99213=300, em_99214=500, em_99215=200, em_total=1000,
        ccm_services=120, ccm_payment=7920.0,
        rpm_99454_services=60, rpm_99457_services=60, rpm_payment=6271.0,
        bhi_services=24, bhi_payment=1165.0,
        awv_g0438_services=10, awv_g0439_services=50, awv_payment=7692.0,
    )


@pytest.fixture
def undercoded_practice() -> PracticeProfile:
    return PracticeProfile(
        npi=UNDERCODED_NPI, specialty=SPECIALTY, state="TX", city="Dallas", name="Omar Reyes",
        total_beneficiaries=500, total_services=1200, total_payment=60_000.0,
        em_99213=700, em_99214=250, em_99215=50, em_total=1000,
    )
