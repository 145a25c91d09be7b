"""Acquisition opportunity scoring.

A practice is an attractive target when its billing is weak relative to peers
but its patient base is large: the gap is revenue an acquirer can unlock.
Four factors:
  - upside potential: inverse of the health score, scaled by patient volume
  - patient base value: patient count vs specialty average
  - optimization readiness: relevant programs not billed, E&M under-coding
  - market position: specialty size plus the practice's revenue scale
"""

from data.models import (
    AcquisitionBreakdown,
    AcquisitionScore,
    AcquisitionTier,
    PracticeProfile,
    Program,
    SpecialtyBenchmark,
)
from scoring.health import calculate_revenue_score, clamp, round_half_up, safe_divide

UPSIDE_WEIGHT = 0.35
PATIENT_BASE_WEIGHT = 0.25
READINESS_WEIGHT = 0.25
MARKET_WEIGHT = 0.15

# (minimum patients, multiplier) applied to the score gap
VOLUME_MULTIPLIERS = [(200, 1.3), (100, 1.1), (50, 1.0)]
LOW_VOLUME_MULTIPLIER = 0.7

PATIENT_RATIO_CAP = 2.0
PATIENT_RATIO_SCALE = 50
DEFAULT_BENCH_PATIENTS = 100

# A missing program only counts when peers adopt it above this rate
MISSING_PROGRAM_THRESHOLDS = {
    Program.CCM: 0.02,
    Program.RPM: 0.01,
    Program.BHI: 0.01,
    Program.AWV: 0.05,
}
MISSING_PROGRAM_POINTS = 22
DEFAULT_BENCH_99214_PCT = 0.5
# (99214 share shortfall vs peers, points)
EM_GAP_POINTS = [(0.10, 15), (0.05, 8)]

DEFAULT_SPECIALTY_SIZE = 1000
# (peer providers, demand points), strict greater-than
DEMAND_STEPS = [(20_000, 70), (10_000, 55), (5_000, 40)]
DEMAND_FLOOR = 30
# (current payment, scale points), strict greater-than
REVENUE_SCALE_STEPS = [(100_000, 30), (50_000, 20)]
REVENUE_SCALE_FLOOR = 10

# Post-optimization revenue: 15% above the specialty's revenue per patient
OPTIMIZED_RPP_FACTOR = 1.15
DEFAULT_BENCH_RPP = 400

ACQUISITION_TIERS = [
    AcquisitionTier(85, 100, "Prime Target", "#2F5EA8",
                    "Exceptional acquisition opportunity with massive upside"),
    AcquisitionTier(70, 84, "Strong Opportunity", "#34d399",
                    "Strong fundamentals with significant optimization potential"),
    AcquisitionTier(55, 69, "Moderate Upside", "#facc15",
                    "Reasonable opportunity with moderate improvement potential"),
    AcquisitionTier(35, 54, "Limited Upside", "#fb923c",
                    "Below-average returns, high revenue already captured"),
    AcquisitionTier(0, 34, "Low Priority", "#a1a1aa",
                    "Minimal upside, already optimized or low volume"),
]


def get_acquisition_tier(score: float) -> AcquisitionTier:
    for tier in ACQUISITION_TIERS:
        if score >= tier.min:
            return tier
    return ACQUISITION_TIERS[-1]


def calculate_acquisition_score(
    practice: PracticeProfile,
    benchmark: SpecialtyBenchmark,
    code_count: int | None = None,
) -> AcquisitionScore:
    """Score a practice as an acquisition target and estimate its revenue upside."""
    revenue_score = calculate_revenue_score(practice, benchmark, code_count)
    current_revenue = practice.total_payment
    patients = practice.total_beneficiaries

    upside = _upside_potential(100 - revenue_score.overall, patients)
    patient_base = _patient_base_value(patients, benchmark)
    missing = missing_programs(practice, benchmark)
    readiness = int(clamp(len(missing) * MISSING_PROGRAM_POINTS + _em_readiness(practice, benchmark)))
    market = _market_position(benchmark, current_revenue)

    overall = int(clamp(round_half_up(
        upside * UPSIDE_WEIGHT
        + patient_base * PATIENT_BASE_WEIGHT
        + readiness * READINESS_WEIGHT
        + market * MARKET_WEIGHT
    )))

    bench_rpp = benchmark.avg_revenue_per_patient or DEFAULT_BENCH_RPP
    optimized = patients * bench_rpp * OPTIMIZED_RPP_FACTOR
    upside_revenue = max(0, round_half_up(optimized - current_revenue))
    increase_pct = round_half_up(upside_revenue / current_revenue * 100) if current_revenue > 0 else 0

    return AcquisitionScore(
        overall=overall,
        tier=get_acquisition_tier(overall),
        breakdown=AcquisitionBreakdown(
            upside_potential=upside,
            patient_base_value=patient_base,
            optimization_readiness=readiness,
            market_position=market,
        ),
        revenue_score=revenue_score,
        current_revenue=current_revenue,
        estimated_upside_revenue=upside_revenue,
        projected_optimized_revenue=round_half_up(optimized),
        revenue_increase_pct=increase_pct,
        missing_programs=missing,
    )


def missing_programs(practice: PracticeProfile, benchmark: SpecialtyBenchmark) -> list[Program]:
    """Programs the practice doesn't bill although peers adopt them materially."""
    return [
        program for program, threshold in MISSING_PROGRAM_THRESHOLDS.items()
        if not practice.bills(program) and benchmark.adoption_rate(program) >= threshold
    ]


def _upside_potential(score_gap: int, patients: int) -> int:
    multiplier = LOW_VOLUME_MULTIPLIER
    for minimum, value in VOLUME_MULTIPLIERS:
        if patients >= minimum:
            multiplier = value
            break
    return int(clamp(round_half_up(score_gap * multiplier)))


def _patient_base_value(patients: int, benchmark: SpecialtyBenchmark) -> int:
    bench_patients = max(benchmark.avg_patients or DEFAULT_BENCH_PATIENTS, 1)
    ratio = safe_divide(patients, bench_patients, 0.5)
    return int(clamp(round_half_up(min(ratio, PATIENT_RATIO_CAP) * PATIENT_RATIO_SCALE)))


def _em_readiness(practice: PracticeProfile, benchmark: SpecialtyBenchmark) -> int:
    em_total = practice.em_total or 1
    actual_214 = practice.em_99214 / em_total
    bench_214 = benchmark.pct_99214 or DEFAULT_BENCH_99214_PCT
    shortfall = max(0.0, bench_214 - actual_214)
    for minimum, points in EM_GAP_POINTS:
        if shortfall > minimum:
            return points
    return 0


def _market_position(benchmark: SpecialtyBenchmark, current_revenue: float) -> int:
    specialty_size = benchmark.provider_count or DEFAULT_SPECIALTY_SIZE
    demand = next((pts for size, pts in DEMAND_STEPS if specialty_size > size), DEMAND_FLOOR)
    scale = next((pts for amount, pts in REVENUE_SCALE_STEPS if current_revenue > amount),
                 REVENUE_SCALE_FLOOR)
    return int(clamp(demand + scale))
