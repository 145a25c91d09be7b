"""12-month revenue forecast for adding care-management programs and fixing E&M coding.

Program enrollment follows a logistic ramp: slow start while staff train and
workflows are set up, rapid growth mid-year, plateau near the enrollment target.
Coding revenue ramps linearly as documentation habits change.
"""

import math
from dataclasses import replace

from data.models import (
    CodingGap,
    ForecastConfig,
    ForecastResult,
    ForecastScenario,
    MonthlyProjection,
    PracticeGaps,
    PracticeProfile,
    Program,
    ProgramForecast,
    StandaloneForecastInput,
)
from forecast.gaps import program_gap
from scoring.health import round_half_up

MONTHS = ["Jan", "Feb", "Mar", "Apr", "May", "Jun", "Jul", "Aug", "Sep", "Oct", "Nov", "Dec"]
HORIZON_MONTHS = 12

# Planning rates per patient per month (AWV: per visit)
FORECAST_RATES = {
    "99490": 62,
    "99439": 47,
    "99454": 55,
    "99457": 48,
    "99458": 40,
    "99484": 51,
    "G0438": 185,
    "G0439": 130,
    "99213": 98,
    "99214": 143,
    "99215": 199,
}
PROGRAM_MONTHLY_RATES = {
    Program.CCM: FORECAST_RATES["99490"],
    Program.RPM: FORECAST_RATES["99454"] + FORECAST_RATES["99457"],
    Program.BHI: FORECAST_RATES["99484"],
}
AWV_AVG_VISIT_RATE = (FORECAST_RATES["G0438"] + FORECAST_RATES["G0439"]) / 2

# (midpoint month, speed) per program; AWV visits spread on the CCM curve
RAMP_CURVES = {
    Program.CCM: (5, 0.8),
    Program.RPM: (6, 0.7),
    Program.BHI: (7, 0.6),
    Program.AWV: (5, 0.8),
}
AWV_RAMP_BOOST = 1.5
CODING_FULL_MONTH = 6

PROGRAM_LABELS = {
    Program.CCM: ("Chronic Care Management", "99490"),
    Program.RPM: ("Remote Patient Monitoring", "99454/99457"),
    Program.BHI: ("Behavioral Health Integration", "99484"),
    Program.AWV: ("Annual Wellness Visits", "G0438/G0439"),
}
CODING_LABEL = ("E&M Coding Optimization", "99213->99214/99215")

DEFAULT_CONFIG = ForecastConfig()

SCENARIO_PRESETS = [
    ("CCM Only",
     "Add Chronic Care Management (99490) with 50% enrollment",
     replace(DEFAULT_CONFIG, rpm_enabled=False, bhi_enabled=False, awv_enabled=False,
             em_coding_enabled=False)),
    ("CCM + RPM",
     "Add CCM and Remote Patient Monitoring together",
     replace(DEFAULT_CONFIG, bhi_enabled=False, awv_enabled=False, em_coding_enabled=False)),
    ("Full Optimization",
     "All programs + E&M coding optimization",
     DEFAULT_CONFIG),
    ("Aggressive Growth",
     "Maximum enrollment targets with accelerated ramp-up",
     ForecastConfig(ccm_enrollment_pct=80, rpm_enrollment_pct=60, bhi_enrollment_pct=50,
                    awv_enrollment_pct=90)),
]

# Standalone estimates when no billing history exists
STANDALONE_ELIGIBLE_SHARES = {Program.CCM: 0.6, Program.RPM: 0.4}  # of chronic patients
STANDALONE_BHI_SHARE = 0.15  # of all patients
STANDALONE_AWV_SHARE = 0.7
STANDALONE_AWV_SHARE_EXISTING = 0.3  # when AWVs are already offered
VISITS_PER_PATIENT = 3.2
ASSUMED_99213_PCT = 0.35
ASSUMED_99214_PCT = 0.45
ASSUMED_99215_PCT = 0.08
SHIFT_BASELINE_99214 = 0.5
REALIZABLE_SHIFT = 0.6


def sigmoid(month: float, midpoint: float = 5, speed: float = 0.8) -> float:
    """Fraction of the enrollment target reached at `month` (0.5 at the midpoint)."""
    return 1 / (1 + math.exp(-speed * (month - midpoint)))


def linear_ramp(month: float, full_month: float = CODING_FULL_MONTH) -> float:
    return min(month / full_month, 1)


def enrollment_targets(gaps: PracticeGaps, config: ForecastConfig) -> dict[Program, int]:
    return {
        program: round_half_up(gap.eligible_patients * (config.enrollment_pct(program) / 100))
        for program, gap in gaps.programs.items()
    }


def program_revenue(program: Program, target: int, month: int) -> float:
    """Revenue one enabled program contributes in a given month."""
    midpoint, speed = RAMP_CURVES[program]
    ramp = sigmoid(month, midpoint, speed)
    if program is Program.AWV:
        visits = round_half_up((target / 12) * min(1, ramp * AWV_RAMP_BOOST))
        return visits * AWV_AVG_VISIT_RATE
    return round_half_up(target * ramp) * PROGRAM_MONTHLY_RATES[program]


def generate_forecast(gaps: PracticeGaps, config: ForecastConfig = DEFAULT_CONFIG) -> ForecastResult:
    """Project month-by-month additional revenue for the first year."""
    targets = enrollment_targets(gaps, config)
    coding_monthly_gap = gaps.coding.annual_gap / 12

    monthly = []
    cumulative = 0.0
    for month in range(1, HORIZON_MONTHS + 1):
        projection = MonthlyProjection(month=month, label=MONTHS[month - 1])
        for program in Program:
            if program in targets and config.enabled(program):
                setattr(projection, program.value, program_revenue(program, targets[program], month))
        if config.em_coding_enabled:
            projection.em_coding = round_half_up(coding_monthly_gap * linear_ramp(month))

        projection.total = (projection.ccm + projection.rpm + projection.bhi + projection.awv
                            + projection.em_coding)
        cumulative += projection.total
        projection.cumulative = cumulative
        monthly.append(projection)

    last = monthly[-1]
    programs = []
    for program, gap in gaps.programs.items():
        if gap.eligible_patients <= 0:
            continue
        name, code = PROGRAM_LABELS[program]
        programs.append(ProgramForecast(
            program_name=name,
            code=code,
            enabled=config.enabled(program),
            enrollment_target=targets[program],
            enrollment_pct=config.enrollment_pct(program),
            monthly_revenue_at_peak=last.revenue(program),
            annual_projected=sum(m.revenue(program) for m in monthly),
            month12_monthly_rate=last.revenue(program),
        ))
    if gaps.coding.annual_gap > 0:
        name, code = CODING_LABEL
        programs.append(ProgramForecast(
            program_name=name,
            code=code,
            enabled=config.em_coding_enabled,
            enrollment_target=0,
            enrollment_pct=100,
            monthly_revenue_at_peak=last.em_coding,
            annual_projected=sum(m.em_coding for m in monthly),
            month12_monthly_rate=last.em_coding,
        ))

    return ForecastResult(
        monthly=monthly,
        programs=programs,
        total_year1_revenue=sum(m.total for m in monthly),
        month12_monthly_rate=last.total,
        current_annual_revenue=gaps.practice.total_payment,
    )


def generate_scenarios(gaps: PracticeGaps) -> list[ForecastScenario]:
    return [
        ForecastScenario(name=name, description=description, config=config,
                         result=generate_forecast(gaps, config))
        for name, description, config in SCENARIO_PRESETS
    ]


def scenario_config(name: str) -> ForecastConfig | None:
    for preset_name, _, config in SCENARIO_PRESETS:
        if preset_name.lower() == name.lower():
            return config
    return None


def estimate_standalone_gaps(inputs: StandaloneForecastInput) -> PracticeGaps:
    """Synthesize gap records from specialty-level facts for a practice with no billing data."""
    patients = inputs.patient_count
    chronic = inputs.chronic_pct / 100

    eligible = {
        Program.CCM: 0 if inputs.current_ccm else round_half_up(
            patients * chronic * STANDALONE_ELIGIBLE_SHARES[Program.CCM]),
        Program.RPM: 0 if inputs.current_rpm else round_half_up(
            patients * chronic * STANDALONE_ELIGIBLE_SHARES[Program.RPM]),
        Program.BHI: 0 if inputs.current_bhi else round_half_up(patients * STANDALONE_BHI_SHARE),
        Program.AWV: round_half_up(patients * (
            STANDALONE_AWV_SHARE_EXISTING if inputs.current_awv else STANDALONE_AWV_SHARE)),
    }

    visits = round_half_up(patients * VISITS_PER_PATIENT)
    shift = max(0.0, inputs.bench_pct_99214 - SHIFT_BASELINE_99214) * REALIZABLE_SHIFT
    coding_gap = round_half_up(visits * shift * (FORECAST_RATES["99214"] - FORECAST_RATES["99213"]))

    practice = PracticeProfile(
        npi="",
        specialty=inputs.specialty,
        total_beneficiaries=patients,
        total_services=visits,
        total_payment=round_half_up(patients * inputs.avg_revenue_per_patient),
        em_99213=round_half_up(visits * ASSUMED_99213_PCT),
        em_99214=round_half_up(visits * ASSUMED_99214_PCT),
        em_99215=round_half_up(visits * ASSUMED_99215_PCT),
        em_total=visits,
    )
    coding = CodingGap(
        current_99213_pct=ASSUMED_99213_PCT,
        current_99214_pct=ASSUMED_99214_PCT,
        current_99215_pct=ASSUMED_99215_PCT,
        optimal_99213_pct=inputs.bench_pct_99213,
        optimal_99214_pct=inputs.bench_pct_99214,
        optimal_99215_pct=inputs.bench_pct_99215,
        annual_gap=coding_gap,
    )
    programs = {program: program_gap(program, count, 0, 0.0) for program, count in eligible.items()}
    return PracticeGaps(
        practice=practice,
        coding=coding,
        programs=programs,
        total_missed_revenue=coding_gap + sum(g.annual_gap for g in programs.values()),
        estimated=True,
    )


def generate_standalone_forecast(
    inputs: StandaloneForecastInput,
    config: ForecastConfig = DEFAULT_CONFIG,
) -> ForecastResult:
    return generate_forecast(estimate_standalone_gaps(inputs), config)
