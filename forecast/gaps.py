"""Revenue gaps for one practice: E&M under-coding, care-management programs, action plan."""

from data.models import (
    ActionItem,
    CodingGap,
    OpportunityCategory,
    PracticeGaps,
    PracticeProfile,
    Program,
    ProgramGap,
    SpecialtyBenchmark,
)
from data.rates import PAYMENT_RATES
from scoring.health import round_half_up, safe_divide

# Share of the panel eligible for each program, from chronic prevalence
CCM_ELIGIBLE_WEIGHTS = {"diabetes": 0.6, "hypertension": 0.5, "heart_failure": 0.8}
CCM_ELIGIBLE_CAP = 0.45
RPM_ELIGIBLE_WEIGHTS = {"hypertension": 0.4, "diabetes": 0.3, "copd": 0.5}
RPM_ELIGIBLE_CAP = 0.35
BHI_DEPRESSION_SHARE = 0.7

PROGRAM_INFO = {
    Program.CCM: ("Chronic Care Management", "99490"),
    Program.RPM: ("Remote Patient Monitoring", "99453-99458"),
    Program.BHI: ("Behavioral Health Integration", "99484"),
    Program.AWV: ("Annual Wellness Visits", "G0438/G0439"),
}

MONTHLY_RATES = {
    Program.CCM: PAYMENT_RATES["99490"],
    Program.RPM: PAYMENT_RATES["99454"] + PAYMENT_RATES["99457"],
    Program.BHI: PAYMENT_RATES["99484"],
}
AWV_VISIT_RATE = PAYMENT_RATES["G0439"]

ACTION_TEMPLATES = {
    OpportunityCategory.CODING: (
        "Optimize E&M Coding Documentation",
        "Review documentation templates to support higher-level E&M codes. Focus on documenting "
        "medical decision-making complexity, number of diagnoses addressed, and data reviewed. "
        "Consider audit of recent claims for undercoding patterns.",
        "Weeks 1-4", "easy",
    ),
    OpportunityCategory.AWV: (
        "Launch Annual Wellness Visit Program",
        "Implement AWV workflow with Health Risk Assessment (HRA) forms. Train MA staff on AWV "
        "intake procedures. Send outreach letters to Medicare patients who haven't had an AWV "
        "in the past 12 months.",
        "Weeks 2-6", "easy",
    ),
    OpportunityCategory.CCM: (
        "Implement Chronic Care Management (99490)",
        "Identify patients with 2+ chronic conditions. Set up CCM consent process, care plan "
        "templates, and monthly time tracking. Start with highest-complexity patients.",
        "Weeks 3-8", "medium",
    ),
    OpportunityCategory.RPM: (
        "Deploy Remote Patient Monitoring",
        "Partner with an RPM device vendor for blood pressure monitors and glucose meters. Enroll "
        "hypertension and diabetes patients first. Set up monitoring dashboard and alert workflows.",
        "Weeks 6-12", "hard",
    ),
    OpportunityCategory.BHI: (
        "Add Behavioral Health Integration",
        "Implement PHQ-9 depression screening at all visits. Train providers on BHI billing (99484). "
        "Develop care plans for patients screening positive.",
        "Weeks 4-10", "medium",
    ),
}


def calculate_practice_gaps(practice: PracticeProfile, benchmark: SpecialtyBenchmark) -> PracticeGaps:
    """Derive the coding gap, the four program gaps and an action plan for a practice."""
    coding = calculate_coding_gap(practice, benchmark)
    patients = practice.total_beneficiaries
    eligible = estimate_eligible_patients(patients, benchmark)

    programs = {
        Program.CCM: program_gap(Program.CCM, eligible[Program.CCM],
                                 round_half_up(practice.ccm_services / 12), practice.ccm_payment),
        Program.RPM: program_gap(Program.RPM, eligible[Program.RPM],
                                 round_half_up(practice.rpm_99454_services / 12), practice.rpm_payment),
        Program.BHI: program_gap(Program.BHI, eligible[Program.BHI],
                                 round_half_up(practice.bhi_services / 12), practice.bhi_payment),
        Program.AWV: program_gap(Program.AWV, eligible[Program.AWV],
                                 practice.awv_services, practice.awv_payment),
    }
    return PracticeGaps(
        practice=practice,
        coding=coding,
        programs=programs,
        total_missed_revenue=coding.annual_gap + sum(g.annual_gap for g in programs.values()),
        action_plan=build_action_plan(coding, programs),
    )


def estimate_eligible_patients(patients: int, benchmark: SpecialtyBenchmark) -> dict[Program, int]:
    ccm_share = min(
        benchmark.chronic_diabetes_pct * CCM_ELIGIBLE_WEIGHTS["diabetes"]
        + benchmark.chronic_hypertension_pct * CCM_ELIGIBLE_WEIGHTS["hypertension"]
        + benchmark.chronic_heart_failure_pct * CCM_ELIGIBLE_WEIGHTS["heart_failure"],
        CCM_ELIGIBLE_CAP,
    )
    rpm_share = min(
        benchmark.chronic_hypertension_pct * RPM_ELIGIBLE_WEIGHTS["hypertension"]
        + benchmark.chronic_diabetes_pct * RPM_ELIGIBLE_WEIGHTS["diabetes"]
        + benchmark.chronic_copd_pct * RPM_ELIGIBLE_WEIGHTS["copd"],
        RPM_ELIGIBLE_CAP,
    )
    return {
        Program.CCM: round_half_up(patients * ccm_share),
        Program.RPM: round_half_up(patients * rpm_share),
        Program.BHI: round_half_up(patients * benchmark.chronic_depression_pct * BHI_DEPRESSION_SHARE),
        Program.AWV: patients,
    }


def calculate_coding_gap(practice: PracticeProfile, benchmark: SpecialtyBenchmark) -> CodingGap:
    total = practice.em_total
    cur_213 = safe_divide(practice.em_99213, total)
    cur_214 = safe_divide(practice.em_99214, total)
    cur_215 = safe_divide(practice.em_99215, total)

    current_revenue = (
        practice.em_99213 * PAYMENT_RATES["99213"]
        + practice.em_99214 * PAYMENT_RATES["99214"]
        + practice.em_99215 * PAYMENT_RATES["99215"]
    )
    opt_213 = round_half_up(total * benchmark.pct_99213)
    opt_214 = round_half_up(total * benchmark.pct_99214)
    opt_215 = total - opt_213 - opt_214
    optimal_revenue = (
        opt_213 * PAYMENT_RATES["99213"]
        + opt_214 * PAYMENT_RATES["99214"]
        + opt_215 * PAYMENT_RATES["99215"]
    )
    gap = max(0.0, optimal_revenue - current_revenue) if total > 0 else 0.0

    shift_213 = round_half_up((benchmark.pct_99213 - cur_213) * total)
    shift_215 = round_half_up((benchmark.pct_99215 - cur_215) * total)
    if shift_213 < 0 and shift_215 > 0:
        shifts = f"Shift ~{abs(shift_213)} visits from 99213 to higher-level codes"
    else:
        shifts = "E&M distribution is close to benchmark"

    return CodingGap(
        current_99213_pct=cur_213,
        current_99214_pct=cur_214,
        current_99215_pct=cur_215,
        optimal_99213_pct=benchmark.pct_99213,
        optimal_99214_pct=benchmark.pct_99214,
        optimal_99215_pct=benchmark.pct_99215,
        annual_gap=round_half_up(gap),
        shifts_needed=shifts,
    )


def program_gap(program: Program, eligible: int, current_patients: int, current_billed: float) -> ProgramGap:
    name, code = PROGRAM_INFO[program]
    if program is Program.AWV:
        # Annual visit, not a monthly recurring charge
        rate = AWV_VISIT_RATE
        potential = eligible * rate
    else:
        rate = MONTHLY_RATES[program]
        potential = eligible * rate * 12
    return ProgramGap(
        program=program,
        program_name=name,
        code=code,
        eligible_patients=eligible,
        current_patients=current_patients,
        capture_rate=safe_divide(current_patients, eligible),
        revenue_per_patient_per_month=rate,
        current_annual_revenue=round_half_up(current_billed),
        potential_annual_revenue=round_half_up(potential),
        annual_gap=round_half_up(max(0.0, potential - current_billed)),
    )


def build_action_plan(coding: CodingGap, programs: dict[Program, ProgramGap]) -> list[ActionItem]:
    """One action per category with a positive gap, biggest gap first."""
    candidates = [(OpportunityCategory.CODING, coding.annual_gap)] + [
        (OpportunityCategory(program.value), gap.annual_gap) for program, gap in programs.items()
    ]
    candidates.sort(key=lambda c: c[1], reverse=True)

    items = []
    for priority, (category, gap) in enumerate(candidates, 1):
        if gap <= 0:
            continue
        title, description, timeline, difficulty = ACTION_TEMPLATES[category]
        items.append(ActionItem(
            priority=priority,
            category=category,
            title=title,
            description=description,
            timeline=timeline,
            difficulty=difficulty,
            estimated_revenue=gap,
        ))
    return items
