"""Top revenue opportunities for a state, a state+specialty pair, or a billing code.

Each candidate is the revenue that would follow from closing an adoption gap
against a reference rate; the three largest are returned, ranked.
"""

from collections.abc import Sequence

from data.models import (
    CodeStats,
    OpportunityCategory,
    Program,
    ProgramAdoptionCounts,
    RevenueOpportunity,
    SpecialtyBenchmark,
)
from data.rates import PAYMENT_RATES
from markets.comparison import confidence_for, national_program_rates
from scoring.health import round_half_up

MAX_OPPORTUNITIES = 3

OPPORTUNITY_RATES = {
    Program.CCM: PAYMENT_RATES["99490"],
    Program.RPM: PAYMENT_RATES["99454"],
    Program.BHI: PAYMENT_RATES["99484"],
    Program.AWV: PAYMENT_RATES["G0439"],  # per visit
}

# Patients enrolled per newly adopting provider (AWV: visits per year)
STATE_PATIENTS_PER_ADOPTER = {
    Program.CCM: 15,
    Program.RPM: 20,
    Program.BHI: 10,
    Program.AWV: 50,
}
SPECIALTY_PATIENTS_PER_ADOPTER = {
    Program.RPM: 20,
    Program.BHI: 10,
    Program.AWV: 40,
}
# Specialty-level CCM enrollment scales with the benchmark panel
CCM_HYPERTENSION_ENROLLMENT = 0.3
CCM_FALLBACK_PATIENTS = 15

SERVICES_PER_PROVIDER = 20
RELATED_CODE_LIMIT = 5

STATE_TITLES = {
    Program.CCM: "Chronic Care Management (99490)",
    Program.RPM: "Remote Patient Monitoring (99454)",
    Program.BHI: "Behavioral Health Integration (99484)",
    Program.AWV: "Annual Wellness Visits (G0438/G0439)",
}
SPECIALTY_TITLES = {
    Program.CCM: "CCM Expansion (99490)",
    Program.RPM: "RPM Program Launch (99454)",
    Program.BHI: "BHI Services (99484)",
    Program.AWV: "AWV Growth (G0438/G0439)",
}


def _pct(rate: float) -> str:
    return f"{rate * 100:.1f}%"


def _state_description(program: Program, current: float, target: float, providers: int) -> str:
    if program is Program.CCM:
        return (f"Only {_pct(current)} of providers bill CCM vs {_pct(target)} national average. "
                f"{providers:,} additional providers could adopt CCM to close this gap.")
    if program is Program.RPM:
        return (f"RPM adoption is {_pct(current)} vs {_pct(target)} nationally. "
                f"{providers:,} providers could implement RPM programs.")
    if program is Program.BHI:
        return (f"BHI adoption at {_pct(current)} is below the {_pct(target)} national benchmark. "
                f"{providers:,} providers could add depression screening and BHI services.")
    return (f"AWV completion at {_pct(current)} trails the {_pct(target)} national average. "
            f"{providers:,} additional providers could offer AWV services.")


def _specialty_description(program: Program, specialty: str, current: float, target: float,
                           providers: int, patients: int) -> str:
    if program is Program.CCM:
        return (f"{_pct(current)} of {specialty} providers bill CCM vs {_pct(target)} specialty "
                f"benchmark. {providers:,} additional providers could enroll ~{patients} eligible "
                f"patients each.")
    if program is Program.RPM:
        return (f"RPM adoption at {_pct(current)} is below the {_pct(target)} {specialty} benchmark. "
                f"{providers:,} providers could implement remote monitoring.")
    if program is Program.BHI:
        return (f"BHI at {_pct(current)} vs {_pct(target)} benchmark. {providers:,} {specialty} "
                f"providers could add behavioral health screening.")
    return (f"AWV rate of {_pct(current)} is {(target - current) * 100:.1f} percentage points below "
            f"the {_pct(target)} {specialty} target.")


def _annual_revenue(program: Program, providers: int, patients: int) -> float:
    if program is Program.AWV:
        return providers * OPPORTUNITY_RATES[program] * patients
    return providers * OPPORTUNITY_RATES[program] * 12 * patients


def _ranked(candidates: list[RevenueOpportunity]) -> list[RevenueOpportunity]:
    # Stable sort: ties keep program order
    candidates.sort(key=lambda o: o.estimated_revenue, reverse=True)
    top = candidates[:MAX_OPPORTUNITIES]
    for rank, opportunity in enumerate(top, 1):
        opportunity.rank = rank
    return top


def state_opportunities(
    counts: ProgramAdoptionCounts,
    benchmarks: Sequence[SpecialtyBenchmark],
) -> list[RevenueOpportunity]:
    """Programs where a state trails the cross-specialty national adoption rate."""
    if counts.total_providers == 0:
        return []

    confidence = confidence_for(counts.total_providers)
    national = national_program_rates(benchmarks)
    candidates = []
    for program in Program:
        current = counts.rate(program)
        target = national[program]
        if current >= target:
            continue
        providers = round_half_up((target - current) * counts.total_providers)
        candidates.append(RevenueOpportunity(
            rank=0,
            category=OpportunityCategory(program.value),
            title=STATE_TITLES[program],
            description=_state_description(program, current, target, providers),
            estimated_revenue=_annual_revenue(program, providers, STATE_PATIENTS_PER_ADOPTER[program]),
            current_rate=current,
            target_rate=target,
            affected_providers=providers,
            confidence=confidence,
        ))
    return _ranked(candidates)


def state_specialty_opportunities(
    counts: ProgramAdoptionCounts,
    benchmark: SpecialtyBenchmark | None,
) -> list[RevenueOpportunity]:
    """Programs where one specialty in one state trails its specialty benchmark."""
    if counts.total_providers == 0 or benchmark is None:
        return []

    confidence = confidence_for(counts.total_providers)
    specialty = benchmark.specialty
    ccm_patients = round_half_up(
        benchmark.avg_patients * benchmark.chronic_hypertension_pct * CCM_HYPERTENSION_ENROLLMENT)
    if ccm_patients == 0:
        ccm_patients = CCM_FALLBACK_PATIENTS

    candidates = []
    for program in Program:
        current = counts.rate(program)
        target = benchmark.adoption_rate(program)
        if current >= target:
            continue
        providers = round_half_up((target - current) * counts.total_providers)
        patients = ccm_patients if program is Program.CCM else SPECIALTY_PATIENTS_PER_ADOPTER[program]
        candidates.append(RevenueOpportunity(
            rank=0,
            category=OpportunityCategory(program.value),
            title=SPECIALTY_TITLES[program],
            description=_specialty_description(program, specialty, current, target, providers, patients),
            estimated_revenue=_annual_revenue(program, providers, patients),
            current_rate=current,
            target_rate=target,
            affected_providers=providers,
            confidence=confidence,
        ))
    return _ranked(candidates)


def code_opportunities(stats: CodeStats | None, related: Sequence[CodeStats]) -> list[RevenueOpportunity]:
    """Related codes that pay more per service than `stats.hcpcs_code`."""
    if stats is None:
        return []

    confidence = confidence_for(stats.total_providers)
    code = stats.hcpcs_code
    candidates = []
    for rel in related:
        if rel.avg_payment <= stats.avg_payment:
            continue
        candidates.append(RevenueOpportunity(
            rank=0,
            category=OpportunityCategory.CODING,
            title=f"Upgrade to {rel.hcpcs_code}",
            description=(
                f"{rel.hcpcs_code} pays ${rel.avg_payment:,.2f}/service vs ${stats.avg_payment:,.2f} "
                f"for {code}. {stats.total_providers:,} providers billing {code} could evaluate "
                f"documentation for {rel.hcpcs_code} qualification."
            ),
            estimated_revenue=(rel.avg_payment - stats.avg_payment) * stats.total_providers
            * SERVICES_PER_PROVIDER,
            current_rate=0.0,
            target_rate=0.0,
            affected_providers=stats.total_providers,
            confidence=confidence,
        ))
    return _ranked(candidates)
