from collections.abc import Iterable, Sequence

from data.models import (
    MarketOpportunity,
    PortfolioAnalysis,
    PortfolioEntry,
    PracticeProfile,
    Program,
    SpecialtyBenchmark,
    SpecialtyGap,
)
from scoring.acquisition import DEFAULT_BENCH_RPP, calculate_acquisition_score
from scoring.health import calculate_revenue_score, round_half_up

UNDERPERFORMING_SCORE = 60  # health score below this
PRIME_TARGET_SCORE = 70  # acquisition score at or above this
TOP_SPECIALTY_COUNT = 10

# Action triggers on acquisition sub-scores (strictly greater than)
READINESS_ACTION_THRESHOLD = 50
UPSIDE_ACTION_THRESHOLD = 60

PROGRAM_ACTIONS = {
    Program.CCM: "Implement CCM (99490) across eligible patients",
    Program.RPM: "Launch RPM program (99454/99457) for chronic conditions",
    Program.AWV: "Increase AWV completion rates (G0438/G0439)",
}
CODING_ACTION = "Optimize E&M coding distribution toward 99214/99215"


def index_benchmarks(benchmarks: Iterable[SpecialtyBenchmark]) -> dict[str, SpecialtyBenchmark]:
    return {b.specialty: b for b in benchmarks}


def analyze_market_opportunity(
    practices: Sequence[PracticeProfile],
    benchmarks: Iterable[SpecialtyBenchmark],
) -> MarketOpportunity:
    """Summarize the revenue gap across a population of practices.

    Practices whose specialty has no benchmark are counted in total_practices
    but excluded from every score and revenue figure.
    """
    if not practices:
        return MarketOpportunity(total_practices=0)

    by_specialty = index_benchmarks(benchmarks)
    total_score = 0
    scored = 0
    total_revenue = 0.0
    total_potential = 0.0
    underperforming = 0
    prime_targets = 0
    specialty_gaps: dict[str, list[float]] = {}

    for practice in practices:
        bench = by_specialty.get(practice.specialty)
        if bench is None:
            continue

        score = calculate_revenue_score(practice, bench)
        total_score += score.overall
        scored += 1
        total_revenue += practice.total_payment

        patients = practice.total_beneficiaries or 1
        potential = patients * (bench.avg_revenue_per_patient or DEFAULT_BENCH_RPP)
        total_potential += potential

        if score.overall < UNDERPERFORMING_SCORE:
            underperforming += 1
        if calculate_acquisition_score(practice, bench).overall >= PRIME_TARGET_SCORE:
            prime_targets += 1

        gap = max(0.0, potential - practice.total_payment)
        specialty_gaps.setdefault(practice.specialty, []).append(gap)

    top = [
        SpecialtyGap(specialty=specialty, count=len(gaps), avg_gap=round_half_up(sum(gaps) / len(gaps)))
        for specialty, gaps in specialty_gaps.items()
    ]
    top.sort(key=lambda s: s.avg_gap * s.count, reverse=True)

    return MarketOpportunity(
        total_practices=len(practices),
        scored_practices=scored,
        avg_revenue_score=round_half_up(total_score / scored) if scored else 0,
        total_current_revenue=round_half_up(total_revenue),
        total_addressable_revenue=round_half_up(total_potential),
        estimated_missed_revenue=round_half_up(max(0.0, total_potential - total_revenue)),
        underperforming_count=underperforming,
        prime_target_count=prime_targets,
        top_specialties=top[:TOP_SPECIALTY_COUNT],
    )


def analyze_portfolio(
    practices: Sequence[PracticeProfile],
    benchmarks: Iterable[SpecialtyBenchmark],
) -> PortfolioAnalysis:
    """Rank a set of holdings by acquisition score and collect the actions they call for."""
    by_specialty = index_benchmarks(benchmarks)
    entries: list[PortfolioEntry] = []
    total_current = 0.0
    total_projected = 0
    actions: dict[str, None] = {}  # insertion-ordered set

    for practice in practices:
        bench = by_specialty.get(practice.specialty)
        if bench is None:
            continue

        acquisition = calculate_acquisition_score(practice, bench)
        entries.append(PortfolioEntry(
            npi=practice.npi,
            name=practice.display_name,
            specialty=practice.specialty,
            state=practice.state,
            city=practice.city,
            current_revenue=practice.total_payment,
            acquisition=acquisition,
        ))
        total_current += practice.total_payment
        total_projected += acquisition.projected_optimized_revenue

        if acquisition.breakdown.optimization_readiness > READINESS_ACTION_THRESHOLD:
            for program, action in PROGRAM_ACTIONS.items():
                if not practice.bills(program):
                    actions[action] = None
        if acquisition.breakdown.upside_potential > UPSIDE_ACTION_THRESHOLD:
            actions[CODING_ACTION] = None

    # Stable sort: equal scores keep input order
    entries.sort(key=lambda e: e.acquisition.overall, reverse=True)

    return PortfolioAnalysis(
        entries=entries,
        total_current_revenue=round_half_up(total_current),
        total_projected_revenue=total_projected,
        total_upside=round_half_up(max(0.0, total_projected - total_current)),
        avg_acquisition_score=(
            round_half_up(sum(e.acquisition.overall for e in entries) / len(entries)) if entries else 0
        ),
        prioritized_actions=list(actions),
    )
