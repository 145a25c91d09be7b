"""Rank a state, or a state+specialty pair, against the rest of the country and its neighbors."""

from collections.abc import Mapping, Sequence

from data.models import (
    BenchmarkDeltas,
    Confidence,
    NeighborComparison,
    Program,
    ProgramAdoptionCounts,
    ProgramDelta,
    SpecialtyBenchmark,
    SpecialtyStateAggregate,
    StateComparison,
    StateSpecialtyComparison,
    StrongestSpecialty,
)
from data.models import StateAggregate
from markets.geography import NEIGHBORING_STATES, state_name
from scoring.health import round_half_up, safe_divide

MAX_NEIGHBORS = 4

# Peer-group size needed for each confidence grade
HIGH_CONFIDENCE_MIN = 100
MEDIUM_CONFIDENCE_MIN = 20

PROGRAM_DISPLAY = {
    Program.CCM: "CCM (99490)",
    Program.RPM: "RPM (99454)",
    Program.BHI: "BHI (99484)",
    Program.AWV: "AWV (G0438)",
}


def confidence_for(sample_size: int) -> Confidence:
    if sample_size >= HIGH_CONFIDENCE_MIN:
        return Confidence.HIGH
    if sample_size >= MEDIUM_CONFIDENCE_MIN:
        return Confidence.MEDIUM
    return Confidence.LOW


def pct_delta(local: float, reference: float) -> int:
    """Percent difference of local from reference, 0 when there is no reference."""
    if reference == 0:
        return 0
    return round_half_up((local - reference) / reference * 100)


def national_program_rates(benchmarks: Sequence[SpecialtyBenchmark]) -> dict[Program, float]:
    """Unweighted mean adoption rate of each program across all specialties."""
    return {
        program: safe_divide(sum(b.adoption_rate(program) for b in benchmarks), len(benchmarks))
        for program in Program
    }


def compare_state(
    state: str,
    states: Sequence[StateAggregate],
    program_counts: ProgramAdoptionCounts,
    benchmarks: Sequence[SpecialtyBenchmark],
    state_specialties: Sequence[SpecialtyStateAggregate] = (),
    neighbors: Mapping[str, Sequence[str]] = NEIGHBORING_STATES,
) -> StateComparison | None:
    """Compare one state to every other state by average payment per provider.

    state_specialties is the state's specialty list ordered by provider count;
    the first entry is reported as the strongest specialty. Returns None when
    the state is not among `states`.
    """
    by_state = {s.state: s for s in states}
    current = by_state.get(state)
    if current is None:
        return None

    ranked = sorted(states, key=lambda s: s.avg_payment, reverse=True)
    national_rank = next(i for i, s in enumerate(ranked, 1) if s.state == state)
    national_avg = safe_divide(
        sum(s.avg_payment * s.provider_count for s in states),
        sum(s.provider_count for s in states),
    )

    neighbor_comparisons = [
        NeighborComparison(
            state=n,
            state_name=state_name(n),
            avg_payment=by_state[n].avg_payment,
            delta=pct_delta(by_state[n].avg_payment, current.avg_payment),
            provider_count=by_state[n].provider_count,
        )
        for n in neighbors.get(state, ()) if n in by_state
    ][:MAX_NEIGHBORS]

    strongest = None
    if state_specialties:
        top = state_specialties[0]
        strongest = StrongestSpecialty(name=top.specialty, local_avg=top.avg_payment, count=top.provider_count)

    adoption = {program: program_counts.rate(program) for program in Program}
    national_rates = national_program_rates(benchmarks)
    deltas = [
        ProgramDelta(
            program=program,
            name=PROGRAM_DISPLAY[program],
            local_rate=adoption[program],
            national_rate=national_rates[program],
            delta=adoption[program] - national_rates[program],
        )
        for program in Program
    ]
    weakest = min(deltas, key=lambda d: d.delta)

    return StateComparison(
        state=state,
        national_rank=national_rank,
        total_states=len(ranked),
        avg_payment=current.avg_payment,
        national_avg_payment=national_avg,
        avg_payment_delta=pct_delta(current.avg_payment, national_avg),
        neighbor_comparisons=neighbor_comparisons,
        strongest_specialty=strongest,
        weakest_program=weakest if weakest.delta < 0 else None,
        program_adoption=adoption,
    )


def compare_state_specialty(
    specialty: str,
    state: str,
    specialty_states: Sequence[SpecialtyStateAggregate],
    program_counts: ProgramAdoptionCounts | None = None,
    benchmark: SpecialtyBenchmark | None = None,
    state_specialties: Sequence[SpecialtyStateAggregate] = (),
    neighbors: Mapping[str, Sequence[str]] = NEIGHBORING_STATES,
) -> StateSpecialtyComparison | None:
    """Rank a state among all states offering `specialty`.

    specialty_states holds one aggregate per state for the specialty. The
    benchmark deltas are only computed when both the benchmark and the
    state+specialty program counts are supplied.
    """
    by_state = {s.state: s for s in specialty_states}
    current = by_state.get(state)
    if current is None:
        return None

    ranked = sorted(specialty_states, key=lambda s: s.avg_payment, reverse=True)
    rank = next(i for i, s in enumerate(ranked, 1) if s.state == state)
    percentile = round_half_up((len(ranked) - rank) / max(len(ranked) - 1, 1) * 100)

    neighbor_comparisons = [
        NeighborComparison(
            state=n,
            state_name=state_name(n),
            avg_payment=by_state[n].avg_payment,
            delta=pct_delta(by_state[n].avg_payment, current.avg_payment),
            provider_count=by_state[n].provider_count,
        )
        for n in neighbors.get(state, ()) if n in by_state
    ][:MAX_NEIGHBORS]

    vs_benchmark = None
    if benchmark is not None and program_counts is not None:
        # Payment is compared with the provider-weighted average across states
        national_avg = safe_divide(
            sum(s.avg_payment * s.provider_count for s in specialty_states),
            sum(s.provider_count for s in specialty_states),
        )
        vs_benchmark = BenchmarkDeltas(
            avg_payment_delta=pct_delta(current.avg_payment, national_avg),
            ccm_adoption_delta=round_half_up(
                (program_counts.rate(Program.CCM) - benchmark.ccm_adoption_rate) * 100),
            rpm_adoption_delta=round_half_up(
                (program_counts.rate(Program.RPM) - benchmark.rpm_adoption_rate) * 100),
            awv_adoption_delta=round_half_up(
                (program_counts.rate(Program.AWV) - benchmark.awv_adoption_rate) * 100),
        )

    state_rank = next(
        (i for i, s in enumerate(state_specialties, 1) if s.specialty == specialty), 0)

    return StateSpecialtyComparison(
        state=state,
        specialty=specialty,
        state_rank=state_rank,
        national_specialty_rank=rank,
        total_states_with_specialty=len(ranked),
        percentile_position=percentile,
        peer_group_size=current.provider_count,
        confidence=confidence_for(current.provider_count),
        neighbor_comparisons=neighbor_comparisons,
        vs_national_benchmark=vs_benchmark,
    )
