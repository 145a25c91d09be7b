import csv
from pathlib import Path

import click

from data.fetch import BENCHMARKS_TABLE, PRACTICES_TABLE, find_data_dir, find_table
from data.loader import (
    BenchmarkRepository,
    build_benchmarks,
    load_table,
    prepare_practices,
    write_benchmarks,
)
from data.models import (
    ForecastConfig,
    ForecastResult,
    PracticeProfile,
    Program,
    RevenueOpportunity,
    SpecialtyBenchmark,
    StandaloneForecastInput,
)
from forecast.engine import (
    DEFAULT_CONFIG,
    SCENARIO_PRESETS,
    generate_forecast,
    generate_scenarios,
    generate_standalone_forecast,
    scenario_config,
)
from forecast.gaps import calculate_practice_gaps
from markets.comparison import compare_state, compare_state_specialty
from markets.geography import state_name
from markets.opportunities import code_opportunities, state_opportunities, state_specialty_opportunities
from reports.pdf import format_currency, generate_practice_pdf
from reports.practice import build_practice_report
from scoring.acquisition import calculate_acquisition_score
from scoring.health import calculate_revenue_score, estimate_percentile
from scoring.portfolio import analyze_market_opportunity, analyze_portfolio

OUTPUT_DIR = Path(__file__).parent / "output"

data_dir_option = click.option(
    "--data-dir", default=None, type=click.Path(exists=True, file_okay=False),
    help="Directory holding the practices/benchmarks tables (default: data/raw/)",
)


@click.group()
def cli():
    """Practice Revenue Engine: score Medicare practices, size their gaps, forecast the upside."""
    pass


def _repository(data_dir: str | None) -> BenchmarkRepository:
    return BenchmarkRepository.from_dir(Path(data_dir) if data_dir else None)


def _practice_and_benchmark(repo: BenchmarkRepository, npi: str) -> tuple[PracticeProfile, SpecialtyBenchmark]:
    practice = repo.get_practice(npi)
    if practice is None:
        raise click.ClickException(f"No practice found for NPI {npi}")
    benchmark = repo.get_benchmark(practice.specialty)
    if benchmark is None:
        raise click.ClickException(f"No benchmark for specialty '{practice.specialty}'")
    return practice, benchmark


def _print_forecast(result: ForecastResult):
    click.echo(f"{'Month':<6}{'CCM':>10}{'RPM':>10}{'BHI':>10}{'AWV':>10}{'E&M':>10}{'Total':>11}{'Cumulative':>13}")
    click.echo("-" * 80)
    for m in result.monthly:
        click.echo(f"{m.label:<6}{m.ccm:>10,.0f}{m.rpm:>10,.0f}{m.bhi:>10,.0f}{m.awv:>10,.0f}"
                   f"{m.em_coding:>10,.0f}{m.total:>11,.0f}{m.cumulative:>13,.0f}")
    click.echo("-" * 80)
    for p in result.programs:
        status = "on " if p.enabled else "off"
        click.echo(f"  [{status}] {p.program_name} ({p.code}): target {p.enrollment_target:,} | "
                   f"year 1 {format_currency(p.annual_projected)}")
    click.echo(f"\nYear 1 additional revenue: ${result.total_year1_revenue:,.0f}")
    click.echo(f"Month 12 run rate: ${result.month12_monthly_rate:,.0f}/month")


def _print_opportunities(opportunities: list[RevenueOpportunity]):
    if not opportunities:
        click.echo("No revenue opportunities found.")
        return
    for o in opportunities:
        click.echo(f"  {o.rank}. {o.title} | {format_currency(o.estimated_revenue)}/yr | "
                   f"{o.affected_providers:,} providers | confidence: {o.confidence.value}")
        click.echo(f"     {o.description}")


@cli.command("build-benchmarks")
@data_dir_option
def build_benchmarks_cmd(data_dir: str | None):
    """Aggregate the practice table into specialty benchmarks."""
    directory = find_data_dir(Path(data_dir) if data_dir else None)
    practices_path = find_table(directory, PRACTICES_TABLE)
    click.echo(f"Reading practice table: {practices_path}")
    practices = prepare_practices(load_table(practices_path))
    click.echo(f"  -> {len(practices):,} practices")

    # Chronic prevalence is not in billing data; keep what an earlier table had
    existing = find_table(directory, BENCHMARKS_TABLE, required=False)
    chronic = load_table(existing) if existing is not None else None
    if chronic is not None:
        click.echo(f"Carrying chronic prevalence over from {existing}")

    click.echo("Aggregating specialty benchmarks...")
    benchmarks = build_benchmarks(practices, chronic)
    write_benchmarks(benchmarks, directory)
    click.echo("\nBenchmarks built. Run 'python cli.py score <NPI>' to score a practice.")


@cli.command()
@click.argument("npi")
@click.option("--code-count", default=None, type=int,
              help="Distinct billing codes used (overrides the code table)")
@data_dir_option
def score(npi: str, code_count: int | None, data_dir: str | None):
    """Compute the Revenue Health Score for a practice."""
    repo = _repository(data_dir)
    practice, benchmark = _practice_and_benchmark(repo, npi)
    result = calculate_revenue_score(practice, benchmark, code_count)

    click.echo(f"\n{'=' * 60}")
    click.echo(f"Practice: {practice.display_name} ({practice.specialty}, {practice.state})")
    click.echo(f"Revenue Health Score: {result.overall} ({result.label})")
    click.echo(f"Estimated percentile: {estimate_percentile(result.overall)}th")
    b = result.breakdown
    click.echo(f"  E&M coding:          {b.em_coding}")
    click.echo(f"  Program utilization: {b.program_util}")
    click.echo(f"  Revenue efficiency:  {b.revenue_efficiency}")
    click.echo(f"  Service diversity:   {b.service_diversity}")
    click.echo(f"  Patient volume:      {b.patient_volume}")
    click.echo(f"{'=' * 60}")


@cli.command()
@click.argument("npi")
@click.option("--code-count", default=None, type=int,
              help="Distinct billing codes used (overrides the code table)")
@data_dir_option
def acquire(npi: str, code_count: int | None, data_dir: str | None):
    """Score a practice as an acquisition target."""
    repo = _repository(data_dir)
    practice, benchmark = _practice_and_benchmark(repo, npi)
    result = calculate_acquisition_score(practice, benchmark, code_count)

    click.echo(f"\n{'=' * 60}")
    click.echo(f"Practice: {practice.display_name} ({practice.specialty}, {practice.state})")
    click.echo(f"Acquisition Score: {result.overall} ({result.label})")
    click.echo(f"  {result.tier.description}")
    b = result.breakdown
    click.echo(f"  Upside potential:       {b.upside_potential}")
    click.echo(f"  Patient base value:     {b.patient_base_value}")
    click.echo(f"  Optimization readiness: {b.optimization_readiness}")
    click.echo(f"  Market position:        {b.market_position}")
    click.echo(f"Current revenue:   {format_currency(result.current_revenue)}")
    click.echo(f"Estimated upside:  {format_currency(result.estimated_upside_revenue)} "
               f"(+{result.revenue_increase_pct}%)")
    if result.missing_programs:
        click.echo(f"Missing programs:  {', '.join(p.value.upper() for p in result.missing_programs)}")
    click.echo(f"{'=' * 60}")


@cli.command()
@click.argument("npi")
@click.option("--scenario", default=None, help="Use a named preset (see 'scenarios')")
@click.option("--ccm/--no-ccm", default=True, help="Enable Chronic Care Management")
@click.option("--rpm/--no-rpm", default=True, help="Enable Remote Patient Monitoring")
@click.option("--bhi/--no-bhi", default=True, help="Enable Behavioral Health Integration")
@click.option("--awv/--no-awv", default=True, help="Enable Annual Wellness Visits")
@click.option("--em-coding/--no-em-coding", default=True, help="Include E&M coding optimization")
@click.option("--ccm-pct", default=DEFAULT_CONFIG.ccm_enrollment_pct, type=click.FloatRange(0, 100))
@click.option("--rpm-pct", default=DEFAULT_CONFIG.rpm_enrollment_pct, type=click.FloatRange(0, 100))
@click.option("--bhi-pct", default=DEFAULT_CONFIG.bhi_enrollment_pct, type=click.FloatRange(0, 100))
@click.option("--awv-pct", default=DEFAULT_CONFIG.awv_enrollment_pct, type=click.FloatRange(0, 100))
@data_dir_option
def forecast(npi: str, scenario: str | None, ccm: bool, rpm: bool, bhi: bool, awv: bool,
             em_coding: bool, ccm_pct: float, rpm_pct: float, bhi_pct: float, awv_pct: float,
             data_dir: str | None):
    """Project 12 months of additional revenue for a practice."""
    if scenario:
        config = scenario_config(scenario)
        if config is None:
            names = ", ".join(name for name, _, _ in SCENARIO_PRESETS)
            raise click.ClickException(f"Unknown scenario '{scenario}'. Choose one of: {names}")
    else:
        config = ForecastConfig(
            ccm_enabled=ccm, rpm_enabled=rpm, bhi_enabled=bhi, awv_enabled=awv,
            em_coding_enabled=em_coding,
            ccm_enrollment_pct=ccm_pct, rpm_enrollment_pct=rpm_pct,
            bhi_enrollment_pct=bhi_pct, awv_enrollment_pct=awv_pct,
        )

    repo = _repository(data_dir)
    practice, benchmark = _practice_and_benchmark(repo, npi)
    gaps = calculate_practice_gaps(practice, benchmark)

    click.echo(f"\n12-month forecast for {practice.display_name}")
    click.echo(f"Missed revenue today: {format_currency(gaps.total_missed_revenue)}/yr\n")
    _print_forecast(generate_forecast(gaps, config))


@cli.command()
@click.argument("npi")
@data_dir_option
def scenarios(npi: str, data_dir: str | None):
    """Compare the preset forecast scenarios for a practice."""
    repo = _repository(data_dir)
    practice, benchmark = _practice_and_benchmark(repo, npi)

    click.echo(f"\nScenarios for {practice.display_name}:")
    click.echo("-" * 80)
    for s in generate_scenarios(calculate_practice_gaps(practice, benchmark)):
        click.echo(f"  {s.name:<20} year 1 {format_currency(s.result.total_year1_revenue):>8} | "
                   f"month 12 {format_currency(s.result.month12_monthly_rate):>7}/mo | {s.description}")


@cli.command()
@click.option("--specialty", required=True, help="Specialty benchmark to estimate from")
@click.option("--patients", required=True, type=click.IntRange(min=0), help="Medicare patient count")
@click.option("--chronic-pct", default=60.0, type=click.FloatRange(0, 100),
              help="Percent of patients with 2+ chronic conditions")
@click.option("--has-ccm", is_flag=True, help="Practice already bills CCM")
@click.option("--has-rpm", is_flag=True, help="Practice already bills RPM")
@click.option("--has-bhi", is_flag=True, help="Practice already bills BHI")
@click.option("--has-awv", is_flag=True, help="Practice already offers AWVs")
@data_dir_option
def estimate(specialty: str, patients: int, chronic_pct: float, has_ccm: bool, has_rpm: bool,
             has_bhi: bool, has_awv: bool, data_dir: str | None):
    """Forecast for a practice with no billing history, from specialty averages."""
    repo = _repository(data_dir)
    benchmark = repo.get_benchmark(specialty)
    if benchmark is None:
        raise click.ClickException(f"No benchmark for specialty '{specialty}'")

    inputs = StandaloneForecastInput(
        specialty=specialty,
        patient_count=patients,
        chronic_pct=chronic_pct,
        current_ccm=has_ccm,
        current_rpm=has_rpm,
        current_bhi=has_bhi,
        current_awv=has_awv,
        bench_pct_99213=benchmark.pct_99213,
        bench_pct_99214=benchmark.pct_99214,
        bench_pct_99215=benchmark.pct_99215,
        avg_revenue_per_patient=benchmark.avg_revenue_per_patient,
    )
    click.echo(f"\nEstimated forecast for a {specialty} practice with {patients:,} patients\n")
    _print_forecast(generate_standalone_forecast(inputs))


@cli.command()
@click.option("--state", default=None, help="Two-letter state code")
@click.option("--specialty", default=None)
@click.option("--city", default=None)
@click.option("--limit", default=None, type=int, help="Only the N highest-paid practices")
@data_dir_option
def market(state: str | None, specialty: str | None, city: str | None, limit: int | None,
           data_dir: str | None):
    """Size the revenue gap across a market of practices."""
    repo = _repository(data_dir)
    practices = repo.list_practices(state=state, specialty=specialty, city=city, limit=limit)
    result = analyze_market_opportunity(practices, repo.list_benchmarks())

    click.echo(f"\n{'=' * 60}")
    click.echo(f"Practices: {result.total_practices:,} ({result.scored_practices:,} scored)")
    click.echo(f"Average Revenue Health Score: {result.avg_revenue_score}")
    click.echo(f"Current revenue:     {format_currency(result.total_current_revenue)}")
    click.echo(f"Addressable revenue: {format_currency(result.total_addressable_revenue)}")
    click.echo(f"Missed revenue:      {format_currency(result.estimated_missed_revenue)}")
    click.echo(f"Underperforming: {result.underperforming_count:,} | Prime targets: {result.prime_target_count:,}")
    if result.top_specialties:
        click.echo("\nTop specialties by total gap:")
        for s in result.top_specialties:
            click.echo(f"  {s.specialty:<40} {s.count:>6,} practices | avg gap {format_currency(s.avg_gap)}")
    click.echo(f"{'=' * 60}")


@cli.command()
@click.argument("npis", nargs=-1, required=True)
@click.option("--output", default=None, type=click.Path(dir_okay=False),
              help="CSV file for the ranked portfolio (default: output/portfolio.csv)")
@data_dir_option
def portfolio(npis: tuple[str, ...], output: str | None, data_dir: str | None):
    """Rank a set of practices by acquisition score."""
    repo = _repository(data_dir)
    practices = []
    for npi in npis:
        practice = repo.get_practice(npi)
        if practice is None:
            click.echo(f"Skipping {npi}: no practice found")
            continue
        practices.append(practice)

    result = analyze_portfolio(practices, repo.list_benchmarks())

    if output:
        output_path = Path(output)
    else:
        OUTPUT_DIR.mkdir(parents=True, exist_ok=True)
        output_path = OUTPUT_DIR / "portfolio.csv"
    with open(output_path, "w", newline="") as f:
        writer = csv.writer(f)
        writer.writerow(["rank", "npi", "name", "specialty", "state", "acquisition_score", "tier",
                         "current_revenue", "projected_revenue"])
        for i, entry in enumerate(result.entries, 1):
            writer.writerow([
                i, entry.npi, entry.name, entry.specialty, entry.state,
                entry.acquisition.overall, entry.acquisition.label,
                f"{entry.current_revenue:.2f}", entry.acquisition.projected_optimized_revenue,
            ])

    click.echo(f"\nPortfolio saved to {output_path}")
    click.echo("-" * 80)
    for i, entry in enumerate(result.entries, 1):
        click.echo(f"  {i:3d}. NPI {entry.npi} | {entry.name} | Score: {entry.acquisition.overall} "
                   f"({entry.acquisition.label})")
    click.echo("-" * 80)
    click.echo(f"Average acquisition score: {result.avg_acquisition_score}")
    click.echo(f"Current revenue {format_currency(result.total_current_revenue)} -> projected "
               f"{format_currency(result.total_projected_revenue)} (upside {format_currency(result.total_upside)})")
    if result.prioritized_actions:
        click.echo("\nPrioritized actions:")
        for action in result.prioritized_actions:
            click.echo(f"  - {action}")


@cli.command()
@click.argument("state")
@click.option("--specialty", default=None, help="Compare this specialty across states")
@data_dir_option
def compare(state: str, specialty: str | None, data_dir: str | None):
    """Compare a state (optionally one specialty in it) with the nation and its neighbors."""
    repo = _repository(data_dir)
    state = state.upper()

    if specialty:
        result = compare_state_specialty(
            specialty, state, repo.specialty_by_state(specialty),
            program_counts=repo.program_counts(state, specialty),
            benchmark=repo.get_benchmark(specialty),
            state_specialties=repo.state_specialties(state, limit=None),
        )
        if result is None:
            raise click.ClickException(f"No {specialty} practices found in {state}")
        click.echo(f"\n{specialty} in {state_name(state)}")
        click.echo(f"National rank: {result.national_specialty_rank} of {result.total_states_with_specialty} "
                   f"({result.percentile_position}th percentile)")
        click.echo(f"Peer group: {result.peer_group_size:,} providers (confidence: {result.confidence.value})")
        if result.state_rank:
            click.echo(f"Rank within {state}: #{result.state_rank} by provider count")
        deltas = result.vs_national_benchmark
        if deltas is not None:
            click.echo(f"vs national: payment {deltas.avg_payment_delta:+d}% | CCM {deltas.ccm_adoption_delta:+d} pts | "
                       f"RPM {deltas.rpm_adoption_delta:+d} pts | AWV {deltas.awv_adoption_delta:+d} pts")
        neighbors = result.neighbor_comparisons
    else:
        result = compare_state(
            state, repo.list_state_aggregates(), repo.program_counts(state),
            repo.list_benchmarks(), repo.state_specialties(state),
        )
        if result is None:
            raise click.ClickException(f"No practices found in {state}")
        click.echo(f"\n{state_name(state)}")
        click.echo(f"National rank: {result.national_rank} of {result.total_states}")
        click.echo(f"Average payment ${result.avg_payment:,.0f} ({result.avg_payment_delta:+d}% vs "
                   f"national ${result.national_avg_payment:,.0f})")
        if result.strongest_specialty:
            s = result.strongest_specialty
            click.echo(f"Largest specialty: {s.name} ({s.count:,} providers)")
        if result.weakest_program:
            w = result.weakest_program
            click.echo(f"Weakest program: {w.name} at {w.local_rate:.1%} vs {w.national_rate:.1%} nationally")
        click.echo("Program adoption: " + ", ".join(
            f"{p.value.upper()} {result.program_adoption[p]:.1%}" for p in Program))
        neighbors = result.neighbor_comparisons

    if neighbors:
        click.echo("\nNeighbors:")
        for n in neighbors:
            click.echo(f"  {n.state_name:<20} ${n.avg_payment:>10,.0f} ({n.delta:+d}%) | {n.provider_count:,} providers")


@cli.command()
@click.option("--state", default=None, help="Two-letter state code")
@click.option("--specialty", default=None, help="Narrow a state to one specialty")
@click.option("--code", default=None, help="HCPCS code to compare with its code family")
@data_dir_option
def opportunities(state: str | None, specialty: str | None, code: str | None, data_dir: str | None):
    """Top 3 revenue opportunities for a state, a state+specialty, or a billing code."""
    if not state and not code:
        raise click.UsageError("Pass --state (optionally with --specialty) or --code.")

    repo = _repository(data_dir)
    if code:
        click.echo(f"\nOpportunities for code {code}:")
        _print_opportunities(code_opportunities(repo.code_stats(code), repo.related_codes(code)))
    elif specialty:
        benchmark = repo.get_benchmark(specialty)
        if benchmark is None:
            raise click.ClickException(f"No benchmark for specialty '{specialty}'")
        click.echo(f"\nOpportunities for {specialty} in {state_name(state)}:")
        _print_opportunities(state_specialty_opportunities(repo.program_counts(state, specialty), benchmark))
    else:
        click.echo(f"\nOpportunities in {state_name(state)}:")
        _print_opportunities(state_opportunities(repo.program_counts(state), repo.list_benchmarks()))


@cli.command()
@click.argument("npi")
@click.option("--scenario", default=None, help="Forecast preset for the report")
@click.option("--output-dir", default=None, type=click.Path(file_okay=False),
              help="Where to write the PDF (default: output/reports/)")
@data_dir_option
def report(npi: str, scenario: str | None, output_dir: str | None, data_dir: str | None):
    """Write a PDF revenue report for a practice."""
    config = DEFAULT_CONFIG
    if scenario:
        config = scenario_config(scenario)
        if config is None:
            raise click.ClickException(f"Unknown scenario '{scenario}'")

    repo = _repository(data_dir)
    practice, benchmark = _practice_and_benchmark(repo, npi)
    practice_report = build_practice_report(practice, benchmark, config)

    pdf_path = generate_practice_pdf(practice_report, Path(output_dir) if output_dir else None)
    click.echo(f"\nReport generated: {pdf_path}")
    click.echo(f"Revenue Health Score: {practice_report.score.overall} ({practice_report.score.label}) | "
               f"Acquisition: {practice_report.acquisition.overall} ({practice_report.acquisition.label})")
    click.echo(f"Year 1 additional revenue: {format_currency(practice_report.forecast.total_year1_revenue)}")


if __name__ == "__main__":
    cli()
