from dataclasses import dataclass, field
from enum import Enum


class Program(Enum):
    CCM = "ccm"
    RPM = "rpm"
    BHI = "bhi"
    AWV = "awv"


class Confidence(Enum):
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class OpportunityCategory(Enum):
    CCM = "ccm"
    RPM = "rpm"
    BHI = "bhi"
    AWV = "awv"
    CODING = "coding"


# --- Input records (resolved by the repository, never mutated) ---


@dataclass(frozen=True)
class PracticeProfile:
    """One billing entity and its annual Medicare billing totals."""
    npi: str
    specialty: str = ""
    state: str = ""
    city: str = ""
    name: str = ""
    total_beneficiaries: int = 0
    total_services: int = 0
    total_payment: float = 0.0
    em_99213: int = 0
    em_99214: int = 0
    em_99215: int = 0
    em_total: int = 0
    ccm_services: int = 0
    ccm_payment: float = 0.0
    rpm_99454_services: int = 0
    rpm_99457_services: int = 0
    rpm_payment: float = 0.0
    bhi_services: int = 0
    bhi_payment: float = 0.0
    awv_g0438_services: int = 0
    awv_g0439_services: int = 0
    awv_payment: float = 0.0
    distinct_codes: int | None = None

    @property
    def display_name(self) -> str:
        return self.name or f"NPI {self.npi}"

    @property
    def rpm_services(self) -> int:
        return self.rpm_99454_services + self.rpm_99457_services

    @property
    def awv_services(self) -> int:
        return self.awv_g0438_services + self.awv_g0439_services

    def bills(self, program: Program) -> bool:
        """True when the practice billed at least one service of the program."""
        if program is Program.CCM:
            return self.ccm_services > 0
        if program is Program.RPM:
            return self.rpm_services > 0
        if program is Program.BHI:
            return self.bhi_services > 0
        return self.awv_services > 0


@dataclass(frozen=True)
class SpecialtyBenchmark:
    """Peer averages for every practice sharing a specialty."""
    specialty: str
    provider_count: int = 0
    avg_patients: float = 0.0
    avg_revenue_per_patient: float = 0.0
    avg_total_payment: float = 0.0
    avg_total_services: float = 0.0
    pct_99213: float = 0.0
    pct_99214: float = 0.0
    pct_99215: float = 0.0
    ccm_adoption_rate: float = 0.0
    rpm_adoption_rate: float = 0.0
    bhi_adoption_rate: float = 0.0
    awv_adoption_rate: float = 0.0
    chronic_diabetes_pct: float = 0.0
    chronic_hypertension_pct: float = 0.0
    chronic_heart_failure_pct: float = 0.0
    chronic_depression_pct: float = 0.0
    chronic_copd_pct: float = 0.0

    def adoption_rate(self, program: Program) -> float:
        return {
            Program.CCM: self.ccm_adoption_rate,
            Program.RPM: self.rpm_adoption_rate,
            Program.BHI: self.bhi_adoption_rate,
            Program.AWV: self.awv_adoption_rate,
        }[program]


@dataclass(frozen=True)
class StateAggregate:
    state: str
    provider_count: int = 0
    total_payment: float = 0.0
    total_services: int = 0
    avg_payment: float = 0.0


@dataclass(frozen=True)
class SpecialtyStateAggregate:
    """Provider count and average payment for one specialty in one state."""
    specialty: str
    state: str
    provider_count: int = 0
    avg_payment: float = 0.0


@dataclass(frozen=True)
class ProgramAdoptionCounts:
    """How many providers in a peer group bill each program."""
    total_providers: int = 0
    ccm_billers: int = 0
    rpm_billers: int = 0
    bhi_billers: int = 0
    awv_billers: int = 0

    def rate(self, program: Program) -> float:
        if self.total_providers <= 0:
            return 0.0
        billers = {
            Program.CCM: self.ccm_billers,
            Program.RPM: self.rpm_billers,
            Program.BHI: self.bhi_billers,
            Program.AWV: self.awv_billers,
        }[program]
        return billers / self.total_providers


@dataclass(frozen=True)
class CodeStats:
    hcpcs_code: str
    total_providers: int = 0
    total_services: int = 0
    total_payment: float = 0.0
    avg_payment: float = 0.0  # per service
    avg_services_per_provider: float = 0.0


# --- Revenue Health Score ---


@dataclass(frozen=True)
class ScoreTier:
    min: int
    max: int
    label: str
    hex_color: str


@dataclass
class ScoreBreakdown:
    em_coding: int
    program_util: int
    revenue_efficiency: int
    service_diversity: int
    patient_volume: int


@dataclass
class RevenueScore:
    overall: int
    tier: ScoreTier
    breakdown: ScoreBreakdown

    @property
    def label(self) -> str:
        return self.tier.label


# --- Acquisition ---


@dataclass(frozen=True)
class AcquisitionTier:
    min: int
    max: int
    label: str
    hex_color: str
    description: str


@dataclass
class AcquisitionBreakdown:
    upside_potential: int
    patient_base_value: int
    optimization_readiness: int
    market_position: int


@dataclass
class AcquisitionScore:
    overall: int
    tier: AcquisitionTier
    breakdown: AcquisitionBreakdown
    revenue_score: RevenueScore
    current_revenue: float
    estimated_upside_revenue: int
    projected_optimized_revenue: int
    revenue_increase_pct: int
    missing_programs: list[Program] = field(default_factory=list)

    @property
    def label(self) -> str:
        return self.tier.label


@dataclass
class SpecialtyGap:
    specialty: str
    count: int
    avg_gap: int


@dataclass
class MarketOpportunity:
    total_practices: int
    scored_practices: int = 0
    avg_revenue_score: int = 0
    total_current_revenue: int = 0
    total_addressable_revenue: int = 0
    estimated_missed_revenue: int = 0
    underperforming_count: int = 0
    prime_target_count: int = 0
    top_specialties: list[SpecialtyGap] = field(default_factory=list)


@dataclass
class PortfolioEntry:
    npi: str
    name: str
    specialty: str
    state: str
    city: str
    current_revenue: float
    acquisition: AcquisitionScore


@dataclass
class PortfolioAnalysis:
    entries: list[PortfolioEntry] = field(default_factory=list)
    total_current_revenue: int = 0
    total_projected_revenue: int = 0
    total_upside: int = 0
    avg_acquisition_score: int = 0
    prioritized_actions: list[str] = field(default_factory=list)


# --- Gaps & forecast ---


@dataclass
class CodingGap:
    current_99213_pct: float
    current_99214_pct: float
    current_99215_pct: float
    optimal_99213_pct: float
    optimal_99214_pct: float
    optimal_99215_pct: float
    annual_gap: int
    shifts_needed: str = ""


@dataclass
class ProgramGap:
    program: Program
    program_name: str
    code: str
    eligible_patients: int
    current_patients: int = 0
    capture_rate: float = 0.0
    revenue_per_patient_per_month: float = 0.0
    current_annual_revenue: int = 0
    potential_annual_revenue: int = 0
    annual_gap: int = 0


@dataclass
class ActionItem:
    priority: int
    category: OpportunityCategory
    title: str
    description: str
    timeline: str
    difficulty: str  # easy / medium / hard
    estimated_revenue: int


@dataclass
class PracticeGaps:
    """Revenue gaps for one practice: the input the forecast runs on."""
    practice: PracticeProfile
    coding: CodingGap
    programs: dict[Program, ProgramGap]
    total_missed_revenue: int = 0
    action_plan: list[ActionItem] = field(default_factory=list)
    estimated: bool = False  # True when built from specialty estimates, not billing data


@dataclass(frozen=True)
class ForecastConfig:
    ccm_enabled: bool = True
    rpm_enabled: bool = True
    bhi_enabled: bool = True
    awv_enabled: bool = True
    em_coding_enabled: bool = True
    ccm_enrollment_pct: float = 50
    rpm_enrollment_pct: float = 40
    bhi_enrollment_pct: float = 30
    awv_enrollment_pct: float = 70

    def enabled(self, program: Program) -> bool:
        return {
            Program.CCM: self.ccm_enabled,
            Program.RPM: self.rpm_enabled,
            Program.BHI: self.bhi_enabled,
            Program.AWV: self.awv_enabled,
        }[program]

    def enrollment_pct(self, program: Program) -> float:
        return {
            Program.CCM: self.ccm_enrollment_pct,
            Program.RPM: self.rpm_enrollment_pct,
            Program.BHI: self.bhi_enrollment_pct,
            Program.AWV: self.awv_enrollment_pct,
        }[program]


@dataclass
class MonthlyProjection:
    month: int
    label: str
    ccm: float = 0
    rpm: float = 0
    bhi: float = 0
    awv: float = 0
    em_coding: float = 0
    total: float = 0
    cumulative: float = 0

    def revenue(self, program: Program) -> float:
        return getattr(self, program.value)


@dataclass
class ProgramForecast:
    program_name: str
    code: str
    enabled: bool
    enrollment_target: int
    enrollment_pct: float
    monthly_revenue_at_peak: float
    annual_projected: float
    month12_monthly_rate: float


@dataclass
class ForecastResult:
    monthly: list[MonthlyProjection]
    programs: list[ProgramForecast]
    total_year1_revenue: float
    month12_monthly_rate: float
    current_annual_revenue: float


@dataclass
class ForecastScenario:
    name: str
    description: str
    config: ForecastConfig
    result: ForecastResult


@dataclass(frozen=True)
class StandaloneForecastInput:
    """Practice facts available before any billing history exists."""
    specialty: str
    patient_count: int
    chronic_pct: float  # 0-100, share of patients with 2+ chronic conditions
    current_ccm: bool = False
    current_rpm: bool = False
    current_bhi: bool = False
    current_awv: bool = False
    bench_pct_99213: float = 0.0
    bench_pct_99214: float = 0.0
    bench_pct_99215: float = 0.0
    avg_revenue_per_patient: float = 0.0


# --- Comparisons & opportunities ---


@dataclass
class NeighborComparison:
    state: str
    state_name: str
    avg_payment: float
    delta: int  # % vs the target state
    provider_count: int


@dataclass
class StrongestSpecialty:
    name: str
    local_avg: float
    count: int


@dataclass
class ProgramDelta:
    program: Program
    name: str
    local_rate: float
    national_rate: float
    delta: float


@dataclass
class StateComparison:
    state: str
    national_rank: int
    total_states: int
    avg_payment: float
    national_avg_payment: float
    avg_payment_delta: int
    neighbor_comparisons: list[NeighborComparison] = field(default_factory=list)
    strongest_specialty: StrongestSpecialty | None = None
    weakest_program: ProgramDelta | None = None
    program_adoption: dict[Program, float] = field(default_factory=dict)


@dataclass
class BenchmarkDeltas:
    avg_payment_delta: int
    ccm_adoption_delta: int
    rpm_adoption_delta: int
    awv_adoption_delta: int


@dataclass
class StateSpecialtyComparison:
    state: str
    specialty: str
    state_rank: int
    national_specialty_rank: int
    total_states_with_specialty: int
    percentile_position: int
    peer_group_size: int
    confidence: Confidence
    neighbor_comparisons: list[NeighborComparison] = field(default_factory=list)
    vs_national_benchmark: BenchmarkDeltas | None = None


@dataclass
class RevenueOpportunity:
    rank: int
    category: OpportunityCategory
    title: str
    description: str
    estimated_revenue: float
    current_rate: float
    target_rate: float
    affected_providers: int
    confidence: Confidence


@dataclass
class PracticeReport:
    """Everything the printable report shows for one practice."""
    practice: PracticeProfile
    benchmark: SpecialtyBenchmark
    score: RevenueScore
    percentile: int
    acquisition: AcquisitionScore
    gaps: PracticeGaps
    forecast: ForecastResult
