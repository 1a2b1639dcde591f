from datetime import date, datetime, timedelta
from enum import Enum
from typing import Dict, List, Optional

from pydantic import BaseModel, Field


class Severity(str, Enum):
    """Reaction severity, ordered MILD < MODERATE < SEVERE < LIFE_THREATENING."""
    MILD = "MILD"
    MODERATE = "MODERATE"
    SEVERE = "SEVERE"
    LIFE_THREATENING = "LIFE_THREATENING"

    @property
    def ordinal(self) -> int:
        return list(Severity).index(self) + 1

    def __lt__(self, other):
        if not isinstance(other, Severity):
            return NotImplemented
        return self.ordinal < other.ordinal

    def __le__(self, other):
        if not isinstance(other, Severity):
            return NotImplemented
        return self.ordinal <= other.ordinal

    def __gt__(self, other):
        if not isinstance(other, Severity):
            return NotImplemented
        return self.ordinal > other.ordinal

    def __ge__(self, other):
        if not isinstance(other, Severity):
            return NotImplemented
        return self.ordinal >= other.ordinal


class VerificationStatus(str, Enum):
    UNVERIFIED = "UNVERIFIED"
    VERIFIED = "VERIFIED"


class DataKind(str, Enum):
    """What a cached answer is about. The value doubles as the semantic-cache type tag."""
    SIDE_EFFECTS = "side_effects"
    OXIDATION_PRODUCTS = "oxidation_products"


class PromptKind(str, Enum):
    SIDE_EFFECTS = "side_effects"
    OXIDATION_PRODUCTS = "oxidation_products"
    PRODUCT_INGREDIENTS = "product_ingredients"


class RiskLevel(str, Enum):
    UNKNOWN = "UNKNOWN"
    LOW = "LOW"
    MODERATE = "MODERATE"
    HIGH = "HIGH"


class FetchState(str, Enum):
    UNRESOLVED = "UNRESOLVED"
    TIER1_MISS = "TIER1_MISS"
    TIER2_MISS = "TIER2_MISS"
    TIER3_PENDING = "TIER3_PENDING"
    TIER3_SUCCESS = "TIER3_SUCCESS"
    TIER3_TIMEOUT = "TIER3_TIMEOUT"
    TIER3_ERROR = "TIER3_ERROR"
    DONE = "DONE"


class ChemicalIdentity(BaseModel):
    """Canonical, deduplicated representation of one chemical compound."""
    id: Optional[int] = None
    external_id: Optional[int] = None  # PubChem CID
    common_name: str
    iupac_name: Optional[str] = None
    cas_number: Optional[str] = None
    molecular_formula: Optional[str] = None
    molecular_weight: Optional[float] = None
    structure: Optional[str] = None  # canonical SMILES
    inchi: Optional[str] = None
    inchi_key: Optional[str] = None
    synonyms: List[str] = Field(default_factory=list)
    oxidation_products: List[str] = Field(default_factory=list)
    chemical_family: Optional[str] = None
    is_oxidation_product: bool = False
    created_at: datetime = Field(default_factory=datetime.now)
    last_updated: Optional[datetime] = None

    @property
    def is_resolved(self) -> bool:
        return self.id is not None


class SourceReference(BaseModel):
    """Citation metadata, best-effort extracted from free text."""
    title: Optional[str] = None
    url: Optional[str] = None
    doi: Optional[str] = None
    study_type: Optional[str] = None
    publication_date: Optional[date] = None
    citation: Optional[str] = None


class SideEffectRecord(BaseModel):
    """One documented reaction to a chemical."""
    chemical_id: Optional[int] = None
    effect_type: str
    description: Optional[str] = None
    severity: Severity = Severity.MODERATE
    prevalence_rate: Optional[float] = Field(default=None, ge=0.0, le=1.0)
    population: Optional[str] = None
    exposure_route: Optional[str] = None
    onset: Optional[str] = None
    affected_body_areas: List[str] = Field(default_factory=list)
    study_evidence: Optional[str] = None
    sources: List[SourceReference] = Field(default_factory=list)
    verification_status: VerificationStatus = VerificationStatus.UNVERIFIED
    confidence_score: int = Field(default=70, ge=0, le=100)
    study_date: Optional[date] = None
    last_verified: Optional[datetime] = None


class RegistryRecord(BaseModel):
    """What the chemical registry returns for a name."""
    external_id: int
    iupac_name: Optional[str] = None
    cas_number: Optional[str] = None
    molecular_formula: Optional[str] = None
    molecular_weight: Optional[float] = None
    structure: Optional[str] = None
    inchi: Optional[str] = None
    inchi_key: Optional[str] = None
    synonyms: List[str] = Field(default_factory=list)


def is_cache_expired(cached_at: datetime, ttl_days: int, now: Optional[datetime] = None) -> bool:
    """True when the entry is older than its TTL."""
    now = now or datetime.now()
    return now - cached_at > timedelta(days=ttl_days)


class CacheEntry(BaseModel):
    """A semantic-cache unit: raw search text plus its key and metadata."""
    cache_key: str
    original_key: Optional[str] = None
    content: str
    cached_at: datetime
    ttl_days: int
    kind: DataKind

    def is_expired(self, now: Optional[datetime] = None) -> bool:
        return is_cache_expired(self.cached_at, self.ttl_days, now)


class RiskAssessment(BaseModel):
    risk_level: RiskLevel = RiskLevel.UNKNOWN
    max_severity_level: int = 0
    average_prevalence: Optional[float] = None
    total_reactions_found: int = 0


class IngredientAnalysis(BaseModel):
    """Full report for one ingredient."""
    ingredient: str
    chemical: Optional[ChemicalIdentity] = None
    side_effects: List[SideEffectRecord] = Field(default_factory=list)
    oxidation_products: List[str] = Field(default_factory=list)
    risk_assessment: RiskAssessment = Field(default_factory=RiskAssessment)
    risk_level: RiskLevel = RiskLevel.UNKNOWN
    warnings: List[str] = Field(default_factory=list)
    disclaimer: Optional[str] = None
    error: Optional[str] = None
    processing_time_ms: float = 0.0


class BatchSummary(BaseModel):
    total_ingredients: int = 0
    high_risk_ingredients: int = 0
    overall_risk_level: RiskLevel = RiskLevel.UNKNOWN


class BatchAnalysisResult(BaseModel):
    results: Dict[str, IngredientAnalysis] = Field(default_factory=dict)
    summary: BatchSummary = Field(default_factory=BatchSummary)
    disclaimer: Optional[str] = None


class ProductAnalysisResult(BaseModel):
    product_name: str
    total_ingredients: int = 0
    high_risk_ingredients: int = 0
    overall_risk_level: RiskLevel = RiskLevel.UNKNOWN
    ingredients: List[str] = Field(default_factory=list)
    detailed_analysis: Dict[str, IngredientAnalysis] = Field(default_factory=dict)
    recommendations: List[str] = Field(default_factory=list)
    disclaimer: Optional[str] = None
    error: Optional[str] = None


class BatchAnalysisRequest(BaseModel):
    ingredients: List[str]


class ProductAnalysisRequest(BaseModel):
    product_name: Optional[str] = None
