from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from typing import List, Optional, Dict, Any, Literal
from decimal import Decimal
from enum import Enum


GENERATION_KEYS = ("gen1", "gen2", "gen3", "gen4")
COST_FIELDS = ("pay_self", "pay_nhis", "pay_full", "non_pay_select", "non_pay_other")
# largest amount accepted for a single cost field (1조 원)
MAX_COST = 10 ** 12


class TreatmentType(str, Enum):
    inpatient = "inpatient"
    outpatient = "outpatient"


class Facility(str, Enum):
    clinic = "clinic"
    hospital = "hospital"
    general = "general"
    tertiary = "tertiary"
    pharmacy = "pharmacy"


class SheetFormat(str, Enum):
    csv = "csv"
    xlsx = "xlsx"


def _normalize_enum_token(v):
    if isinstance(v, str):
        return v.lower().strip()
    return v


class CostBreakdown(BaseModel):
    """Raw cost fields of one receipt, in whole won."""
    model_config = ConfigDict(frozen=True)

    pay_self: int = Field(0, ge=0, le=MAX_COST, description="급여 본인부담금")
    pay_nhis: int = Field(0, ge=0, le=MAX_COST, description="급여 공단부담금 (display only)")
    pay_full: int = Field(0, ge=0, le=MAX_COST, description="급여 전액본인부담금")
    non_pay_select: int = Field(0, ge=0, le=MAX_COST, description="비급여 선택진료료")
    non_pay_other: int = Field(0, ge=0, le=MAX_COST, description="비급여 선택진료료 이외")

    @property
    def pay_base(self) -> int:
        return self.pay_self + self.pay_full

    @property
    def non_pay_base(self) -> int:
        return self.non_pay_select + self.non_pay_other

    @property
    def total_cost(self) -> int:
        return self.pay_self + self.pay_nhis + self.pay_full + self.non_pay_select + self.non_pay_other


class TreatmentContext(BaseModel):
    model_config = ConfigDict(frozen=True)

    treatment_type: TreatmentType
    facility: Facility

    @field_validator("treatment_type", "facility", mode="before")
    def normalize_tokens(cls, v):
        return _normalize_enum_token(v)


class ReceiptRecord(BaseModel):
    """One receipt row as entered or imported. Invalid rows always carry zero costs."""
    date: str = "-"
    treatment_type: TreatmentType = TreatmentType.outpatient
    facility: Facility = Facility.clinic
    disease_code: str = ""
    pay_self: int = Field(0, ge=0, le=MAX_COST)
    pay_nhis: int = Field(0, ge=0, le=MAX_COST)
    pay_full: int = Field(0, ge=0, le=MAX_COST)
    non_pay_select: int = Field(0, ge=0, le=MAX_COST)
    non_pay_other: int = Field(0, ge=0, le=MAX_COST)
    is_valid: bool = True

    @field_validator("treatment_type", "facility", mode="before")
    def normalize_tokens(cls, v):
        return _normalize_enum_token(v)

    @field_validator("disease_code")
    def normalize_code(cls, v):
        if isinstance(v, str):
            return v.upper().strip()
        return v

    @field_validator("date")
    def normalize_date(cls, v):
        if isinstance(v, str):
            return v.strip() or "-"
        return v

    @model_validator(mode="after")
    def zero_costs_when_invalid(self):
        if not self.is_valid:
            for field in COST_FIELDS:
                setattr(self, field, 0)
        return self

    @property
    def breakdown(self) -> CostBreakdown:
        return CostBreakdown(**{field: getattr(self, field) for field in COST_FIELDS})

    @property
    def context(self) -> TreatmentContext:
        return TreatmentContext(treatment_type=self.treatment_type, facility=self.facility)


class ResultVector(BaseModel):
    """Reimbursed amount per generation for one receipt."""
    model_config = ConfigDict(frozen=True)

    gen1: int = Field(0, ge=0)
    gen2: int = Field(0, ge=0)
    gen3: int = Field(0, ge=0)
    gen4: int = Field(0, ge=0)

    def amount(self, key: str) -> int:
        return getattr(self, key)


class GrandTotals(ResultVector):
    pass


# --- Rule table ---

class FacilitySchedule(BaseModel):
    """An amount per facility, falling back to `default`."""
    model_config = ConfigDict(frozen=True)

    default: int = Field(..., ge=0)
    clinic: Optional[int] = Field(None, ge=0)
    hospital: Optional[int] = Field(None, ge=0)
    general: Optional[int] = Field(None, ge=0)
    tertiary: Optional[int] = Field(None, ge=0)
    pharmacy: Optional[int] = Field(None, ge=0)

    def for_facility(self, facility: Facility) -> int:
        value = getattr(self, facility.value)
        return self.default if value is None else value


class InpatientTerms(BaseModel):
    model_config = ConfigDict(frozen=True)

    pay_rate: Decimal = Field(..., ge=0, le=1)
    non_pay_rate: Decimal = Field(..., ge=0, le=1)


class OutpatientTerms(BaseModel):
    model_config = ConfigDict(frozen=True)

    formula: Literal["combined", "coverage_linked", "per_category"]
    deductible: FacilitySchedule
    cap: FacilitySchedule
    pay_retained_rate: Decimal = Field(Decimal("0"), ge=0, le=1)
    non_pay_retained_rate: Decimal = Field(Decimal("0"), ge=0, le=1)
    non_pay_deductible: int = Field(0, ge=0)


class GenerationConfig(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: str
    description: str
    cap_description: str
    inpatient: InpatientTerms
    outpatient: OutpatientTerms


class RuleTable(BaseModel):
    model_config = ConfigDict(frozen=True)

    rules_version: str
    generations: Dict[str, GenerationConfig]

    @field_validator("generations")
    def require_every_generation(cls, v):
        if tuple(sorted(v)) != GENERATION_KEYS:
            raise ValueError(f"rule table must define exactly {', '.join(GENERATION_KEYS)}")
        return v


# --- Display / API payloads ---

class ReceiptRow(BaseModel):
    index: int
    treatment_type: TreatmentType
    type_label: str
    date: str
    disease_code: str
    facility: Facility
    facility_label: str
    pay_self: int
    pay_nhis: int
    pay_full: int
    non_pay_select: int
    non_pay_other: int
    total_cost: int
    results: ResultVector
    zero_pay: Dict[str, bool] = Field(default_factory=dict, description="amount is 0 although the receipt had eligible cost")
    is_valid: bool


class CostTotals(BaseModel):
    pay_self: int = 0
    pay_nhis: int = 0
    pay_full: int = 0
    non_pay_select: int = 0
    non_pay_other: int = 0
    total_cost: int = 0


class BatchSummary(BaseModel):
    rows: List[ReceiptRow]
    input_totals: CostTotals
    grand_totals: GrandTotals
    receipt_count: int
    malformed_count: int


class ComparisonCard(BaseModel):
    key: str
    name: str
    cap_description: str
    description: str
    amount: int
    amount_display: str


class GenerationInfo(BaseModel):
    key: str
    name: str
    description: str
    cap_description: str


class GenerationListResponse(BaseModel):
    rules_version: str
    generations: List[GenerationInfo]


class ImportRowsRequest(BaseModel):
    rows: List[List[Any]] = Field(..., description="Spreadsheet rows; the first row is the header")


class ImportResponse(BaseModel):
    records: List[ReceiptRecord]
    summary: BatchSummary


class WorksheetResponse(BaseModel):
    worksheet_id: str
    records: List[ReceiptRecord]
    summary: BatchSummary
