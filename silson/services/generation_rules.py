"""
Reimbursement rules for the four product generations.

Every generation shares the inpatient formula (split coverage rates, no
deductible, no cap). Outpatient visits use one of three formulas named in
the rule table:

- combined:        total minus a facility deductible, capped per visit (gen1, gen2)
- coverage_linked: total minus max(facility deductible, retained share), capped (gen3)
- per_category:    covered and non-covered parts each lose max(floor, coinsurance),
                   summed, then capped (gen4)

All money math is exact Decimal and floored to whole won at the end.
"""
from dataclasses import dataclass
from decimal import Decimal, ROUND_FLOOR
from threading import Lock
from typing import Callable, Dict, Tuple

from silson.exceptions import DomainViolation
from silson.model import (
    GENERATION_KEYS,
    Facility,
    GenerationConfig,
    InpatientTerms,
    OutpatientTerms,
    TreatmentType,
)
from silson.rule_loader import get_rule_table

ZERO = Decimal("0")


def _floor_won(amount: Decimal) -> int:
    return int(amount.to_integral_value(rounding=ROUND_FLOOR))


def _require_base(name: str, value) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise DomainViolation(f"{name} must be an integer amount", detail={name: repr(value)})
    if value < 0:
        raise DomainViolation(f"{name} must not be negative", detail={name: value})
    return value


def _require_context(treatment_type, facility) -> Tuple[TreatmentType, Facility]:
    try:
        return TreatmentType(treatment_type), Facility(facility)
    except ValueError as exc:
        raise DomainViolation(
            str(exc),
            detail={"treatment_type": str(treatment_type), "facility": str(facility)},
        ) from exc


def inpatient_amount(pay_base: int, non_pay_base: int, terms: InpatientTerms) -> int:
    return _floor_won(terms.pay_rate * pay_base + terms.non_pay_rate * non_pay_base)


def combined_outpatient(pay_base: int, non_pay_base: int, facility: Facility, terms: OutpatientTerms) -> int:
    total = pay_base + non_pay_base
    refund = max(0, total - terms.deductible.for_facility(facility))
    return min(refund, terms.cap.for_facility(facility))


def coverage_linked_outpatient(pay_base: int, non_pay_base: int, facility: Facility, terms: OutpatientTerms) -> int:
    min_deductible = Decimal(terms.deductible.for_facility(facility))
    logic_deductible = terms.pay_retained_rate * pay_base + terms.non_pay_retained_rate * non_pay_base
    final_deductible = max(min_deductible, logic_deductible)

    refund = _floor_won(max(ZERO, (pay_base + non_pay_base) - final_deductible))
    return min(refund, terms.cap.for_facility(facility))


def per_category_outpatient(pay_base: int, non_pay_base: int, facility: Facility, terms: OutpatientTerms) -> int:
    pay_floor = Decimal(terms.deductible.for_facility(facility))
    non_pay_floor = Decimal(terms.non_pay_deductible)

    pay_refund = max(ZERO, pay_base - max(pay_floor, terms.pay_retained_rate * pay_base))
    non_pay_refund = max(ZERO, non_pay_base - max(non_pay_floor, terms.non_pay_retained_rate * non_pay_base))

    # cap applies to the sum, never per category
    return min(_floor_won(pay_refund + non_pay_refund), terms.cap.for_facility(facility))


OUTPATIENT_FORMULAS: Dict[str, Callable[[int, int, Facility, OutpatientTerms], int]] = {
    "combined": combined_outpatient,
    "coverage_linked": coverage_linked_outpatient,
    "per_category": per_category_outpatient,
}


@dataclass(frozen=True)
class GenerationRule:
    key: str
    name: str
    description: str
    cap_description: str
    config: GenerationConfig

    @classmethod
    def from_config(cls, key: str, config: GenerationConfig) -> "GenerationRule":
        return cls(
            key=key,
            name=config.name,
            description=config.description,
            cap_description=config.cap_description,
            config=config,
        )

    def calc(self, pay_base: int, non_pay_base: int, treatment_type, facility) -> int:
        """Reimbursed amount for one receipt. Raises DomainViolation for out-of-domain input."""
        pay_base = _require_base("pay_base", pay_base)
        non_pay_base = _require_base("non_pay_base", non_pay_base)
        treatment_type, facility = _require_context(treatment_type, facility)

        if treatment_type is TreatmentType.inpatient:
            return inpatient_amount(pay_base, non_pay_base, self.config.inpatient)

        formula = OUTPATIENT_FORMULAS[self.config.outpatient.formula]
        return formula(pay_base, non_pay_base, facility, self.config.outpatient)


_rules_lock = Lock()
_built_from = None
_built_rules: Tuple[GenerationRule, ...] = ()


def get_generation_rules() -> Tuple[GenerationRule, ...]:
    """Rules in generation order, rebuilt only when the rule table object changes."""
    global _built_from, _built_rules
    table = get_rule_table()
    with _rules_lock:
        if table is not _built_from:
            _built_rules = tuple(
                GenerationRule.from_config(key, table.generations[key]) for key in GENERATION_KEYS
            )
            _built_from = table
        return _built_rules


def get_rule(key: str) -> GenerationRule:
    for rule in get_generation_rules():
        if rule.key == key:
            return rule
    raise KeyError(f"Unknown generation: {key}")
