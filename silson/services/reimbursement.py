import logging
from typing import Iterable, List

from silson.model import (
    COST_FIELDS,
    GENERATION_KEYS,
    BatchSummary,
    ComparisonCard,
    CostBreakdown,
    CostTotals,
    GrandTotals,
    ReceiptRecord,
    ReceiptRow,
    ResultVector,
    TreatmentContext,
)
from silson.services.generation_rules import get_generation_rules, get_rule
from silson.services.receipt_export import facility_label, format_won, type_label

logger = logging.getLogger(__name__)


def evaluate(breakdown: CostBreakdown, context: TreatmentContext) -> ResultVector:
    """Apply every generation rule to one receipt. Pure; no validation beyond the rules' own."""
    amounts = {
        rule.key: rule.calc(
            breakdown.pay_base,
            breakdown.non_pay_base,
            context.treatment_type,
            context.facility,
        )
        for rule in get_generation_rules()
    }
    return ResultVector(**amounts)


def evaluate_record(record: ReceiptRecord) -> ResultVector:
    return evaluate(record.breakdown, record.context)


def aggregate(results: Iterable[ResultVector]) -> GrandTotals:
    totals = dict.fromkeys(GENERATION_KEYS, 0)
    for result in results:
        for key in GENERATION_KEYS:
            totals[key] += result.amount(key)
    return GrandTotals(**totals)


def build_row(index: int, record: ReceiptRecord) -> ReceiptRow:
    breakdown = record.breakdown
    results = evaluate(breakdown, record.context)
    has_eligible_cost = breakdown.pay_base + breakdown.non_pay_base > 0

    return ReceiptRow(
        index=index,
        treatment_type=record.treatment_type,
        type_label=type_label(record.treatment_type, record.is_valid),
        date=record.date,
        disease_code=record.disease_code,
        facility=record.facility,
        facility_label=facility_label(record.facility),
        pay_self=breakdown.pay_self,
        pay_nhis=breakdown.pay_nhis,
        pay_full=breakdown.pay_full,
        non_pay_select=breakdown.non_pay_select,
        non_pay_other=breakdown.non_pay_other,
        total_cost=breakdown.total_cost,
        results=results,
        zero_pay={key: has_eligible_cost and results.amount(key) == 0 for key in GENERATION_KEYS},
        is_valid=record.is_valid,
    )


def input_totals(records: Iterable[ReceiptRecord]) -> CostTotals:
    sums = dict.fromkeys(COST_FIELDS, 0)
    for record in records:
        for field in COST_FIELDS:
            sums[field] += getattr(record, field)
    return CostTotals(total_cost=sum(sums.values()), **sums)


def summarize(records: List[ReceiptRecord]) -> BatchSummary:
    """Row display data, input column sums and grand totals for a batch of receipts."""
    rows = [build_row(i, record) for i, record in enumerate(records, start=1)]
    malformed = sum(1 for record in records if not record.is_valid)
    grand_totals = aggregate(row.results for row in rows)
    logger.debug(
        "Summarized %d receipts (%d malformed), totals %s",
        len(rows), malformed, grand_totals.model_dump(),
    )
    return BatchSummary(
        rows=rows,
        input_totals=input_totals(records),
        grand_totals=grand_totals,
        receipt_count=len(rows),
        malformed_count=malformed,
    )


def compare(grand_totals: GrandTotals) -> List[ComparisonCard]:
    return [
        ComparisonCard(
            key=rule.key,
            name=rule.name,
            cap_description=rule.cap_description,
            description=rule.description,
            amount=grand_totals.amount(rule.key),
            amount_display=f"{format_won(grand_totals.amount(rule.key))}원",
        )
        for rule in map(get_rule, GENERATION_KEYS)
    ]


def compare_records(records: List[ReceiptRecord]) -> List[ComparisonCard]:
    return compare(aggregate(evaluate_record(record) for record in records))
