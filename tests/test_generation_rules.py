import pytest

from silson.exceptions import DomainViolation
from silson.model import Facility, TreatmentType
from silson.services.generation_rules import get_generation_rules, get_rule

OUT = TreatmentType.outpatient
IN = TreatmentType.inpatient

OUTPATIENT_CAPS = {
    ("gen1", Facility.pharmacy): 100000,
    ("gen2", Facility.pharmacy): 50000,
    ("gen3", Facility.pharmacy): 50000,
    ("gen4", Facility.pharmacy): 50000,
}


def cap_for(key, facility):
    if (key, facility) in OUTPATIENT_CAPS:
        return OUTPATIENT_CAPS[(key, facility)]
    return 100000 if key == "gen1" else 250000


# ---------------------- Worked scenarios ----------------------

def test_scenario_a_gen1_outpatient_deductible():
    assert get_rule("gen1").calc(60000, 0, OUT, Facility.clinic) == 55000


def test_scenario_b_gen2_general_hospital():
    assert get_rule("gen2").calc(100000, 0, OUT, Facility.general) == 80000


def test_scenario_c_gen3_inpatient_split_rates():
    assert get_rule("gen3").calc(100000, 50000, IN, Facility.hospital) == 130000


def test_scenario_d_gen4_pharmacy_floor_beats_coinsurance():
    assert get_rule("gen4").calc(20000, 0, OUT, Facility.pharmacy) == 15000


def test_scenario_e_gen2_pharmacy_cap():
    assert get_rule("gen2").calc(600000, 0, OUT, Facility.pharmacy) == 50000


# ---------------------- gen1 ----------------------

@pytest.mark.parametrize("total, expected", [
    (3000, 0),
    (5000, 0),
    (5001, 1),
    (200000, 100000),
])
def test_gen1_outpatient(total, expected):
    assert get_rule("gen1").calc(total, 0, OUT, Facility.hospital) == expected


def test_gen1_outpatient_uses_same_cap_at_pharmacy():
    assert get_rule("gen1").calc(150000, 100000, OUT, Facility.pharmacy) == 100000


def test_gen1_inpatient_pays_everything():
    assert get_rule("gen1").calc(123456, 1000, IN, Facility.tertiary) == 124456


# ---------------------- gen2 ----------------------

@pytest.mark.parametrize("facility, total, expected", [
    (Facility.clinic, 10001, 1),
    (Facility.hospital, 15000, 0),
    (Facility.hospital, 40000, 25000),
    (Facility.tertiary, 30000, 10000),
    (Facility.pharmacy, 10000, 2000),
    (Facility.clinic, 1000000, 250000),
])
def test_gen2_outpatient_facility_deductibles(facility, total, expected):
    assert get_rule("gen2").calc(total, 0, OUT, facility) == expected


def test_gen2_outpatient_counts_non_covered_at_full_rate():
    assert get_rule("gen2").calc(0, 40000, OUT, Facility.clinic) == 30000


def test_gen2_inpatient_floors_ninety_percent():
    assert get_rule("gen2").calc(100000, 55555, IN, Facility.general) == 139999


# ---------------------- gen3 ----------------------

def test_gen3_outpatient_minimum_deductible_wins():
    # logic deductible 5,000 < clinic minimum 10,000
    assert get_rule("gen3").calc(50000, 0, OUT, Facility.clinic) == 40000


def test_gen3_outpatient_coverage_linked_deductible_wins():
    # 0.1 * 120,000 + 0.2 * 50,000 = 22,000 > 15,000
    assert get_rule("gen3").calc(120000, 50000, OUT, Facility.hospital) == 148000


def test_gen3_outpatient_floors_fractional_deductible():
    # 123,457 - 12,345.7 = 111,111.3
    assert get_rule("gen3").calc(123457, 0, OUT, Facility.clinic) == 111111


def test_gen3_outpatient_cap():
    assert get_rule("gen3").calc(200000, 100000, OUT, Facility.clinic) == 250000


def test_gen3_inpatient_floors():
    # 9.9 + 5.6
    assert get_rule("gen3").calc(11, 7, IN, Facility.clinic) == 15


# ---------------------- gen4 ----------------------

def test_gen4_outpatient_coinsurance_beats_floor():
    assert get_rule("gen4").calc(100000, 0, OUT, Facility.clinic) == 80000


def test_gen4_outpatient_categories_are_independent():
    # covered: 30,000 - 10,000; non-covered: 50,000 - 30,000
    assert get_rule("gen4").calc(30000, 50000, OUT, Facility.hospital) == 40000


def test_gen4_outpatient_negative_category_does_not_offset_other():
    # covered part is below the 20,000 floor and contributes 0, not -5,000
    assert get_rule("gen4").calc(15000, 200000, OUT, Facility.general) == 140000


def test_gen4_outpatient_cap_on_sum():
    assert get_rule("gen4").calc(500000, 500000, OUT, Facility.clinic) == 250000


def test_gen4_inpatient_flat_rates():
    assert get_rule("gen4").calc(100000, 100000, IN, Facility.clinic) == 150000
    assert get_rule("gen4").calc(3, 3, IN, Facility.clinic) == 4


# ---------------------- Properties ----------------------

AMOUNTS = [0, 1, 4999, 5000, 8000, 9999, 15000, 20001, 30000, 47123, 99999, 250000, 333333, 1000000]


@pytest.mark.parametrize("treatment_type", [IN, OUT])
@pytest.mark.parametrize("facility", list(Facility))
def test_zero_cost_yields_zero(treatment_type, facility):
    for rule in get_generation_rules():
        assert rule.calc(0, 0, treatment_type, facility) == 0


@pytest.mark.parametrize("treatment_type", [IN, OUT])
@pytest.mark.parametrize("facility", list(Facility))
def test_amounts_are_non_negative_and_monotonic(treatment_type, facility):
    for rule in get_generation_rules():
        for fixed in AMOUNTS:
            by_pay = [rule.calc(amount, fixed, treatment_type, facility) for amount in AMOUNTS]
            by_non_pay = [rule.calc(fixed, amount, treatment_type, facility) for amount in AMOUNTS]
            for series in (by_pay, by_non_pay):
                assert all(value >= 0 for value in series)
                assert series == sorted(series), (rule.key, facility, treatment_type, fixed)


@pytest.mark.parametrize("facility", list(Facility))
def test_outpatient_never_exceeds_cap(facility):
    for rule in get_generation_rules():
        cap = cap_for(rule.key, facility)
        for pay in AMOUNTS:
            for non_pay in AMOUNTS:
                assert rule.calc(pay, non_pay, OUT, facility) <= cap
        assert rule.calc(5000000, 5000000, OUT, facility) == cap


def test_inpatient_has_no_cap():
    for rule in get_generation_rules():
        assert rule.calc(10000000, 0, IN, Facility.clinic) >= 8000000


def test_rules_accept_plain_string_context():
    assert get_rule("gen1").calc(60000, 0, "outpatient", "clinic") == 55000


def test_rules_are_ordered_and_described():
    rules = get_generation_rules()
    assert [r.key for r in rules] == ["gen1", "gen2", "gen3", "gen4"]
    assert rules[0].name == "1세대"
    assert rules[0].cap_description == "통원 1회당 10만원 한도"
    assert rules[3].description == "급여 80% / 비급여 70%"


# ---------------------- Domain violations ----------------------

def test_negative_base_is_rejected():
    with pytest.raises(DomainViolation) as exc:
        get_rule("gen2").calc(-1, 0, OUT, Facility.clinic)
    assert exc.value.code == "DOMAIN_VIOLATION"
    assert exc.value.http_status == 422


def test_fractional_base_is_rejected():
    with pytest.raises(DomainViolation):
        get_rule("gen3").calc(1000.5, 0, OUT, Facility.clinic)


def test_unknown_facility_is_rejected():
    with pytest.raises(DomainViolation) as exc:
        get_rule("gen4").calc(1000, 0, OUT, "spa")
    assert exc.value.detail["facility"] == "spa"


def test_unknown_treatment_type_is_rejected():
    with pytest.raises(DomainViolation):
        get_rule("gen1").calc(1000, 0, "daycare", Facility.clinic)


def test_unknown_generation_key():
    with pytest.raises(KeyError):
        get_rule("gen5")
