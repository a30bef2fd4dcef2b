import pytest

from journey_scheduler.services.execution.conditions import (
    evaluate_condition,
    evaluate_operator,
    get_nested_value,
    is_known_operator,
)
from journey_scheduler.services.execution.models import MISSING


def cond(field, operator, value):
    return {"field": field, "operator": operator, "value": value}


class TestGetNestedValue:
    def test_top_level(self):
        assert get_nested_value({"age": 72}, "age") == 72

    def test_dotted_path(self):
        assert get_nested_value({"demographics": {"age": 65}}, "demographics.age") == 65

    def test_absent_segment_is_missing(self):
        assert get_nested_value({"id": "p1"}, "age") is MISSING

    def test_null_intermediate_is_missing(self):
        assert get_nested_value({"demographics": None}, "demographics.age") is MISSING

    def test_non_mapping_intermediate_is_missing(self):
        assert get_nested_value({"demographics": "n/a"}, "demographics.age") is MISSING

    def test_explicit_null_is_returned(self):
        assert get_nested_value({"age": None}, "age") is None

    def test_list_index(self):
        context = {"conditions": ["diabetes", "hypertension"]}
        assert get_nested_value(context, "conditions.1") == "hypertension"

    def test_list_index_then_key(self):
        context = {"visits": [{"ward": "ortho"}]}
        assert get_nested_value(context, "visits.0.ward") == "ortho"

    def test_list_index_out_of_range_is_missing(self):
        assert get_nested_value({"conditions": ["diabetes"]}, "conditions.3") is MISSING

    def test_non_numeric_list_segment_is_missing(self):
        assert get_nested_value({"conditions": ["diabetes"]}, "conditions.first") is MISSING

    def test_condition_on_list_element(self):
        context = {"id": "p1", "conditions": ["diabetes", "hypertension"]}
        assert evaluate_condition(cond("conditions.0", "==", "diabetes"), context) is True

    def test_empty_path_is_missing(self):
        assert get_nested_value({"age": 1}, "") is MISSING


class TestSeniorCheck:
    """age >= 65 branching as used by the post-surgery journeys."""

    def test_senior_patient_matches(self):
        assert evaluate_condition(cond("age", ">=", 65), {"id": "p1", "age": 72}) is True

    def test_younger_patient_does_not_match(self):
        assert evaluate_condition(cond("age", ">=", 65), {"id": "p1", "age": 45}) is False

    def test_boundary_matches(self):
        assert evaluate_condition(cond("age", ">=", 65), {"id": "p1", "age": 65}) is True

    def test_missing_age_does_not_match(self):
        assert evaluate_condition(cond("age", ">=", 65), {"id": "p1"}) is False

    def test_nested_age(self):
        context = {"id": "p1", "demographics": {"age": 65}}
        assert evaluate_condition(cond("demographics.age", ">", 60), context) is True

    def test_nested_age_under_null_parent(self):
        context = {"id": "p1", "demographics": None}
        assert evaluate_condition(cond("demographics.age", ">", 60), context) is False


class TestOperators:
    @pytest.mark.parametrize("operator,actual,target,expected", [
        (">", 5, 3, True),
        (">", 3, 5, False),
        ("<", 3, 5, True),
        ("<=", 5, 5, True),
        (">=", 4, 5, False),
        ("=", "en", "en", True),
        ("==", "en", "es", False),
        ("!=", "en", "es", True),
        ("!=", "en", "en", False),
    ])
    def test_basic(self, operator, actual, target, expected):
        assert evaluate_operator(operator, actual, target) is expected

    def test_equality_is_strict_about_types(self):
        assert evaluate_operator("==", "65", 65) is False
        assert evaluate_operator("==", True, 1) is False
        assert evaluate_operator("==", 65, 65.0) is True

    def test_numeric_string_orders_against_number(self):
        assert evaluate_operator(">", "70", 65) is True

    def test_unorderable_values_never_match(self):
        assert evaluate_operator(">", "abc", 65) is False
        assert evaluate_operator("<", {"a": 1}, 65) is False

    def test_null_never_orders(self):
        assert evaluate_operator(">=", None, 0) is False
        assert evaluate_operator("<=", 0, None) is False

    def test_missing_field_under_not_equal(self):
        assert evaluate_condition(cond("language", "!=", "es"), {"id": "p1"}) is True
        assert evaluate_condition(cond("language", "==", "es"), {"id": "p1"}) is False

    def test_null_value_equality(self):
        assert evaluate_condition(cond("condition", "==", None), {"condition": None}) is True
        assert evaluate_condition(cond("condition", "==", None), {}) is False


class TestUnknownOperators:
    def test_unknown_operator_evaluates_false(self):
        assert evaluate_condition(cond("age", "contains", 6), {"age": 65}) is False

    def test_evaluate_operator_reports_unknown(self):
        assert evaluate_operator("~=", 1, 1) is None

    def test_is_known_operator(self):
        assert is_known_operator(">=")
        assert is_known_operator("!=")
        assert not is_known_operator("in")
