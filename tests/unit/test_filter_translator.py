from __future__ import annotations

from lenient_import.filters.registry import FILTER_REGISTRY, available_filters, canonical_operator
from lenient_import.filters.translator import (
    MAX_PAGE_SIZE,
    build_filter_from_query,
    filter_dynamic,
    normalize_filters,
    translate_filter_request,
)
from lenient_import.models.filter_models import FilterCondition, FilterPage


def test_list_and_mapping_shapes_translate_identically():
    as_list = translate_filter_request({
        "filters": [
            {"field": "poNo", "operator": "startsWith", "value": "PO"},
            {"field": "amount", "operator": "gte", "value": "1,200"},
        ],
        "sortBy": "poDate",
        "sortOrder": "asc",
    })
    as_mapping = translate_filter_request({
        "filters": {
            "poNo": {"operator": "starts_with", "value": "PO"},
            "amount": {"operator": ">=", "value": 1200},
        },
        "sortBy": "poDate",
        "sortOrder": "ASC",
    })
    assert as_list.canonical == as_mapping.canonical
    assert as_list.canonical.filters["poNo"] == FilterCondition("starts_with", value="PO")
    assert as_list.canonical.filters["amount"] == FilterCondition("gte", value=1200)
    assert as_list.warnings == []


def test_pagination_is_clamped_with_warnings():
    translation = translate_filter_request({"filters": {}, "limit": 5000, "page": 0})
    assert translation.canonical.limit == MAX_PAGE_SIZE
    assert translation.canonical.page == 1
    assert len(translation.warnings) == 2
    assert translation.is_valid


def test_defaults():
    canonical = translate_filter_request({}).canonical
    assert canonical.filters == {}
    assert canonical.page == 1
    assert canonical.limit == 50
    assert canonical.sort_by == "createdAt"
    assert canonical.sort_order == "DESC"
    assert canonical.combine_operator == "AND"

    canonical = translate_filter_request({"combineOperator": "or"}, default_sort_by="poDate").canonical
    assert canonical.combine_operator == "OR"
    assert canonical.sort_by == "poDate"
    assert translate_filter_request({"operator": "OR"}).canonical.combine_operator == "OR"


def test_operator_defaults_by_field_type():
    filters = translate_filter_request({
        "filters": {
            "brandName": {"value": "Amox"},
            "amount": {"value": "99.5"},
            "poDate": {"from": "01/02/2024"},
        }
    }).canonical.filters
    assert filters["brandName"] == FilterCondition("contains", value="Amox")
    assert filters["amount"] == FilterCondition("equals", value=99.5)
    assert filters["poDate"] == FilterCondition("date_range", from_="2024-02-01")


def test_bare_value_shorthand():
    filters = translate_filter_request({"filters": {"poNo": "PO7"}}).canonical.filters
    assert filters["poNo"] == FilterCondition("contains", value="PO7")


def test_unsatisfiable_conditions_are_dropped_and_reported():
    translation = translate_filter_request({
        "filters": {
            "amount": {"operator": "between"},
            "brandName": {"operator": "in", "values": []},
            "poNo": {"operator": "sounds_like", "value": "x"},
            "partyName": {"operator": "equals"},
            "poDate": {"operator": "date_range"},
            "gstNo": {"operator": "is_null"},
        }
    })
    assert sorted(translation.dropped_conditions) == ["amount", "brandName", "partyName", "poDate", "poNo"]
    assert translation.canonical.filters == {"gstNo": FilterCondition("is_null")}
    assert len(translation.warnings) >= 5
    assert translation.hard_errors == []


def test_between_with_single_bound_becomes_equals():
    translation = translate_filter_request({"filters": {"amount": {"operator": "between", "min": "10"}}})
    assert translation.canonical.filters["amount"] == FilterCondition("equals", value=10)
    assert any("single bound" in w for w in translation.warnings)

    both = translate_filter_request({"filters": {"poQty": {"operator": "range", "min": 1, "max": "20"}}})
    assert both.canonical.filters["poQty"] == FilterCondition("between", min=1, max=20)


def test_set_operators_coerce_values():
    translation = translate_filter_request({
        "filters": {
            "overallStatus": {"operator": "in", "values": ["OPEN", "CLOSED"]},
            "amount": {"operator": "in", "values": ["10", "abc", 20]},
        }
    })
    filters = translation.canonical.filters
    assert filters["overallStatus"].values == ("OPEN", "CLOSED")
    assert filters["amount"].values == (10, 20)
    assert any("could not be read as number" in w for w in translation.warnings)


def test_dates_are_coerced_to_iso():
    filters = translate_filter_request({
        "filters": {"dispatchDate": {"operator": "date_range", "from": "2024/01/05", "to": "31-01-2024"}}
    }).canonical.filters
    assert filters["dispatchDate"] == FilterCondition("date_range", from_="2024-01-05", to="2024-01-31")


def test_unknown_field_passes_through_with_warning():
    translation = translate_filter_request({"filters": {"tabletColour": {"value": "red"}}})
    assert translation.canonical.filters["tabletColour"] == FilterCondition("contains", value="red")
    assert any("Unknown filter field 'tabletColour'" in w for w in translation.warnings)


def test_operator_outside_field_list_is_kept_with_warning():
    translation = translate_filter_request({"filters": {"poNo": {"operator": "gt", "value": "PO5"}}})
    assert translation.canonical.filters["poNo"] == FilterCondition("gt", value="PO5")
    assert any("not listed for field 'poNo'" in w for w in translation.warnings)


def test_list_items_without_field_are_ignored():
    translation = translate_filter_request({"filters": [{"operator": "equals", "value": 1}, "junk"]})
    assert translation.canonical.filters == {}
    assert len(translation.warnings) == 2


def test_unusable_request_is_a_hard_error_not_an_exception():
    translation = translate_filter_request({"filters": 42})
    assert translation.hard_errors
    assert translation.canonical.filters == {}

    translation = translate_filter_request(["not", "a", "request"])
    assert translation.hard_errors
    assert translation.canonical.page == 1


def test_normalize_filters_list_to_mapping():
    assert normalize_filters([{"field": " poNo ", "operator": "equals", "value": "PO1"}]) == {
        "poNo": {"operator": "equals", "value": "PO1"}
    }
    assert normalize_filters(None) == {}


def test_filters_json_uses_wire_names():
    canonical = translate_filter_request({"filters": {"poDate": {"from": "2024-01-01", "to": "2024-02-01"}}}).canonical
    assert canonical.filters_json() == '{"poDate": {"operator": "date_range", "from": "2024-01-01", "to": "2024-02-01"}}'


def test_build_filter_from_query():
    request = build_filter_from_query({
        "poDate_from": "2024-01-01",
        "amount_min": "10",
        "amount_max": "20",
        "brandName": "Amox",
        "overallStatus": "OPEN, CLOSED",
        "overallStatus_op": "in",
        "page": "2",
        "limit": "25",
        "sortOrder": "asc",
    })
    assert request["filters"] == {
        "poDate": {"operator": "date_range", "from": "2024-01-01"},
        "amount": {"operator": "between", "min": "10", "max": "20"},
        "brandName": {"operator": "contains", "value": "Amox"},
        "overallStatus": {"operator": "in", "values": ["OPEN", "CLOSED"]},
    }
    assert request["page"] == 2
    assert request["limit"] == 25
    assert request["sortOrder"] == "ASC"
    assert request["sortBy"] == "createdAt"
    assert request["operator"] == "AND"

    canonical = translate_filter_request(request).canonical
    assert canonical.filters["amount"] == FilterCondition("between", min=10, max=20)


def test_canonical_operator():
    assert canonical_operator("startsWith") == "starts_with"
    assert canonical_operator("isNotNull") == "is_not_null"
    assert canonical_operator(">=") == "gte"
    assert canonical_operator("EQ") == "equals"
    assert canonical_operator("fuzzy") is None
    assert canonical_operator("") is None


def test_available_filters():
    filters = available_filters()
    assert set(filters) == set(FILTER_REGISTRY)
    assert filters["poDate"]["type"] == "date"
    assert "date_range" in filters["poDate"]["operators"]


class _RecordingEngine:
    def __init__(self):
        self.received = None

    def execute(self, canonical):
        self.received = canonical
        return FilterPage(total_count=0, page_number=canonical.page, page_size=canonical.limit, total_pages=1, data=[])


def test_filter_dynamic_hands_canonical_to_engine():
    engine = _RecordingEngine()
    page = filter_dynamic({"filters": [{"field": "poNo", "value": "PO"}], "limit": 9999}, engine)
    assert engine.received.filters["poNo"] == FilterCondition("contains", value="PO")
    assert engine.received.limit == MAX_PAGE_SIZE
    assert page.to_dict() == {"totalCount": 0, "pageNumber": 1, "pageSize": 1000, "totalPages": 1, "data": []}


def test_non_finite_pagination_falls_back_to_defaults():
    translation = translate_filter_request({"page": float("inf"), "limit": 10})
    assert translation.is_valid
    assert translation.canonical.page == 1
    assert translation.canonical.limit == 10
