"""Tests for filter expression parsing."""

import pytest

from bizregistry.models import FilterExpression


class TestFilterExpressionParsing:
    """Test that parsing is total and normalizing."""

    def test_empty(self):
        expr = FilterExpression.from_query_string("")
        assert expr == FilterExpression()

    def test_leading_question_mark(self):
        expr = FilterExpression.from_query_string("?city=oslo")
        assert expr.city == "oslo"

    def test_whitespace_values_are_absent(self):
        expr = FilterExpression.from_pairs([("city", "   "), ("industries", " ")])
        assert expr.city is None
        assert expr.industries == []

    def test_unknown_keys_ignored(self):
        expr = FilterExpression.from_pairs([("color", "blue"), ("sortBy", "name")])
        assert expr == FilterExpression()

    def test_vat_registered(self):
        assert FilterExpression.from_pairs([("vatRegistered", "yes")]).vat_registered
        assert (
            FilterExpression.from_pairs([("vatRegistered", "nope")]).vat_registered
            is False
        )
        assert FilterExpression.from_pairs([("vatRegistered", "")]).vat_registered is None

    def test_numbers(self):
        expr = FilterExpression.from_pairs(
            [
                ("revenueMin", "1.5e6"),
                ("revenueMax", "abc"),
                ("profitMin", "nan"),
                ("profitMax", "-20"),
            ]
        )
        assert expr.revenue_min == 1500000
        assert expr.revenue_max is None
        assert expr.profit_min is None
        assert expr.profit_max == -20

    def test_dates(self):
        expr = FilterExpression.from_pairs(
            [("registeredFrom", "2020-01-31T10:00:00Z"), ("registeredTo", "31.12.2020")]
        )
        assert expr.registered_from == "2020-01-31"
        assert expr.registered_to is None

    def test_events(self):
        assert FilterExpression.from_pairs([("events", "WITH")]).events == "with"
        assert FilterExpression.from_pairs([("events", "maybe")]).events is None
        expr = FilterExpression.from_pairs([("eventTypes", "Konkurs, Fusjon,,")])
        assert expr.event_types == ["Konkurs", "Fusjon"]

    @pytest.mark.parametrize("value", ["", "1", "true", "0", "false", "no"])
    def test_presence_flags(self, value):
        """Any value, including 0 and false, turns a present flag on."""
        expr = FilterExpression.from_query_string(f"webCmsShopify={value}")
        assert expr.web_cms_shopify is True
        assert expr.web_ecom_woocommerce is False

    def test_bare_flag_is_on(self):
        expr = FilterExpression.from_query_string("webEcomWoocommerce&city=oslo")
        assert expr.web_ecom_woocommerce is True
        assert expr.web_cms_shopify is False

    def test_merged_industries_and_areas(self):
        expr = FilterExpression.from_pairs(
            [
                ("industryCode", "62"),
                ("industries", "47"),
                ("city", "bergen"),
                ("areas", "oslo"),
            ]
        )
        assert expr.all_industries == ["47", "62"]
        assert expr.all_areas == ["oslo", "bergen"]

    def test_count_signature_order(self):
        expr = FilterExpression.from_pairs(
            [
                ("search", "s"),
                ("vatRegistered", "1"),
                ("employeeBucket", "e"),
                ("revenueBucket", "r"),
                ("city", "c"),
                ("orgFormCode", "AS"),
                ("orgFormCode", "ENK"),
                ("sectorCode", "sc"),
                ("industryCode", "62"),
            ]
        )
        assert expr.count_signature() == ("62", "sc", "AS", "c", "r", "e", True, "s")


class TestFilterExpressionSerialization:
    """Test canonical re-serialization."""

    def test_sorted_and_reparsable(self):
        expr = FilterExpression.from_query_string(
            "search=kaffe&city=oslo&orgFormCode=AS&orgFormCode=ENK&vatRegistered=1"
        )
        query = expr.to_query_string()
        assert query == (
            "city=oslo&orgFormCode=AS&orgFormCode=ENK&search=kaffe&vatRegistered=true"
        )
        assert FilterExpression.from_query_string(query) == expr
