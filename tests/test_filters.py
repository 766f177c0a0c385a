"""
Tests for subscription filter rendering.
"""

import pytest

from biztalk_analyzer.errors import UnsupportedConstruct
from biztalk_analyzer.workflow.filters import (
    map_filter_property,
    render_expression,
    render_predicate,
    render_statement,
    split_dnf_groups,
)

from builders import element


class TestRendering:
    """Tests for single filter expressions."""

    def test_comparison(self):
        assert render_expression("Foo", "=", "Bar") == "Foo = 'Bar'"

    def test_exists(self):
        """EXISTS ignores the value."""
        assert render_expression("Foo", "EXISTS", "ignored") == "EXISTS ( Foo )"

    def test_known_property_is_mapped(self):
        assert map_filter_property("BTS.ReceivePortName") == "btsReceivePortName"

    def test_unknown_property_loses_dots(self):
        assert map_filter_property("Contoso.Schemas.Priority") == "ContosoSchemasPriority"

    def test_predicate_strips_quotes(self):
        assert render_predicate("BTS.MessageType", "Equals", '"http://ns#Order"') == (
            "btsMessageType = 'http://ns#Order'"
        )

    def test_predicate_unknown_operator(self):
        with pytest.raises(UnsupportedConstruct):
            render_predicate("BTS.MessageType", "Matches", '"x"')

    def test_statement_operators(self):
        assert render_statement("BTS.SPName", 5, "SP1") == "btsSpName != 'SP1'"
        assert render_statement("Contoso.Priority", 6, None) == "EXISTS ( ContosoPriority )"

    def test_statement_unknown_operator(self):
        with pytest.raises(UnsupportedConstruct):
            render_statement("BTS.MessageType", 42, "x")


class TestDnfGroups:
    """Tests for split_dnf_groups."""

    def _predicate(self, lhs, grouping=None):
        properties = {"LHS": lhs, "Operator": "Exists"}
        if grouping is not None:
            properties["Grouping"] = grouping
        return element("DNFPredicate", None, **properties)

    def test_or_closes_group(self):
        a = self._predicate("A", "AND")
        b = self._predicate("B", "OR")
        c = self._predicate("C")

        assert split_dnf_groups([a, b, c]) == [[a, b], [c]]

    def test_single_group(self):
        a = self._predicate("A", "AND")
        b = self._predicate("B")

        assert split_dnf_groups([a, b]) == [[a, b]]

    def test_trailing_or(self):
        """A trailing OR leaves no empty group."""
        a = self._predicate("A", "OR")

        assert split_dnf_groups([a]) == [[a]]

    def test_empty(self):
        assert split_dnf_groups([]) == []
