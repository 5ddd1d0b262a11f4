"""Pin normalize_quantity() and the quantity-expression parser."""

import pytest

from bid_resolver.quantities import (
    normalize_quantity,
    parse_per_container,
    parse_quantity_expression,
    strip_quantity_expression,
)


class TestFootage:
    def test_feet_mark(self):
        assert normalize_quantity("200'") == 200

    def test_feet_mark_with_description(self):
        assert normalize_quantity("200' of 3/4 EMT") == 200

    def test_ft_word(self):
        assert normalize_quantity("150 ft 12 awg THHN") == 150

    def test_thousands_separator(self):
        assert normalize_quantity("1,000' #12 THHN") == 1000

    def test_curly_prime(self):
        assert normalize_quantity("200’ of EMT") == 200

    def test_size_fraction_is_not_footage(self):
        assert parse_quantity_expression("3/4 EMT") is None


class TestCutsAndRolls:
    def test_cuts_times_length(self):
        assert normalize_quantity("2 cuts × 400'") == 800

    def test_rolls_times_length(self):
        assert normalize_quantity("2 rolls × 500'") == 1000

    def test_cuts_of_length_with_description(self):
        assert normalize_quantity("2 cuts of 400' of 3/4 EMT") == 800

    def test_parenthesized_count_before_length(self):
        assert normalize_quantity("(2) 500' rolls #10 THHN") == 1000

    def test_length_before_count(self):
        assert normalize_quantity("500' x 2 cuts 12/2 MC") == 1000

    def test_fraction_rounds_up(self):
        assert normalize_quantity("3 cuts x 10.5'") == 32

    def test_expression_kind(self):
        expr = parse_quantity_expression("2 cuts × 400'")
        assert expr.kind == "runs"
        assert expr.count == 2
        assert expr.length == 400


class TestContainers:
    def test_boxes_times_per_box(self):
        assert normalize_quantity("3 boxes", "24 per box") == 72

    def test_per_box_abbreviation(self):
        assert normalize_quantity("2 bx wire nuts", "Red, 25/bx") == 50

    def test_box_of_n(self):
        assert normalize_quantity("4 boxes of connectors", "Box of 50") == 200

    def test_no_declared_box_size_is_plain_count(self):
        assert normalize_quantity("3 boxes", "") == 3

    def test_box_dimensions_are_not_a_box_size(self):
        assert normalize_quantity("3 boxes", "Square box 4 inch, 2-1/8 deep") == 3
        assert parse_per_container("Square box 4 inch, 2-1/8 deep") is None

    def test_box_qty_label(self):
        assert parse_per_container("Box Qty: 20") == 20

    def test_per_container_parse(self):
        assert parse_per_container("24 per box") == 24
        assert parse_per_container("steel, 100 pcs per carton") == 100
        assert parse_per_container("steel") is None


class TestBareCount:
    def test_leading_count(self):
        assert normalize_quantity("10 3/4 EMT connectors") == 10

    def test_qty_label(self):
        assert normalize_quantity("EMT connector qty: 12") == 12

    def test_pcs_suffix(self):
        assert normalize_quantity("ground rod clamps 6 pcs") == 6


class TestUnparseable:
    @pytest.mark.parametrize("text", ["EMT conduit", "3/4 EMT", "", "some wire nuts"])
    def test_returns_none(self, text):
        assert normalize_quantity(text) is None


class TestStripQuantityExpression:
    def test_runs_removed(self):
        assert strip_quantity_expression("2 cuts of 400' of 3/4 EMT") == "3/4 EMT"

    def test_count_removed(self):
        assert strip_quantity_expression("10 3/4 EMT connectors") == "3/4 EMT connectors"

    def test_containers_removed(self):
        assert strip_quantity_expression("3 boxes of 8x8x6 junction box") == "8x8x6 junction box"

    def test_no_expression_unchanged(self):
        assert strip_quantity_expression("EMT conduit") == "EMT conduit"
