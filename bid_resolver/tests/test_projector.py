"""Pin project_records(): fixed columns, escaping, order, budget warning."""

import csv
import io
import logging

from bid_resolver.models import Candidate, CatalogRecord
from bid_resolver.projector import escape_field, project_records


def _parse(text):
    return list(csv.reader(io.StringIO(text)))


class TestEscapeField:
    def test_plain_value_raw(self):
        assert escape_field("EMT Conduit") == "EMT Conduit"

    def test_delimiter_quoted(self):
        assert escape_field("Set screw, steel") == '"Set screw, steel"'

    def test_quotes_doubled(self):
        assert escape_field('3/4" EMT') == '"3/4"" EMT"'

    def test_newline_quoted(self):
        assert escape_field("GREEN: GR\nRED: RD") == '"GREEN: GR\nRED: RD"'

    def test_custom_delimiter(self):
        assert escape_field("a,b", delimiter="|") == "a,b"
        assert escape_field("a|b", delimiter="|") == '"a|b"'


class TestProjectRecords:
    def test_header_then_rows_in_order(self, emt_conduit, emt_connector, junction_box):
        table = project_records(
            [Candidate(junction_box), Candidate(emt_conduit), Candidate(emt_connector)],
            columns=["code", "name", "code_template"],
        )
        rows = _parse(table.text)
        assert rows[0] == ["GBID", "Name", "GBID Template"]
        assert [r[1] for r in rows[1:]] == ["Junction Box", "EMT Conduit", "EMT Connector"]
        assert table.row_count == 3

    def test_missing_fields_are_empty_cells(self, junction_box):
        table = project_records([Candidate(junction_box)], columns=["code", "name", "properties"])
        assert _parse(table.text)[1] == ["", "Junction Box", ""]

    def test_column_count_fixed_with_awkward_values(self):
        record = CatalogRecord(
            record_id="r1", code="C34", name='3/4" EMT Connector',
            properties="Set screw, steel", special_notes="line one\nline two",
        )
        table = project_records([Candidate(record)])
        rows = _parse(table.text)
        assert len(rows) == 2
        assert len(rows[0]) == len(rows[1])
        assert rows[1][1] == '3/4" EMT Connector'

    def test_default_columns_from_rules(self, rules, emt_conduit):
        table = project_records([Candidate(emt_conduit)])
        assert len(_parse(table.text)[0]) == len(rules.projection.columns)

    def test_over_budget_logs_and_keeps_rows(self, caplog):
        records = [Candidate(CatalogRecord(record_id=str(i), name=f"Item {i}", code=f"C{i}")) for i in range(50)]
        with caplog.at_level(logging.WARNING, logger="bid_resolver.projector"):
            table = project_records(records, budget=100)
        assert table.row_count == 50
        assert len(_parse(table.text)) == 51
        assert "over the" in caplog.text

    def test_within_budget_no_warning(self, caplog, emt_conduit):
        with caplog.at_level(logging.WARNING, logger="bid_resolver.projector"):
            table = project_records([Candidate(emt_conduit)], budget=10_000)
        assert table.size == len(table.text)
        assert caplog.text == ""

    def test_empty_candidates_header_only(self):
        table = project_records([], columns=["code", "name"])
        assert table.text == "GBID,Name"
        assert table.row_count == 0
