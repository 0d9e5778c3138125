"""Tests for identifier quoting, the write guard, statement assembly and result shaping."""

import json
import unittest
from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal
from uuid import UUID

from mssql_mcp.catalog import ProcedureParameter
from mssql_mcp.error_handling import (
    ErrorType,
    InternalError,
    InvalidArgumentsError,
    PolicyViolationError,
    create_error_response,
    validate_parameter_types,
)
from mssql_mcp.formatting import build_envelope, camel_case, to_jsonable, truncate_recordset
from mssql_mcp.identifiers import TableRef, has_explicit_schema, quote_identifier, resolve_object_name
from mssql_mcp.statements import (
    build_procedure_batch,
    build_search_statement,
    escape_like,
    match_parameters,
    sql_type_spec,
)
from mssql_mcp.write_guard import enforce_read_only, find_blocked_keywords, strip_non_code


class TestIdentifiers(unittest.TestCase):

    def test_quote_identifier_doubles_closing_bracket(self):
        self.assertEqual(quote_identifier("Orders"), "[Orders]")
        self.assertEqual(quote_identifier("a]b"), "[a]]b]")
        self.assertEqual(quote_identifier("x]; DROP TABLE t; --"), "[x]]; DROP TABLE t; --]")

    def test_quote_identifier_rejects_empty(self):
        with self.assertRaises(InvalidArgumentsError):
            quote_identifier("")

    def test_resolve_defaults_to_dbo(self):
        self.assertEqual(resolve_object_name("Orders"), TableRef("dbo", "Orders"))
        self.assertEqual(resolve_object_name("sales.Orders"), TableRef("sales", "Orders"))
        self.assertEqual(resolve_object_name("  sales.Orders "), TableRef("sales", "Orders"))

    def test_resolve_delimited_parts(self):
        """Dots inside brackets or double quotes do not split the name."""
        self.assertEqual(resolve_object_name("[my.schema].[Order Items]"), TableRef("my.schema", "Order Items"))
        self.assertEqual(resolve_object_name('"sales"."Q1.Totals"'), TableRef("sales", "Q1.Totals"))
        self.assertEqual(resolve_object_name("[a]]b]"), TableRef("dbo", "a]b"))

    def test_qualified_name_round_trips_through_quoting(self):
        ref = resolve_object_name("[a]]b].c")
        self.assertEqual(ref.qualified_name, "[a]]b].[c]")
        self.assertEqual(str(ref), "a]b.c")

    def test_has_explicit_schema(self):
        self.assertTrue(has_explicit_schema("sys.sp_who"))
        self.assertTrue(has_explicit_schema("[sales].[Q1.Totals]"))
        self.assertFalse(has_explicit_schema("sp_who"))
        self.assertFalse(has_explicit_schema("[my.proc]"))

    def test_resolve_rejects_malformed_names(self):
        for raw in ("", "   ", "db.sales.Orders", "sales.", ".Orders", "[unterminated"):
            with self.subTest(raw=raw):
                with self.assertRaises(InvalidArgumentsError):
                    resolve_object_name(raw)


class TestWriteGuard(unittest.TestCase):

    def test_blocks_mutating_keywords_any_case(self):
        for sql in (
            "UPDATE Orders SET Total = 0",
            "update orders set total = 0",
            "SELECT 1;\nDeLeTe FROM Orders",
            "INSERT INTO t VALUES (1)",
            "MERGE INTO t USING s ON 1 = 1 WHEN MATCHED THEN DELETE;",
            "TRUNCATE TABLE dbo.Audit",
            "DROP TABLE dbo.Audit",
            "ALTER TABLE dbo.Audit ADD x INT",
            "please Delete this",
            "EXEC('DELETE FROM dbo.Orders')",
            "EXEC sp_executesql N'UPDATE dbo.Orders SET Total = 0'",
            "EXEC dbo.DeleteAllOrders",
            "execute dbo.ArchiveOrders @Days = 30",
            "sp_executesql N'SELECT 1'",
        ):
            with self.subTest(sql=sql):
                with self.assertRaises(PolicyViolationError) as cm:
                    enforce_read_only(sql)
                self.assertEqual(
                    cm.exception.message,
                    "Update, delete, and insert statements are not allowed in this tool"
                )
                self.assertEqual(cm.exception.operation, "execute_query")

    def test_allows_read_only_statements(self):
        for sql in (
            "SELECT * FROM dbo.Orders",
            "SELECT update_count, deleted_at FROM dbo.Stats",
            "SELECT * FROM dbo.Log WHERE Action = 'DELETE'",
            "SELECT [Update] FROM dbo.Audit",
            'SELECT "insert" FROM dbo.Audit',
            "SELECT 1 -- delete me later",
            "SELECT 1 /* outer /* UPDATE */ still comment */",
            "WITH c AS (SELECT 1 AS n) SELECT n FROM c",
        ):
            with self.subTest(sql=sql):
                enforce_read_only(sql)

    def test_escaped_quotes_stay_inside_literal(self):
        self.assertEqual(find_blocked_keywords("SELECT 'it''s an update' AS msg"), [])
        self.assertEqual(find_blocked_keywords("SELECT 'x''' ; DROP TABLE t"), ["DROP"])

    def test_unterminated_comment_hides_rest(self):
        self.assertEqual(find_blocked_keywords("SELECT 1 /* DELETE"), [])

    def test_keywords_reported_once_in_order(self):
        found = find_blocked_keywords("DELETE FROM a; UPDATE b SET x = 1; delete from c")
        self.assertEqual(found, ["DELETE", "UPDATE"])

    def test_strip_non_code_blanks_literals(self):
        stripped = strip_non_code("SELECT 'DROP' AS [ALTER] -- TRUNCATE\nFROM t")
        self.assertNotIn("DROP", stripped)
        self.assertNotIn("ALTER", stripped)
        self.assertNotIn("TRUNCATE", stripped)
        self.assertIn("FROM t", stripped)


class TestSearchStatement(unittest.TestCase):

    def test_escape_like(self):
        self.assertEqual(escape_like("50%_off"), "50\\%\\_off")
        self.assertEqual(escape_like("[x]"), "\\[x]")
        self.assertEqual(escape_like("a\\b"), "a\\\\b")

    def test_term_is_bound_not_interpolated(self):
        sql, params = build_search_statement(
            TableRef("dbo", "Customers"), ["Name", "Email"], "o'brien%", 10
        )

        self.assertEqual(
            sql,
            "SELECT TOP (?) * FROM [dbo].[Customers] WHERE [Name] LIKE ? ESCAPE '\\' "
            "OR [Email] LIKE ? ESCAPE '\\'"
        )
        self.assertNotIn("brien", sql)
        self.assertEqual(params, [10, "%o'brien\\%%", "%o'brien\\%%"])

    def test_requires_columns(self):
        with self.assertRaises(InvalidArgumentsError):
            build_search_statement(TableRef("dbo", "Customers"), [], "x", 10)


class TestProcedureBatch(unittest.TestCase):

    def setUp(self):
        self.proc = TableRef("sales", "UpsertCustomer")
        self.declared = [
            ProcedureParameter("@Name", "nvarchar", max_length=200),
            ProcedureParameter("@Tags", "nvarchar", max_length=-1),
            ProcedureParameter("@Counter", "int", max_length=4, is_output=True),
            ProcedureParameter("@Amount", "decimal", precision=18, scale=4, is_output=True),
        ]

    def test_sql_type_spec(self):
        self.assertEqual(sql_type_spec(self.declared[0]), "[nvarchar](100)")
        self.assertEqual(sql_type_spec(self.declared[1]), "[nvarchar](MAX)")
        self.assertEqual(sql_type_spec(self.declared[2]), "[int]")
        self.assertEqual(sql_type_spec(self.declared[3]), "[decimal](18, 4)")
        self.assertEqual(sql_type_spec(ProcedureParameter("@d", "datetime2", scale=7)), "[datetime2](7)")
        self.assertEqual(sql_type_spec(ProcedureParameter("@b", "varbinary", max_length=16)), "[varbinary](16)")

    def test_match_parameters_is_case_insensitive(self):
        matched = match_parameters(self.declared, {"name": "Ann", "@COUNTER": 3})
        self.assertEqual(matched, {"@Name": "Ann", "@Counter": 3})

    def test_unknown_parameter_rejected(self):
        with self.assertRaises(InvalidArgumentsError) as cm:
            match_parameters(self.declared, {"Name": "Ann", "Nope": 1})
        self.assertIn("Nope", cm.exception.message)

    def test_batch_layout(self):
        sql, params, output_names = build_procedure_batch(
            self.proc, self.declared, {"@Name": "Ann", "Tags": ["a", "b"], "Counter": 3}
        )

        self.assertEqual(sql.splitlines(), [
            "DECLARE @__return_value INT;",
            "DECLARE @__out_2 [int] = ?;",
            "DECLARE @__out_3 [decimal](18, 4);",
            "EXEC @__return_value = [sales].[UpsertCustomer] @Name = ?, @Tags = ?, "
            "@Counter = @__out_2 OUTPUT, @Amount = @__out_3 OUTPUT;",
            "SELECT @__return_value AS [__return_value], @__out_2 AS [Counter], @__out_3 AS [Amount];",
        ])
        self.assertEqual(params, [3, "Ann", '["a", "b"]'])
        self.assertEqual(output_names, ["Counter", "Amount"])

    def test_unsupplied_inputs_use_procedure_defaults(self):
        sql, params, _ = build_procedure_batch(self.proc, self.declared[:2], {})
        self.assertIn("EXEC @__return_value = [sales].[UpsertCustomer];", sql)
        self.assertEqual(params, [])


class TestFormatting(unittest.TestCase):

    def test_truncate_recordset(self):
        rows = [{"id": i} for i in range(7)]

        truncated = truncate_recordset(rows, 5)
        self.assertEqual(len(truncated.recordset), 5)
        self.assertEqual(truncated.recordset_count, 7)
        self.assertEqual(truncated.note, "Only showing first 5 rows out of 7 total rows")

        exact = truncate_recordset(rows, 7)
        self.assertIsNone(exact.note)
        self.assertEqual(exact.to_dict(), {"rowsAffected": 7, "recordset": rows, "recordsetCount": 7})

    def test_camel_case(self):
        self.assertEqual(camel_case("primary_keys"), "primaryKeys")
        self.assertEqual(camel_case("total_space_kb"), "totalSpaceKb")
        self.assertEqual(camel_case("name"), "name")

    def test_to_jsonable_values(self):
        @dataclass
        class Row:
            created_at: datetime
            row_data: dict

        value = to_jsonable(Row(
            created_at=datetime(2024, 5, 1, 12, 30),
            row_data={
                "Amount": Decimal("1.10"),
                "Guid": UUID("12345678-1234-5678-1234-567812345678"),
                "Blob": b"\x00\xff",
                "Day": date(2024, 5, 1),
                "snake_key": None,
            },
        ))

        self.assertEqual(value, {
            "createdAt": "2024-05-01T12:30:00",
            "rowData": {
                "Amount": "1.10",
                "Guid": "12345678-1234-5678-1234-567812345678",
                "Blob": "00ff",
                "Day": "2024-05-01",
                "snake_key": None,
            },
        })

    def test_envelope(self):
        envelope = build_envelope({"a": [1, 2]})
        self.assertEqual(envelope["content"][0]["type"], "text")
        self.assertEqual(json.loads(envelope["content"][0]["text"]), {"a": [1, 2]})
        self.assertEqual(build_envelope("plain")["content"][0]["text"], "plain")


class TestErrorResponses(unittest.TestCase):

    def test_error_response_fields(self):
        response = create_error_response("boom", ErrorType.NOT_FOUND, operation="describe_table")

        self.assertFalse(response["success"])
        self.assertEqual(response["error"], "boom")
        self.assertEqual(response["error_type"], "not_found_error")
        self.assertEqual(response["operation"], "describe_table")
        self.assertNotIn("details", response)
        self.assertIn("timestamp", response)

    def test_internal_error_json(self):
        error = InternalError("Error executing list_tables: timeout", operation="list_tables",
                              original_error=TimeoutError("timeout"))
        data = json.loads(error.to_json())

        self.assertEqual(data["error_type"], "internal_error")
        self.assertEqual(data["details"], "Unexpected TimeoutError")
        self.assertEqual(data["operation"], "list_tables")

    def test_bool_is_not_an_integer(self):
        with self.assertRaises(InvalidArgumentsError):
            validate_parameter_types({"maxRows": False}, {"maxRows": (int, float)})
        validate_parameter_types({"maxRows": 5}, {"maxRows": (int, float)})


if __name__ == '__main__':
    unittest.main(verbosity=2)
