import unittest
from pathlib import Path

from scripts.apply_schema import split_sql_statements

SCHEMA = Path(__file__).resolve().parent.parent / "db" / "schema.sql"


class SplitStatementsTests(unittest.TestCase):
    def test_semicolons_inside_strings_and_comments(self):
        sql = "INSERT INTO t VALUES ('a;b', 'it''s'); -- trailing; comment\n/* block; */ SELECT 1;"
        self.assertEqual(split_sql_statements(sql), ["INSERT INTO t VALUES ('a;b', 'it''s')", "SELECT 1"])

    def test_dollar_quoted_bodies(self):
        sql = "CREATE FUNCTION f() RETURNS int AS $body$ BEGIN RETURN 1; END; $body$ LANGUAGE plpgsql; SELECT 2"
        out = split_sql_statements(sql)
        self.assertEqual(len(out), 2)
        self.assertTrue(out[0].endswith("LANGUAGE plpgsql"))

    def test_schema_file_splits(self):
        statements = split_sql_statements(SCHEMA.read_text(encoding="utf-8"))
        self.assertTrue(any("summaries_fts" in s for s in statements))
        self.assertTrue(any(s.startswith("CREATE OR REPLACE FUNCTION touch_updated_at") for s in statements))
        self.assertFalse(any(s.startswith("--") for s in statements))


if __name__ == "__main__":
    unittest.main()
