#!/usr/bin/env python3
"""
Apply db/schema.sql through SQLAlchemy so psql is not required.
Connects the same way the API does (Cloud SQL connector or DATABASE_URL).
"""
import argparse
import logging
import re

import dotenv

dotenv.load_dotenv()

logger = logging.getLogger("apply_schema")

_DOLLAR_TAG = re.compile(r"\$([A-Za-z0-9_]*)\$")


def split_sql_statements(sql: str):
    """
    Split on `;` except inside '...' strings and $tag$...$tag$ bodies.
    /* ... */ block comments and -- line comments are dropped.
    """
    sql = re.sub(r"/\*.*?\*/", "", sql, flags=re.S)

    out, buf = [], []
    in_single = False
    dollar_tag = None  # None, or the tag text ('' for $$)

    i, n = 0, len(sql)
    while i < n:
        ch = sql[i]

        if not in_single and dollar_tag is None and sql.startswith("--", i):
            j = sql.find("\n", i)
            if j == -1:
                break
            i = j
            continue

        if not in_single and ch == "$":
            if dollar_tag is None:
                m = _DOLLAR_TAG.match(sql, i)
                if m:
                    dollar_tag = m.group(1)
                    buf.append(m.group(0))
                    i = m.end()
                    continue
            else:
                closing = f"${dollar_tag}$"
                if sql.startswith(closing, i):
                    buf.append(closing)
                    i += len(closing)
                    dollar_tag = None
                    continue

        if dollar_tag is None and ch == "'":
            buf.append(ch)
            i += 1
            if in_single and i < n and sql[i] == "'":
                # '' is an escaped quote inside a string
                buf.append("'")
                i += 1
                continue
            in_single = not in_single
            continue

        if ch == ";" and not in_single and dollar_tag is None:
            stmt = "".join(buf).strip()
            if stmt:
                out.append(stmt)
            buf = []
            i += 1
            continue

        buf.append(ch)
        i += 1

    tail = "".join(buf).strip()
    if tail:
        out.append(tail)
    return out


def apply_schema(engine, schema_path: str) -> int:
    """Run every statement of schema_path in one transaction; returns the count."""
    with open(schema_path, "r", encoding="utf-8") as f:
        statements = split_sql_statements(f.read())

    with engine.begin() as conn:
        for stmt in statements:
            conn.exec_driver_sql(stmt)
    return len(statements)


def main(argv=None):
    parser = argparse.ArgumentParser(description="Apply the PostgreSQL schema")
    parser.add_argument("--schema", default="db/schema.sql")
    args = parser.parse_args(argv)
    logging.basicConfig(level=logging.INFO, format="%(levelname)s %(name)s: %(message)s")

    from apps.api.db.session import engine

    count = apply_schema(engine, args.schema)
    logger.info("applied %d statements from %s", count, args.schema)


if __name__ == "__main__":
    main()
