#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
dbcore command line

Commands:
  query          Run a SELECT and print the rows as a table
  cell           Run a SELECT and print the first cell (or "<no row>")
  exec           Run a data-modification statement inside one transaction
  quote-columns  Print the backtick-quoted column list for the given names

Notes:
- Positional SQL parameters follow the statement: `dbcore query "SELECT * FROM t WHERE id=?" 3`
- Connection settings come from --url/--driver, else DBCORE_URL, else config.yaml.
"""
from __future__ import annotations

import argparse
import logging
import sys

import pandas as pd

from .connection import connect
from .context import ConnectionRegistry, ExecutionContext
from .db import DataSource, load_data_source
from .errors import DbError
from .quoting import quote_columns


# ---------------- CFG helpers ----------------

def resolve_source(args) -> DataSource:
    if args.url:
        return DataSource(url=args.url, driver=args.driver or "sqlite3")
    ds = load_data_source(args.config)
    if args.driver:
        ds = ds.model_copy(update={"driver": args.driver})
    return ds


def open_db(args):
    return connect(resolve_source(args), ExecutionContext(ConnectionRegistry(), "cli"))


def _parse_param(s: str):
    if s.lower() == "null":
        return None
    for conv in (int, float):
        try:
            return conv(s)
        except ValueError:
            pass
    return s


# ---------------- Commands ----------------

def cmd_query(args):
    with open_db(args) as db:
        df = db.query_frame(args.sql, [_parse_param(p) for p in args.params])
    pd.set_option("display.max_rows", 200)
    pd.set_option("display.width", 160)
    if df.empty:
        print("(no rows)")
    else:
        print(df.to_string(index=False))


def cmd_cell(args):
    with open_db(args) as db:
        found, value = db.query_cell(args.sql, [_parse_param(p) for p in args.params])
    print(value if found else "<no row>")


def cmd_exec(args):
    db = open_db(args)
    params = [_parse_param(p) for p in args.params]
    n = db.run_in_transaction(lambda conn: conn.execute(args.sql, params))
    print(f"{n} row(s) affected.")


def cmd_quote_columns(args):
    print(quote_columns(args.columns, with_brackets=args.brackets))


def main(argv=None):
    parser = argparse.ArgumentParser(description="dbcore (transactional DB-API wrapper)")
    parser.add_argument("--config", default=None, help="config.yaml path")
    parser.add_argument("--url", default=None)
    parser.add_argument("--driver", default=None, help="DB-API module name, e.g. sqlite3")
    parser.add_argument("-v", "--verbose", action="store_true", help="log every statement")
    sub = parser.add_subparsers()

    p_query = sub.add_parser("query", help="run a query and print rows")
    p_query.add_argument("sql")
    p_query.add_argument("params", nargs="*")
    p_query.set_defaults(func=cmd_query)

    p_cell = sub.add_parser("cell", help="run a query and print the first cell")
    p_cell.add_argument("sql")
    p_cell.add_argument("params", nargs="*")
    p_cell.set_defaults(func=cmd_cell)

    p_exec = sub.add_parser("exec", help="run a statement in a transaction")
    p_exec.add_argument("sql")
    p_exec.add_argument("params", nargs="*")
    p_exec.set_defaults(func=cmd_exec)

    p_quote = sub.add_parser("quote-columns", help="quote column names")
    p_quote.add_argument("columns", nargs="+")
    p_quote.add_argument("--brackets", action="store_true")
    p_quote.set_defaults(func=cmd_quote_columns)

    args = parser.parse_args(argv)
    logging.basicConfig(level=logging.DEBUG if args.verbose else logging.WARNING)
    if not hasattr(args, "func"):
        parser.print_help()
        return 1
    try:
        args.func(args)
    except DbError as e:
        print(f"[ERROR] {e}", file=sys.stderr)
        return 2
    return 0


if __name__ == "__main__":
    sys.exit(main())
