#!/usr/bin/env python
# Copyright 2023-present Kensho Technologies, LLC.
"""Run a query over GitLab repository data and print the result rows as JSON.

Used as: gitlab-query QUERY_FILE [--arg NAME=VALUE]... [--limit N] [--verbose]
     or: python -m gitlab_query QUERY_FILE ...

QUERY_FILE is either a JSON query definition of the form {"query": "...", "args": {...}},
or (for any file not ending in .json) the raw query text. The GitLab instance to query is
configured through the GITLAB_HOST and GITLAB_API_TOKEN environment variables.
"""
import argparse
from itertools import islice
import json
import logging
import sys
from typing import Any, Dict, List, Optional, Sequence, TextIO, Tuple

from . import execute_query
from .adapter import GitlabAdapter
from .client import GitlabClient
from .config import GitlabConfig
from .exceptions import GitlabQueryError, QueryParsingError


logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def load_query_definition(path: str) -> Tuple[str, Dict[str, Any]]:
    """Read the query text and its arguments from a query definition file.

    Args:
        path: a .json file holding {"query": str, "args": dict}, or a file of raw query text

    Returns:
        tuple (query text, query arguments)

    Raises:
        QueryParsingError: if a .json definition is malformed
        OSError: if the file cannot be read
    """
    with open(path, "r", encoding="utf-8") as f:
        text = f.read()

    if not path.endswith(".json"):
        return text, {}

    try:
        definition = json.loads(text)
    except ValueError as e:
        raise QueryParsingError(f"Query definition {path} is not valid JSON: {e}") from e

    if not isinstance(definition, dict) or not isinstance(definition.get("query"), str):
        raise QueryParsingError(
            f'Query definition {path} must be a JSON object with a string "query" key.'
        )
    args = definition.get("args", {})
    if not isinstance(args, dict):
        raise QueryParsingError(f'The "args" of query definition {path} must be a JSON object.')
    return definition["query"], args


def parse_argument_overrides(raw_overrides: Sequence[str]) -> Dict[str, Any]:
    """Parse NAME=VALUE pairs, reading each VALUE as JSON and falling back to a plain string."""
    overrides: Dict[str, Any] = {}
    for raw_override in raw_overrides:
        name, separator, raw_value = raw_override.partition("=")
        if not separator or not name:
            raise QueryParsingError(f"Expected NAME=VALUE for --arg, got {raw_override!r}.")
        try:
            overrides[name] = json.loads(raw_value)
        except ValueError:
            overrides[name] = raw_value
    return overrides


def _make_argument_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="gitlab-query",
        description="Run a query over GitLab repository data and print the rows as JSON.",
    )
    parser.add_argument("query_file", metavar="QUERY_FILE", help="query definition file")
    parser.add_argument(
        "--arg",
        dest="arg_overrides",
        action="append",
        default=[],
        metavar="NAME=VALUE",
        help="set a query argument; VALUE is parsed as JSON, or taken as a string otherwise",
    )
    parser.add_argument(
        "--limit", type=int, default=None, help="stop after printing this many result rows"
    )
    parser.add_argument("--verbose", action="store_true", help="log every request made")
    return parser


def _print_rows(rows: Any, limit: Optional[int], output: TextIO) -> int:
    if limit is not None:
        rows = islice(rows, limit)

    row_count = 0
    for row in rows:
        if row_count:
            output.write("\n")
        output.write(json.dumps(row, indent=2))
        output.write("\n")
        row_count += 1
    return row_count


def run(args: argparse.Namespace, output: TextIO) -> None:
    """Execute the query named by the parsed command line, writing result rows to output."""
    query, query_args = load_query_definition(args.query_file)
    query_args.update(parse_argument_overrides(args.arg_overrides))

    config = GitlabConfig.from_environment()
    client = GitlabClient(config)
    try:
        rows = execute_query(GitlabAdapter(client), query, query_args)
        row_count = _print_rows(rows, args.limit, output)
        logger.info("Printed %d result row(s).", row_count)
    finally:
        client.close()


def main(argv: Optional[List[str]] = None) -> int:
    """Entry point of the gitlab-query command, returning the process exit code."""
    parser = _make_argument_parser()
    args = parser.parse_args(argv)
    if args.limit is not None and args.limit < 0:
        parser.error("--limit must not be negative")

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING, format=LOG_FORMAT
    )

    try:
        run(args, sys.stdout)
    except (GitlabQueryError, OSError) as e:
        sys.stderr.write(f"error: {e}\n")
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
