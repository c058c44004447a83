# Copyright 2023-present Kensho Technologies, LLC.
"""Commonly-used functions and data types from this package."""
from typing import Any, Dict, Iterator, Mapping, Optional

from .adapter import GitlabAdapter  # noqa
from .client import GitlabClient  # noqa
from .config import GitlabConfig  # noqa
from .exceptions import (  # noqa
    ConfigurationError,
    GitlabQueryError,
    InvalidQueryArgumentError,
    QueryParsingError,
    ResolutionError,
    SchemaViolationError,
    TransportError,
)
from .interpreter import InterpreterAdapter, graphql_to_ir, interpret_ir, interpret_query  # noqa
from .schema import SCHEMA, get_schema  # noqa


__package_name__ = "gitlab-query"
__version__ = "1.0.0"


def execute_query(
    adapter: InterpreterAdapter,
    query: str,
    args: Optional[Mapping[str, Any]] = None,
) -> Iterator[Dict[str, Any]]:
    """Run a query over the GitLab schema, lazily producing one dict per result row.

    The query is compiled and its arguments validated before this function returns, so any
    SchemaViolationError is raised before a single request reaches GitLab. Data is then fetched
    only as rows are pulled from the returned iterator.

    Args:
        adapter: adapter resolving the GitLab schema, usually a GitlabAdapter
        query: query text, using the @filter, @output and @optional directives
        args: values for the query's "$name" filter parameters and GraphQL variables

    Returns:
        iterator of dicts, mapping each output name of the query to its value in that row

    Raises:
        SchemaViolationError: if the query or its arguments do not conform to the schema
    """
    if args is None:
        args = {}
    return interpret_query(adapter, SCHEMA, query, args)
