# Copyright 2023-present Kensho Technologies, LLC.
"""A lazy query interpreter over arbitrary schemas whose data sits behind an API.

Some data cannot be queried by compiling to another query language: no such target language
exists when the data is only reachable through a simple REST API. Instead, queries are executed by
an *interpreter*: code that executes queries incrementally in a series of steps, such as "fetch
the neighbors of this vertex along this edge" or "drop this vertex if its path does not match
this regex."

Parts of the interpreter (e.g. "fetch the neighbors of this vertex") need to know about the schema
and the data source; others (e.g. "drop this vertex") work the same way regardless of schema.
This package implements the schema-agnostic parts. All schema-aware logic sits behind the
three-method API of the InterpreterAdapter class, which is subclassed once per data source:
- Construct the schema of the data, declaring the @filter, @output and @optional directives.
- Subclass InterpreterAdapter, keeping long-lived state such as API clients as instance
  attributes, and implement its three methods.
- Pass an instance of the subclass to interpret_query() or interpret_ir().
"""

from .api import interpret_ir, interpret_query  # noqa
from .data_context import DataContext, DataToken  # noqa
from .frontend import graphql_to_ir  # noqa
from .ir import FilterInfo, IrAndMetadata, OutputInfo, VertexScope  # noqa
from .typedefs import InterpreterAdapter, InterpreterHints  # noqa
