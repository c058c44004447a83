# Copyright 2023-present Kensho Technologies, LLC.
"""Intermediate representation of a validated query, as consumed by the interpreter."""
from dataclasses import dataclass
from typing import Dict, FrozenSet, Mapping, Tuple

from graphql import (
    FieldNode,
    GraphQLField,
    GraphQLInputType,
    GraphQLSchema,
    OperationDefinitionNode,
)


# The position of a vertex scope in the query: the indexes of the edge selections taken to
# reach it, starting from the root scope at the empty tuple. Unlike edge names, locations stay
# unique even if the same edge is expanded twice with different arguments.
Location = Tuple[int, ...]


@dataclass(frozen=True)
class FilterInfo:
    """A single @filter directive applied to a property of a vertex."""

    field: str  # the property whose value is filtered
    op_name: str
    args: Tuple[str, ...]  # runtime parameters, e.g. ("$path_regex",)


@dataclass(frozen=True)
class OutputInfo:
    """A single @output directive: the named result column fed from a vertex property."""

    field: str
    out_name: str


@dataclass(frozen=True)
class VertexScope:
    """One vertex in the query shape, together with everything the query does at that vertex.

    The root scope is reached via the root query edge; every other scope is reached by expanding
    an edge from its parent scope.
    """

    location: Location
    type_name: str
    edge_name: str

    # The schema definition and query node of the edge field used to reach this vertex,
    # needed to bind the edge's arguments once the query's runtime arguments are known.
    field_definition: GraphQLField
    field_node: FieldNode

    optional: bool
    filters: Tuple[FilterInfo, ...]
    outputs: Tuple[OutputInfo, ...]
    children: Tuple["VertexScope", ...]

    @property
    def used_properties(self) -> frozenset:
        """Return the names of all properties the query filters on or outputs at this vertex."""
        return frozenset(
            [filter_info.field for filter_info in self.filters]
            + [output_info.field for output_info in self.outputs]
        )


@dataclass(frozen=True)
class IrAndMetadata:
    """The compiled form of a query, ready to be interpreted against any number of arguments."""

    schema: GraphQLSchema
    operation: OperationDefinitionNode
    root_scope: VertexScope

    # Runtime parameter name -> the GraphQL type of the property it is compared against,
    # for every "$name" operand used in a @filter.
    filter_parameter_types: Mapping[str, GraphQLInputType]
    # Runtime parameter name -> the filter operators it is used with.
    filter_parameter_operators: Mapping[str, FrozenSet[str]]

    output_names: Tuple[str, ...]

    def all_scopes(self) -> Dict[Location, VertexScope]:
        """Return every vertex scope of the query, keyed by location."""
        result: Dict[Location, VertexScope] = {}
        pending = [self.root_scope]
        while pending:
            scope = pending.pop()
            result[scope.location] = scope
            pending.extend(scope.children)
        return result
