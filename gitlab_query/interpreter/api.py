# Copyright 2023-present Kensho Technologies, LLC.
import logging
from typing import Any, Dict, Iterable, Iterator, Mapping, Tuple

from graphql import GraphQLSchema

from .arguments import bind_edge_parameters, validate_arguments
from .data_context import DataContext, DataToken
from .frontend import get_parameter_name, graphql_to_ir
from .ir import FilterInfo, IrAndMetadata, Location, OutputInfo, VertexScope
from .operators import UNARY_OPERATORS, apply_operator, apply_unary_operator
from .typedefs import InterpreterAdapter, InterpreterHints


logger = logging.getLogger(__name__)


def _make_hints_for_scope(
    scope: VertexScope, query_arguments: Mapping[str, Any]
) -> InterpreterHints:
    return {
        "runtime_arg_hints": dict(query_arguments),
        "used_property_hints": scope.used_properties,
        "filter_hints": scope.filters,
    }


def _get_initial_data_contexts(
    adapter: InterpreterAdapter[DataToken],
    edge_name: str,
    parameters: Mapping[str, Any],
    hints: InterpreterHints,
) -> Iterator[DataContext[DataToken]]:
    # N.B.: Do not replace the below for-yield with a generator expression, and do not inline this
    #       function into the caller! Without an explicit generator here, get_starting_tokens()
    #       would be called *immediately* by interpret_ir(), even if the returned iterator is never
    #       advanced, and data would be loaded before anyone asked for it.
    for token in adapter.get_starting_tokens(edge_name, parameters, **hints):
        yield DataContext.make_empty_context_from_token(token)


def _apply_filter(
    adapter: InterpreterAdapter[DataToken],
    scope: VertexScope,
    filter_info: FilterInfo,
    query_arguments: Mapping[str, Any],
    data_contexts: Iterable[DataContext[DataToken]],
) -> Iterator[DataContext[DataToken]]:
    op_name = filter_info.op_name
    property_values = adapter.project_property(
        data_contexts,
        scope.type_name,
        filter_info.field,
        **_make_hints_for_scope(scope, query_arguments),
    )

    # Filters within an @optional scope whose edge did not exist always pass:
    # there is no vertex there to filter out.
    if op_name in UNARY_OPERATORS:
        for data_context, value in property_values:
            if data_context.current_token is None or apply_unary_operator(op_name, value):
                yield data_context
    else:
        operand = query_arguments[get_parameter_name(filter_info.args[0])]
        for data_context, value in property_values:
            if data_context.current_token is None or apply_operator(op_name, value, operand):
                yield data_context


def _expand_neighbors(
    neighbor_data: Iterable[Tuple[DataContext[DataToken], Iterable[DataToken]]],
    optional: bool,
) -> Iterator[DataContext[DataToken]]:
    for data_context, neighbor_tokens in neighbor_data:
        has_neighbors = False
        for neighbor_token in neighbor_tokens:
            has_neighbors = True
            yield data_context.descend_into(neighbor_token)

        # A context whose own vertex is missing (due to an enclosing @optional edge) has no
        # neighbors, but must flow through the nested scopes anyway so that all of their
        # outputs get recorded as None.
        if not has_neighbors and (optional or data_context.current_token is None):
            yield data_context.descend_into(None)


def _traverse_edge(
    adapter: InterpreterAdapter[DataToken],
    parent_scope: VertexScope,
    child_scope: VertexScope,
    query_arguments: Mapping[str, Any],
    parameters_at_location: Mapping[Location, Mapping[str, Any]],
    data_contexts: Iterable[DataContext[DataToken]],
) -> Iterator[DataContext[DataToken]]:
    neighbor_data = adapter.project_neighbors(
        data_contexts,
        parent_scope.type_name,
        child_scope.edge_name,
        parameters_at_location[child_scope.location],
        **_make_hints_for_scope(child_scope, query_arguments),
    )
    child_contexts = _process_scope(
        adapter,
        child_scope,
        query_arguments,
        parameters_at_location,
        _expand_neighbors(neighbor_data, child_scope.optional),
    )
    for data_context in child_contexts:
        yield data_context.backtrack()


def _record_output(
    adapter: InterpreterAdapter[DataToken],
    scope: VertexScope,
    output_info: OutputInfo,
    query_arguments: Mapping[str, Any],
    data_contexts: Iterable[DataContext[DataToken]],
) -> Iterator[DataContext[DataToken]]:
    for data_context, value in adapter.project_property(
        data_contexts,
        scope.type_name,
        output_info.field,
        **_make_hints_for_scope(scope, query_arguments),
    ):
        data_context.record_output(output_info.out_name, value)
        yield data_context


def _process_scope(
    adapter: InterpreterAdapter[DataToken],
    scope: VertexScope,
    query_arguments: Mapping[str, Any],
    parameters_at_location: Mapping[Location, Mapping[str, Any]],
    data_contexts: Iterable[DataContext[DataToken]],
) -> Iterable[DataContext[DataToken]]:
    """Chain together the lazy operations performed at a vertex scope and all scopes below it.

    Filters come first, so that neither nested edges nor outputs are loaded for vertices that
    will be discarded anyway. Output values are loaded last, once all filtering is done.
    """
    for filter_info in scope.filters:
        data_contexts = _apply_filter(adapter, scope, filter_info, query_arguments, data_contexts)

    for child_scope in scope.children:
        data_contexts = _traverse_edge(
            adapter, scope, child_scope, query_arguments, parameters_at_location, data_contexts
        )

    for output_info in scope.outputs:
        data_contexts = _record_output(adapter, scope, output_info, query_arguments, data_contexts)

    return data_contexts


# ##############
# # Public API #
# ##############


def interpret_ir(
    adapter: InterpreterAdapter[DataToken],
    ir_and_metadata: IrAndMetadata,
    query_arguments: Mapping[str, Any],
) -> Iterator[Dict[str, Any]]:
    """Lazily execute a compiled query, producing one dict per result row.

    Argument validation and binding happen eagerly, before this function returns, so invalid
    arguments are reported without any data being loaded. Everything else happens as results are
    requested from the returned iterator. The iterator cannot be restarted: run the query again
    to get a fresh one.

    Args:
        adapter: the schema-aware adapter that loads vertices and their properties
        ir_and_metadata: the compiled query, as produced by graphql_to_ir()
        query_arguments: values for the query's "$name" filter parameters and GraphQL variables

    Returns:
        iterator of dicts, mapping each output name of the query to its value in that result row
    """
    validate_arguments(ir_and_metadata, query_arguments)
    parameters_at_location = bind_edge_parameters(ir_and_metadata, query_arguments)

    root_scope = ir_and_metadata.root_scope
    logger.debug(
        "Interpreting query with root edge %s, parameters %s",
        root_scope.edge_name,
        parameters_at_location[root_scope.location],
    )

    data_contexts: Iterable[DataContext[DataToken]] = _get_initial_data_contexts(
        adapter,
        root_scope.edge_name,
        parameters_at_location[root_scope.location],
        _make_hints_for_scope(root_scope, query_arguments),
    )
    data_contexts = _process_scope(
        adapter, root_scope, query_arguments, parameters_at_location, data_contexts
    )

    output_names = ir_and_metadata.output_names
    return (
        {output_name: data_context.outputs[output_name] for output_name in output_names}
        for data_context in data_contexts
    )


def interpret_query(
    adapter: InterpreterAdapter[DataToken],
    schema: GraphQLSchema,
    query: str,
    query_arguments: Mapping[str, Any],
) -> Iterator[Dict[str, Any]]:
    """Compile the query against the schema, then lazily execute it with the given adapter."""
    ir_and_metadata = graphql_to_ir(schema, query)
    return interpret_ir(adapter, ir_and_metadata, query_arguments)
