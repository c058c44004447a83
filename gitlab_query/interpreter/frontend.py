# Copyright 2023-present Kensho Technologies, LLC.
"""Parse, validate and compile query strings into the interpreter's intermediate representation.

Query validity is checked in two layers. First, graphql-core validates the query against the
schema: unknown fields, edges and arguments, missing required arguments, and misused directives
are all rejected there. Second, this module enforces the interpreter's own restrictions, such as
"exactly one root field" and "@output may only be applied to property fields".
"""
from typing import Any, Dict, List, Optional, Set, Tuple

from graphql import (
    DirectiveNode,
    FieldNode,
    GraphQLDirective,
    GraphQLError,
    GraphQLField,
    GraphQLInputType,
    GraphQLObjectType,
    GraphQLSchema,
    OperationDefinitionNode,
    OperationType,
    get_named_type,
    is_object_type,
    parse,
    validate,
)
from graphql.execution.values import get_argument_values
from graphql.type.introspection import TypeNameMetaFieldDef

from ..exceptions import QueryParsingError, SchemaViolationError
from ..schema import FILTER_DIRECTIVE_NAME, OPTIONAL_DIRECTIVE_NAME, OUTPUT_DIRECTIVE_NAME
from .ir import FilterInfo, IrAndMetadata, Location, OutputInfo, VertexScope
from .operators import COLLECTION_OPERATORS, SUPPORTED_OPERATORS, get_operand_count


TYPENAME_META_FIELD_NAME = "__typename"


def is_runtime_parameter(argument: str) -> bool:
    """Return True if the directive argument defines a runtime parameter, and False otherwise."""
    return argument.startswith("$")


def get_parameter_name(argument: str) -> str:
    """Return the name of the parameter without the leading prefix."""
    if not is_runtime_parameter(argument):
        raise AssertionError(
            f"Unexpectedly received an unprefixed parameter name: {argument}. This is a bug."
        )
    return argument[1:]


def _get_directive_arguments(
    directive_definition: GraphQLDirective, directive: DirectiveNode
) -> Dict[str, Any]:
    """Return the coerced arguments of a directive, which must be given as literal values."""
    try:
        return get_argument_values(directive_definition, directive)
    except GraphQLError as e:
        raise SchemaViolationError(
            f"Invalid arguments to @{directive_definition.name}: {e.message} "
            f"Directive arguments must be literal values, not query variables."
        ) from e


class _CompilationState:
    """Query-wide information accumulated while compiling the vertex scopes of a query."""

    def __init__(self, schema: GraphQLSchema) -> None:
        self.schema = schema
        self.output_names: List[str] = []
        self.filter_parameter_types: Dict[str, GraphQLInputType] = {}
        self.filter_parameter_operators: Dict[str, Set[str]] = {}

    def register_output(self, out_name: str) -> None:
        if out_name in self.output_names:
            raise SchemaViolationError(
                f'Output name "{out_name}" is used more than once in the query. '
                f"Use @output(out_name: ...) to give each output a distinct name."
            )
        self.output_names.append(out_name)

    def register_filter_parameter(
        self, parameter_name: str, op_name: str, property_type: GraphQLInputType
    ) -> None:
        existing_type = self.filter_parameter_types.get(parameter_name, None)
        if existing_type is not None and str(existing_type) != str(property_type):
            raise SchemaViolationError(
                f'Runtime parameter "${parameter_name}" is compared against properties of '
                f"different types: {existing_type} and {property_type}."
            )
        operators = self.filter_parameter_operators.setdefault(parameter_name, set())
        operators.add(op_name)
        if operators & COLLECTION_OPERATORS and operators - COLLECTION_OPERATORS:
            raise SchemaViolationError(
                f'Runtime parameter "${parameter_name}" is used both as a collection and as a '
                f"single value, by filter operators {sorted(operators)}."
            )
        self.filter_parameter_types[parameter_name] = property_type


def _get_single_operation(
    document_operations: List[OperationDefinitionNode],
) -> OperationDefinitionNode:
    if len(document_operations) != 1:
        raise SchemaViolationError(
            f"Expected exactly one operation in the query, found {len(document_operations)}."
        )
    operation = document_operations[0]
    if operation.operation != OperationType.QUERY:
        raise SchemaViolationError(
            f"Only query operations are supported, found {operation.operation.value}."
        )
    return operation


def _get_field_nodes(selection_set_owner: Optional[object], context: str) -> List[FieldNode]:
    """Return the field selections of a node, rejecting fragments of any kind."""
    selection_set = getattr(selection_set_owner, "selection_set", None)
    if selection_set is None:
        return []

    field_nodes = []
    for selection in selection_set.selections:
        if not isinstance(selection, FieldNode):
            raise SchemaViolationError(
                f"Fragments and type coercions are not supported, found "
                f"{type(selection).__name__} within {context}."
            )
        field_nodes.append(selection)
    return field_nodes


def _get_directives_by_name(field_node: FieldNode) -> Dict[str, List[DirectiveNode]]:
    directives: Dict[str, List[DirectiveNode]] = {}
    for directive in field_node.directives or []:
        directives.setdefault(directive.name.value, []).append(directive)
    return directives


def _compile_filter(
    state: _CompilationState,
    type_name: str,
    field_name: str,
    field_definition: GraphQLField,
    directive: DirectiveNode,
) -> FilterInfo:
    filter_directive = state.schema.get_directive(FILTER_DIRECTIVE_NAME)
    if filter_directive is None:
        raise AssertionError(f"Schema is missing the @{FILTER_DIRECTIVE_NAME} directive.")

    arguments = _get_directive_arguments(filter_directive, directive)
    op_name = arguments["op_name"]
    operands: Tuple[str, ...] = tuple(arguments.get("value") or ())

    if op_name not in SUPPORTED_OPERATORS:
        raise SchemaViolationError(
            f'Unsupported filter operator "{op_name}" on {type_name}.{field_name}. '
            f"Supported operators: {sorted(SUPPORTED_OPERATORS)}."
        )

    expected_operand_count = get_operand_count(op_name)
    if len(operands) != expected_operand_count:
        raise SchemaViolationError(
            f'Filter operator "{op_name}" on {type_name}.{field_name} expects '
            f"{expected_operand_count} operand(s), got {len(operands)}: {list(operands)}."
        )

    for operand in operands:
        if not is_runtime_parameter(operand) or len(operand) < 2:
            raise SchemaViolationError(
                f'Filter operand "{operand}" on {type_name}.{field_name} is not a runtime '
                f'parameter. Operands must be written as "$parameter_name".'
            )
        state.register_filter_parameter(
            get_parameter_name(operand), op_name, field_definition.type  # type: ignore
        )

    return FilterInfo(field=field_name, op_name=op_name, args=operands)


def _compile_vertex_scope(
    state: _CompilationState,
    location: Location,
    field_node: FieldNode,
    field_definition: GraphQLField,
    optional: bool,
) -> VertexScope:
    """Compile the vertex reached via the given edge field, and everything nested within it."""
    vertex_type = get_named_type(field_definition.type)
    if not is_object_type(vertex_type):
        raise AssertionError(
            f"Edge field {field_node.name.value} does not lead to an object type: {vertex_type}. "
            f"This should have been caught by schema validation."
        )
    type_name = vertex_type.name

    filters: List[FilterInfo] = []
    outputs: List[OutputInfo] = []
    children: List[VertexScope] = []

    for child_node in _get_field_nodes(field_node, f"{type_name} selections"):
        child_name = child_node.name.value
        directives = _get_directives_by_name(child_node)

        if child_name == TYPENAME_META_FIELD_NAME:
            child_definition = TypeNameMetaFieldDef
        else:
            child_definition = vertex_type.fields[child_name]  # type: ignore

        if is_object_type(get_named_type(child_definition.type)):
            for directive_name in (FILTER_DIRECTIVE_NAME, OUTPUT_DIRECTIVE_NAME):
                if directive_name in directives:
                    raise SchemaViolationError(
                        f"@{directive_name} is only allowed on property fields, "
                        f"but was applied to edge {type_name}.{child_name}."
                    )
            children.append(
                _compile_vertex_scope(
                    state,
                    location + (len(children),),
                    child_node,
                    child_definition,
                    OPTIONAL_DIRECTIVE_NAME in directives,
                )
            )
        else:
            if OPTIONAL_DIRECTIVE_NAME in directives:
                raise SchemaViolationError(
                    f"@{OPTIONAL_DIRECTIVE_NAME} is only allowed on edges, "
                    f"but was applied to property {type_name}.{child_name}."
                )
            for filter_directive in directives.get(FILTER_DIRECTIVE_NAME, []):
                filters.append(
                    _compile_filter(state, type_name, child_name, child_definition, filter_directive)
                )
            for output_directive in directives.get(OUTPUT_DIRECTIVE_NAME, []):
                out_name = _get_output_name(state, child_name, output_directive)
                state.register_output(out_name)
                outputs.append(OutputInfo(field=child_name, out_name=out_name))

    return VertexScope(
        location=location,
        type_name=type_name,
        edge_name=field_node.name.value,
        field_definition=field_definition,
        field_node=field_node,
        optional=optional,
        filters=tuple(filters),
        outputs=tuple(outputs),
        children=tuple(children),
    )


def _get_output_name(state: _CompilationState, field_name: str, directive: DirectiveNode) -> str:
    output_directive = state.schema.get_directive(OUTPUT_DIRECTIVE_NAME)
    if output_directive is None:
        raise AssertionError(f"Schema is missing the @{OUTPUT_DIRECTIVE_NAME} directive.")

    out_name = _get_directive_arguments(output_directive, directive).get("out_name")
    if out_name is None:
        return field_name
    if not out_name:
        raise SchemaViolationError(f"Empty out_name in @output on property {field_name}.")
    return out_name


def _check_schema_has_query_directives(schema: GraphQLSchema) -> None:
    for directive_name in (FILTER_DIRECTIVE_NAME, OUTPUT_DIRECTIVE_NAME, OPTIONAL_DIRECTIVE_NAME):
        if schema.get_directive(directive_name) is None:
            raise AssertionError(
                f"Schema does not declare the @{directive_name} directive, "
                f"and cannot be used with the interpreter."
            )


##############
# Public API #
##############


def graphql_to_ir(schema: GraphQLSchema, query: str) -> IrAndMetadata:
    """Convert the given query string into the interpreter's intermediate representation.

    Args:
        schema: GraphQL schema object, declaring the @filter, @output and @optional directives
        query: string containing the query to compile

    Returns:
        IrAndMetadata describing the query's vertex scopes and its runtime parameters

    Raises:
        QueryParsingError: if the query is not syntactically valid
        SchemaViolationError: if the query does not validate against the schema, or uses
                              features the interpreter does not support
    """
    _check_schema_has_query_directives(schema)

    try:
        document = parse(query)
    except GraphQLError as e:
        raise QueryParsingError(f"Failed to parse query: {e.message}") from e

    validation_errors = validate(schema, document)
    if validation_errors:
        error_messages = "; ".join(error.message for error in validation_errors)
        raise SchemaViolationError(f"Query does not validate against the schema: {error_messages}")

    operations: List[OperationDefinitionNode] = []
    for definition in document.definitions:
        if not isinstance(definition, OperationDefinitionNode):
            raise SchemaViolationError(
                f"Fragments are not supported, found {type(definition).__name__}."
            )
        operations.append(definition)
    operation = _get_single_operation(operations)

    root_field_nodes = _get_field_nodes(operation, "the root query")
    if len(root_field_nodes) != 1:
        raise SchemaViolationError(
            f"Expected exactly one root field in the query, found "
            f"{[field_node.name.value for field_node in root_field_nodes]}."
        )
    root_field_node = root_field_nodes[0]

    query_type: Optional[GraphQLObjectType] = schema.query_type
    if query_type is None:
        raise AssertionError(f"Schema has no query type: {schema}")
    root_field_name = root_field_node.name.value
    if root_field_name == TYPENAME_META_FIELD_NAME:
        raise SchemaViolationError("The root field of the query must be an edge, not __typename.")
    if OPTIONAL_DIRECTIVE_NAME in _get_directives_by_name(root_field_node):
        raise SchemaViolationError(
            f"@{OPTIONAL_DIRECTIVE_NAME} is not allowed on the root field {root_field_name}."
        )

    state = _CompilationState(schema)
    root_scope = _compile_vertex_scope(
        state, (), root_field_node, query_type.fields[root_field_name], False
    )

    if not state.output_names:
        raise SchemaViolationError("The query does not output any data: add an @output directive.")

    return IrAndMetadata(
        schema=schema,
        operation=operation,
        root_scope=root_scope,
        filter_parameter_types=dict(state.filter_parameter_types),
        filter_parameter_operators={
            name: frozenset(operators)
            for name, operators in state.filter_parameter_operators.items()
        },
        output_names=tuple(state.output_names),
    )
