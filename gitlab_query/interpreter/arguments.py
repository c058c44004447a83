# Copyright 2023-present Kensho Technologies, LLC.
"""Validation and binding of the runtime arguments supplied alongside a query."""
import re
from typing import Any, Collection, Dict, Mapping, NoReturn, Type

from graphql import (
    GraphQLBoolean,
    GraphQLError,
    GraphQLFloat,
    GraphQLID,
    GraphQLInputType,
    GraphQLInt,
    GraphQLList,
    GraphQLScalarType,
    GraphQLString,
    get_nullable_type,
    is_list_type,
    is_scalar_type,
)
from graphql.execution.values import get_argument_values, get_variable_values

from ..exceptions import InvalidQueryArgumentError
from .ir import IrAndMetadata, Location
from .operators import COLLECTION_OPERATORS, REGEX_OPERATORS


def _raise_invalid_type_error(
    name: str, expected_python_types: Collection[Type], value: Any
) -> NoReturn:
    """Raise an InvalidQueryArgumentError that states that the argument type is invalid."""
    raise InvalidQueryArgumentError(
        f"Invalid type for argument {name}. Expected one of {expected_python_types}. Got value "
        f"{value!r} of type {type(value).__name__} instead."
    )


def _is_scalar_named(graphql_type: Any, *scalar_types: GraphQLScalarType) -> bool:
    # Schemas built from SDL may hold their own instances of the built-in scalars,
    # so compare by name rather than by identity.
    return is_scalar_type(graphql_type) and graphql_type.name in {
        scalar_type.name for scalar_type in scalar_types
    }


def validate_argument_type(name: str, expected_type: GraphQLInputType, value: Any) -> None:
    """Ensure the value has the expected type, or raise InvalidQueryArgumentError.

    Args:
        name: the name of the argument, used to provide a more descriptive error message
        expected_type: GraphQLType we expect. All GraphQLNonNull type wrappers are stripped.
        value: object that can be interpreted as being of that type
    """
    stripped_type = get_nullable_type(expected_type)
    if _is_scalar_named(stripped_type, GraphQLString, GraphQLID):
        # IDs can be strings or numbers, but the GraphQL library coerces them to strings.
        # We follow suit and treat them as strings.
        if not isinstance(value, str):
            _raise_invalid_type_error(name, (str,), value)
    elif _is_scalar_named(stripped_type, GraphQLInt):
        # Special case: in Python, isinstance(True, int) returns True.
        # Safeguard against this with an explicit check against bool type.
        if isinstance(value, bool) or not isinstance(value, int):
            _raise_invalid_type_error(name, (int,), value)
    elif _is_scalar_named(stripped_type, GraphQLFloat):
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            _raise_invalid_type_error(name, (int, float), value)
    elif _is_scalar_named(stripped_type, GraphQLBoolean):
        if not isinstance(value, bool):
            _raise_invalid_type_error(name, (bool,), value)
    elif is_list_type(stripped_type):
        if not isinstance(value, (list, tuple, set, frozenset)):
            _raise_invalid_type_error(name, (list, tuple, set, frozenset), value)
        for element in value:
            validate_argument_type(name, stripped_type.of_type, element)  # type: ignore
    else:
        raise AssertionError(
            f"Could not safely represent the requested GraphQLType: {stripped_type} {value}"
        )


def _get_declared_variable_names(ir_and_metadata: IrAndMetadata) -> Collection[str]:
    return frozenset(
        variable_definition.variable.name.value
        for variable_definition in ir_and_metadata.operation.variable_definitions or []
    )


def validate_arguments(ir_and_metadata: IrAndMetadata, arguments: Mapping[str, Any]) -> None:
    """Ensure that the arguments exactly cover the query's runtime parameters and variables.

    Arguments may be used in two ways: as "$name" operands of @filter directives, and as GraphQL
    variables (declared on the query operation) supplying the values of edge arguments.

    Raises:
        InvalidQueryArgumentError: if an argument is missing, unexpected, or of the wrong type,
                                   or a regex filter's pattern does not compile
    """
    declared_variables = _get_declared_variable_names(ir_and_metadata)
    filter_parameters = ir_and_metadata.filter_parameter_types

    unexpected_arguments = set(arguments) - set(declared_variables) - set(filter_parameters)
    if unexpected_arguments:
        raise InvalidQueryArgumentError(
            f"Unexpected arguments found: {sorted(unexpected_arguments)}"
        )

    missing_arguments = set(filter_parameters) - set(arguments)
    if missing_arguments:
        raise InvalidQueryArgumentError(
            f"Missing argument(s) required by the query's filters: {sorted(missing_arguments)}"
        )

    for name, property_type in filter_parameters.items():
        operators = ir_and_metadata.filter_parameter_operators[name]
        value = arguments[name]

        expected_type: GraphQLInputType = get_nullable_type(property_type)  # type: ignore
        if operators & COLLECTION_OPERATORS:
            expected_type = GraphQLList(expected_type)
        validate_argument_type(name, expected_type, value)

        if operators & REGEX_OPERATORS:
            try:
                re.compile(value)
            except re.error as e:
                raise InvalidQueryArgumentError(
                    f"Argument {name} is not a valid regular expression: {value!r} ({e})"
                ) from e


def bind_edge_parameters(
    ir_and_metadata: IrAndMetadata, arguments: Mapping[str, Any]
) -> Dict[Location, Dict[str, Any]]:
    """Compute the coerced edge arguments of every vertex scope in the query.

    Edge arguments may be literals written in the query, or GraphQL variables declared on the
    query operation and supplied in the arguments mapping.

    Returns:
        dict mapping the location of each vertex scope to the arguments of the edge reaching it
    """
    declared_variables = _get_declared_variable_names(ir_and_metadata)
    variable_inputs = {
        name: value for name, value in arguments.items() if name in declared_variables
    }

    variable_values = get_variable_values(
        ir_and_metadata.schema,
        ir_and_metadata.operation.variable_definitions or [],
        variable_inputs,
    )
    if isinstance(variable_values, list):
        error_messages = "; ".join(error.message for error in variable_values)
        raise InvalidQueryArgumentError(f"Invalid query variables: {error_messages}")

    parameters_at_location: Dict[Location, Dict[str, Any]] = {}
    for location, scope in ir_and_metadata.all_scopes().items():
        try:
            parameters_at_location[location] = get_argument_values(
                scope.field_definition, scope.field_node, variable_values
            )
        except GraphQLError as e:
            raise InvalidQueryArgumentError(
                f"Invalid arguments for edge {scope.edge_name}: {e.message}"
            ) from e

    return parameters_at_location
