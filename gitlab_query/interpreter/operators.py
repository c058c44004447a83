# Copyright 2023-present Kensho Technologies, LLC.
import re
from typing import Any, Callable, Dict, Optional


def _regex_matches(left: Any, right: Any) -> bool:
    # Unanchored, like grep: "requirements.txt" matches "backend/requirements.txt".
    return re.search(right, left) is not None


# Define the various operators' behavior for values other than None.
# The behavior with respect to None is defined explicitly in the "apply_operator()" function.
_operator_definitions_for_non_null_values: Dict[str, Callable[[Any, Any], bool]] = {
    "=": lambda left, right: left == right,
    "!=": lambda left, right: left != right,
    ">": lambda left, right: left > right,
    ">=": lambda left, right: left >= right,
    "<": lambda left, right: left < right,
    "<=": lambda left, right: left <= right,
    "contains": lambda left, right: right in left,
    "not_contains": lambda left, right: right not in left,
    "has_substring": lambda left, right: right in left,
    "starts_with": lambda left, right: left.startswith(right),
    "ends_with": lambda left, right: left.endswith(right),
    "in_collection": lambda left, right: left in right,
    "not_in_collection": lambda left, right: left not in right,
    "regex": _regex_matches,
    "not_regex": lambda left, right: not _regex_matches(left, right),
}

# Operators that test the value itself and take no operands.
_unary_operator_definitions: Dict[str, Callable[[Any], bool]] = {
    "is_null": lambda value: value is None,
    "is_not_null": lambda value: value is not None,
}

# Operators whose single operand is a collection of values rather than a single value.
COLLECTION_OPERATORS = frozenset({"in_collection", "not_in_collection"})

# Operators whose single operand is a regular expression pattern.
REGEX_OPERATORS = frozenset({"regex", "not_regex"})

UNARY_OPERATORS = frozenset(_unary_operator_definitions)
BINARY_OPERATORS = frozenset(_operator_definitions_for_non_null_values)
SUPPORTED_OPERATORS = UNARY_OPERATORS | BINARY_OPERATORS


def get_operand_count(operator: str) -> int:
    """Return the number of operands the given filter operator expects."""
    if operator in UNARY_OPERATORS:
        return 0
    elif operator in BINARY_OPERATORS:
        return 1
    raise AssertionError(f"Unknown operator {operator}. This is a bug.")


def apply_unary_operator(operator: str, value: Any) -> bool:
    operator_handler = _unary_operator_definitions.get(operator, None)
    if operator_handler is None:
        raise NotImplementedError(f"Operator {operator} is not currently implemented.")
    return operator_handler(value)


def apply_operator(operator: str, left_value: Any, right_value: Any) -> bool:
    # SQL-like semantics: comparisons with "None" generally produce False unless comparing to None:
    # - None is equal to None
    # - None != <anything other than None> is True
    # - None is not greater than, nor less than, any other value
    # - None contains nothing, matches no pattern, and is never contained in anything
    left_none = left_value is None
    right_none = right_value is None

    if left_none and right_none:
        # The operation simplifies to None <op> None, which only the non-strict equalities accept.
        return operator in {"=", ">=", "<="}
    elif left_none or right_none:
        return operator == "!="

    operator_handler: Optional[
        Callable[[Any, Any], bool]
    ] = _operator_definitions_for_non_null_values.get(operator, None)
    if operator_handler is None:
        raise NotImplementedError(f"Operator {operator} is not currently implemented.")
    return operator_handler(left_value, right_value)
