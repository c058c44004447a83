# Copyright 2023-present Kensho Technologies, LLC.
from typing import Optional


class GitlabQueryError(Exception):
    """Generic error when querying GitLab data."""


class ConfigurationError(GitlabQueryError):
    """Exception raised when the GitLab host or token configuration is missing or invalid."""


class TransportError(GitlabQueryError):
    """Exception raised when a call to the GitLab API fails at the network or HTTP level.

    The status_code attribute holds the HTTP status of the failed response, or None if no response
    was received at all (e.g. DNS failure, refused connection, timeout).
    """

    def __init__(self, message: str, status_code: Optional[int] = None) -> None:
        """Record the HTTP status code alongside the message."""
        super().__init__(message)
        self.status_code = status_code


class SchemaViolationError(GitlabQueryError):
    """Exception raised when a query does not conform to the schema it is run against.

    For example:
    - the query requests a field, edge, or argument that the schema does not declare;
    - the query uses a directive in a place where it is not supported;
    - the query uses a filter operator that does not exist.
    """


class QueryParsingError(SchemaViolationError):
    """Exception raised when the provided query string could not be parsed."""


class InvalidQueryArgumentError(SchemaViolationError):
    """Exception raised when the arguments supplied to a query are invalid.

    For example:
    - there may be unexpected arguments;
    - expected arguments may be missing;
    - an argument may be of incorrect type (e.g. expected a list but received a string).
    """


class ResolutionError(GitlabQueryError):
    """Exception raised when an upstream payload lacks a required field or is malformed."""
