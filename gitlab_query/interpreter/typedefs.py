# Copyright 2023-present Kensho Technologies, LLC.
from abc import ABCMeta, abstractmethod
from typing import (
    AbstractSet,
    Any,
    Collection,
    Generic,
    Iterable,
    Mapping,
    Optional,
    Tuple,
    TypedDict,
)

from .data_context import DataContext, DataToken
from .ir import FilterInfo


class InterpreterHints(TypedDict):
    """Describe all known hint types.

    Values of this type are intended to be used as "**hints" syntax in adapter calls.
    """

    runtime_arg_hints: Mapping[str, Any]  # the runtime arguments passed for this query
    used_property_hints: AbstractSet[str]  # the names of all property fields used within this scope
    filter_hints: Collection[FilterInfo]  # info on all filters used within this scope


class InterpreterAdapter(Generic[DataToken], metaclass=ABCMeta):
    """Base class defining the API for schema-aware interpreter functionality over some schema.

    The rest of the interpreter is schema-agnostic: it performs all schema-aware operations
    through this three-method API. Subclasses choose their own DataToken type, an opaque reference
    to one vertex of the data set, e.g. a dict of the vertex's already-loaded properties.

    All methods are generator-style: data is produced only as the interpreter consumes it.
    If exactly 3 query results are requested, only the data needed for those 3 results is loaded.

    Each method also receives keyword "hints" describing how the data it produces will be used:
    - runtime_arg_hints: the names and values of the query's runtime arguments;
    - used_property_hints: property names that the query filters on or outputs in the scope
      being produced (the neighbor scope for project_neighbors(), the current one otherwise);
    - filter_hints: the @filter directives applied within that same scope.
    Hints are purely advisory: the interpreter applies every filter itself, so adapters may
    ignore hints entirely and must never assume a filter was applied on their behalf.
    """

    @abstractmethod
    def get_starting_tokens(
        self,
        edge_name: str,
        parameters: Mapping[str, Any],
        *,
        runtime_arg_hints: Optional[Mapping[str, Any]] = None,
        used_property_hints: Optional[AbstractSet[str]] = None,
        filter_hints: Optional[Collection[FilterInfo]] = None,
        **hints: Any,
    ) -> Iterable[DataToken]:
        """Produce the tokens reached by the query's root edge.

        Called *exactly once* per interpreted query, but not necessarily before the other
        methods of this API, and not before the first result is requested.

        Args:
            edge_name: name of a field of the schema's root query type
            parameters: the root edge's arguments, bound and coerced per the schema. Arguments
                        the query did not set are present only if the schema gives them
                        a default value.
            runtime_arg_hints: names and values of the query's runtime arguments
            used_property_hints: property names used by the query on the produced vertices
            filter_hints: filters the query applies to the produced vertices
            **hints: catch-all kwarg for forward-compatibility with future hint types

        Yields:
            DataTokens for the vertices reached by the root edge
        """

    @abstractmethod
    def project_property(
        self,
        data_contexts: Iterable[DataContext[DataToken]],
        current_type_name: str,
        field_name: str,
        *,
        runtime_arg_hints: Optional[Mapping[str, Any]] = None,
        used_property_hints: Optional[AbstractSet[str]] = None,
        filter_hints: Optional[Collection[FilterInfo]] = None,
        **hints: Any,
    ) -> Iterable[Tuple[DataContext[DataToken], Any]]:
        """Produce the values for a given property for each of an iterable of input DataTokens.

        Args:
            data_contexts: contexts whose current_token's property value is requested. If a
                           context's current_token is None (an @optional edge that did not
                           exist), the property's value is None.
            current_type_name: the schema type of the tokens in data_contexts
            field_name: a property declared on current_type_name, or "__typename"
            runtime_arg_hints: names and values of the query's runtime arguments
            used_property_hints: property names used by the query on these vertices
            filter_hints: filters the query applies to these vertices
            **hints: catch-all kwarg for forward-compatibility with future hint types

        Yields:
            tuples (data_context, property_value), in the same order as data_contexts
        """

    @abstractmethod
    def project_neighbors(
        self,
        data_contexts: Iterable[DataContext[DataToken]],
        current_type_name: str,
        edge_name: str,
        parameters: Mapping[str, Any],
        *,
        runtime_arg_hints: Optional[Mapping[str, Any]] = None,
        used_property_hints: Optional[AbstractSet[str]] = None,
        filter_hints: Optional[Collection[FilterInfo]] = None,
        **hints: Any,
    ) -> Iterable[Tuple[DataContext[DataToken], Iterable[DataToken]]]:
        """Produce the neighbors along a given edge for each of an iterable of input DataTokens.

        N.B.: The neighbor iterables are consumed lazily, possibly after later contexts have been
              pulled from data_contexts. Build each one from its own token, not from variables
              that the loop over data_contexts keeps reassigning.

        Args:
            data_contexts: contexts whose current_token's neighbors are requested. If a context's
                           current_token is None, it has no neighbors.
            current_type_name: the schema type of the tokens in data_contexts
            edge_name: an edge declared on current_type_name
            parameters: the edge's arguments, bound and coerced per the schema
            runtime_arg_hints: names and values of the query's runtime arguments
            used_property_hints: property names used by the query on the *neighbor* vertices
            filter_hints: filters the query applies to the *neighbor* vertices
            **hints: catch-all kwarg for forward-compatibility with future hint types

        Yields:
            tuples (data_context, iterable_of_neighbor_tokens), in the same order as data_contexts
        """
