# Copyright 2023-present Kensho Technologies, LLC.
import unittest

from .. import SCHEMA, execute_query
from ..adapter import GitlabAdapter
from ..exceptions import QueryParsingError, SchemaViolationError
from ..interpreter import graphql_to_ir
from .test_helpers import FakeGitlabClient


class QueryValidationTests(unittest.TestCase):
    def test_valid_query_compiles(self) -> None:
        query = """{
            GitlabRepos(language: "Python") {
                name @output(out_name: "repo_name")
                files(ref: "main") @optional {
                    path @filter(op_name: "regex", value: ["$path_regex"])
                    content @output(out_name: "content")
                }
            }
        }"""
        ir_and_metadata = graphql_to_ir(SCHEMA, query)

        self.assertEqual(("repo_name", "content"), ir_and_metadata.output_names)
        self.assertEqual(
            {"path_regex": frozenset({"regex"})}, ir_and_metadata.filter_parameter_operators
        )

        root_scope = ir_and_metadata.root_scope
        self.assertEqual("GitlabRepos", root_scope.edge_name)
        self.assertEqual("Repo", root_scope.type_name)
        self.assertFalse(root_scope.optional)

        (files_scope,) = root_scope.children
        self.assertEqual((0,), files_scope.location)
        self.assertEqual("RepoFile", files_scope.type_name)
        self.assertTrue(files_scope.optional)
        self.assertEqual(frozenset({"path", "content"}), files_scope.used_properties)

    def test_unparseable_query(self) -> None:
        with self.assertRaises(QueryParsingError):
            graphql_to_ir(SCHEMA, '{ GitlabRepos { name @output(out_name: "repo_name") ')

    def test_schema_violations_are_raised_before_any_request(self) -> None:
        invalid_queries = (
            # Unknown property.
            "{ GitlabRepos { stars @output } }",
            # Unknown root edge.
            "{ GithubRepos { name @output } }",
            # Unknown root edge argument.
            '{ GitlabRepos(owner: "me") { name @output } }',
            # Edge argument of the wrong type.
            "{ GitlabRepos(membership: 1) { name @output } }",
            # Missing required edge argument.
            "{ GitlabRepos { files { path @output } } }",
            # Edge without a selection set.
            '{ GitlabRepos { name @output files(ref: "main") } }',
            # Unknown directive.
            "{ GitlabRepos { name @output @recurse(depth: 2) } }",
            # No outputs at all.
            "{ GitlabRepos { name } }",
            # Duplicate output names.
            '{ GitlabRepos { name @output(out_name: "x") url @output(out_name: "x") } }',
            # @output on an edge.
            '{ GitlabRepos { files(ref: "main") @output { path } } }',
            # @filter on an edge.
            '{ GitlabRepos { files(ref: "main") @filter(op_name: "is_null") { path @output } } }',
            # @optional on a property.
            "{ GitlabRepos { name @optional @output } }",
            # @optional on the root edge.
            "{ GitlabRepos @optional { name @output } }",
            # Unsupported filter operator.
            '{ GitlabRepos { name @filter(op_name: "fuzzy", value: ["$x"]) @output } }',
            # Literal filter operand instead of a runtime parameter.
            '{ GitlabRepos { name @filter(op_name: "=", value: ["web"]) @output } }',
            # Wrong number of filter operands.
            '{ GitlabRepos { name @filter(op_name: "=", value: []) @output } }',
            '{ GitlabRepos { name @filter(op_name: "is_null", value: ["$x"]) @output } }',
            # Runtime parameter used both as a single value and as a collection.
            """{
                GitlabRepos {
                    name @filter(op_name: "=", value: ["$names"])
                         @filter(op_name: "in_collection", value: ["$names"])
                         @output
                }
            }""",
            # More than one root field.
            '{ GitlabRepos { name @output } repos: GitlabRepos(query: "x") { url @output } }',
            # Fragments.
            "{ GitlabRepos { ...RepoFields } } fragment RepoFields on Repo { name @output }",
            "{ GitlabRepos { ... on Repo { name @output } } }",
            # Mutations.
            "mutation { GitlabRepos { name @output } }",
        )

        client = FakeGitlabClient()
        adapter = GitlabAdapter(client)
        for query in invalid_queries:
            with self.assertRaises(SchemaViolationError, msg=query):
                execute_query(adapter, query, {"x": "value", "names": ["value"]})

        self.assertEqual([], client.calls)
