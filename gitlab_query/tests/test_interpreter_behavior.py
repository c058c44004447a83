# Copyright 2023-present Kensho Technologies, LLC.
from typing import Any, Dict, List, Mapping
import unittest

from .. import execute_query
from ..adapter import GitlabAdapter
from ..exceptions import InvalidQueryArgumentError
from .test_helpers import FakeGitlabClient


class InterpreterBehaviorTests(unittest.TestCase):
    def setUp(self) -> None:
        """Give each test a fresh client, so recorded calls do not leak between tests."""
        self.maxDiff = None
        self.client = FakeGitlabClient()
        self.adapter = GitlabAdapter(self.client)

    def _run(self, query: str, args: Mapping[str, Any]) -> List[Dict[str, Any]]:
        return list(execute_query(self.adapter, query, args))

    def test_execution_is_lazy(self) -> None:
        query = """{
            GitlabRepos {
                name @output(out_name: "repo_name")
            }
        }"""
        rows = execute_query(self.adapter, query, {})
        self.assertEqual([], self.client.calls)

        self.assertEqual({"repo_name": "web-frontend"}, next(rows))
        self.assertEqual(1, len(self.client.calls))

    def test_output_defaults_to_field_name(self) -> None:
        query = """{
            GitlabRepos {
                name @output
                description @output
                __typename @output(out_name: "type")
            }
        }"""
        expected_rows = [
            {"name": "web-frontend", "description": "The customer-facing website.", "type": "Repo"},
            {"name": "data-pipeline", "description": "", "type": "Repo"},
            {"name": "empty-repo", "description": "Nothing here yet.", "type": "Repo"},
        ]
        self.assertEqual(expected_rows, self._run(query, {}))

    def test_filter_on_root_vertex(self) -> None:
        query = """{
            GitlabRepos {
                name @filter(op_name: "in_collection", value: ["$names"])
                     @output(out_name: "repo_name")
                url @output(out_name: "url")
            }
        }"""
        args = {"names": ["empty-repo", "web-frontend"]}
        expected_rows = [
            {
                "repo_name": "web-frontend",
                "url": "https://gitlab.example.com/team/web-frontend.git",
            },
            {
                "repo_name": "empty-repo",
                "url": "https://gitlab.example.com/team/empty-repo.git",
            },
        ]
        self.assertEqual(expected_rows, self._run(query, args))

    def test_multiple_filters_on_one_property(self) -> None:
        query = """{
            GitlabRepos {
                files(ref: "main") {
                    path @filter(op_name: "regex", value: ["$include"])
                         @filter(op_name: "not_regex", value: ["$exclude"])
                         @output(out_name: "path")
                }
            }
        }"""
        args = {"include": r"requirements\.txt", "exclude": r"^backend/"}
        expected_rows = [{"path": "requirements.txt"}, {"path": "docs/requirements.txt.bak"}]
        self.assertEqual(expected_rows, self._run(query, args))

    def test_filtered_out_files_never_have_content_fetched(self) -> None:
        query = """{
            GitlabRepos {
                files(ref: "main") {
                    path @filter(op_name: "ends_with", value: ["$suffix"])
                    content @output(out_name: "content")
                }
            }
        }"""
        rows = self._run(query, {"suffix": ".py"})

        self.assertEqual([{"content": "print('hello')\n"}, {"content": "import pandas\n"}], rows)
        self.assertEqual(
            [
                ("get_file_content", "1", "src/app.py", "main"),
                ("get_file_content", "2", "pipeline.py", "main"),
            ],
            self.client.get_calls_to("get_file_content"),
        )

    def test_optional_edge(self) -> None:
        query = """{
            GitlabRepos {
                name @output(out_name: "repo_name")
                files(ref: "main") @optional {
                    path @output(out_name: "path")
                }
            }
        }"""
        expected_rows = [
            {"repo_name": "web-frontend", "path": "src/app.py"},
            {"repo_name": "web-frontend", "path": "requirements.txt"},
            {"repo_name": "web-frontend", "path": "README.md"},
            {"repo_name": "data-pipeline", "path": "backend/requirements.txt"},
            {"repo_name": "data-pipeline", "path": "docs/requirements.txt.bak"},
            {"repo_name": "data-pipeline", "path": "pipeline.py"},
            {"repo_name": "empty-repo", "path": None},
        ]
        self.assertEqual(expected_rows, self._run(query, {}))

    def test_filters_within_missing_optional_edge_pass(self) -> None:
        query = """{
            GitlabRepos {
                name @output(out_name: "repo_name")
                files(ref: "main") @optional {
                    path @filter(op_name: "regex", value: ["$path_regex"])
                         @output(out_name: "path")
                }
            }
        }"""
        expected_rows = [
            {"repo_name": "web-frontend", "path": "requirements.txt"},
            {"repo_name": "data-pipeline", "path": "backend/requirements.txt"},
            {"repo_name": "empty-repo", "path": None},
        ]
        self.assertEqual(expected_rows, self._run(query, {"path_regex": r"requirements\.txt$"}))

    def test_non_optional_edge_drops_vertices_without_neighbors(self) -> None:
        query = """{
            GitlabRepos {
                name @output(out_name: "repo_name")
                files(ref: "main") {
                    path @filter(op_name: "=", value: ["$path"])
                }
            }
        }"""
        self.assertEqual([{"repo_name": "web-frontend"}], self._run(query, {"path": "README.md"}))

    def test_edge_arguments_from_variables(self) -> None:
        query = """query FilesAtRef($ref: String!, $subdirectory: String) {
            GitlabRepos(query: "pipeline", membership: true) {
                files(ref: $ref, path: $subdirectory) {
                    path @output
                }
            }
        }"""
        rows = self._run(query, {"ref": "develop", "subdirectory": "backend"})

        self.assertEqual([{"path": "backend/requirements.txt"}], rows)
        self.assertEqual(
            [("iter_projects", {"search": "pipeline", "membership": True})],
            self.client.get_calls_to("iter_projects"),
        )
        self.assertEqual(
            [
                ("iter_repository_tree", "1", "develop", "backend"),
                ("iter_repository_tree", "2", "develop", "backend"),
                ("iter_repository_tree", "3", "develop", "backend"),
            ],
            self.client.get_calls_to("iter_repository_tree"),
        )

    def test_invalid_arguments_are_rejected_before_loading_data(self) -> None:
        query = """query RequirementsFiles($ref: String!) {
            GitlabRepos {
                name @filter(op_name: "in_collection", value: ["$names"])
                files(ref: $ref) {
                    path @filter(op_name: "regex", value: ["$path_regex"])
                         @output(out_name: "path")
                }
            }
        }"""
        valid_args = {"ref": "main", "names": ["web-frontend"], "path_regex": "txt$"}
        invalid_args_list = (
            # Missing filter argument.
            {"ref": "main", "names": ["web-frontend"]},
            # Missing required variable.
            {"names": ["web-frontend"], "path_regex": "txt$"},
            # Unexpected argument.
            dict(valid_args, language="Python"),
            # Variable of the wrong type.
            dict(valid_args, ref=3),
            # Collection argument given as a single value.
            dict(valid_args, names="web-frontend"),
            # Non-string regex.
            dict(valid_args, path_regex=5),
            # Regex that does not compile.
            dict(valid_args, path_regex="requirements("),
        )
        for invalid_args in invalid_args_list:
            with self.assertRaises(InvalidQueryArgumentError, msg=str(invalid_args)):
                execute_query(self.adapter, query, invalid_args)
        self.assertEqual([], self.client.calls)

        self.assertEqual([{"path": "requirements.txt"}], self._run(query, valid_args))
