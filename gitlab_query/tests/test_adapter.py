# Copyright 2023-present Kensho Technologies, LLC.
from typing import Any, Dict, List
import unittest

from ..adapter import GitlabAdapter
from ..exceptions import ResolutionError
from ..interpreter import DataContext
from ..vertices import GitlabVertex, RepoFileVertex, RepoVertex
from .test_helpers import FakeGitlabClient


def _project_repo_values(
    adapter: GitlabAdapter, projects: List[Dict[str, Any]], field_name: str
) -> List[Any]:
    data_contexts = [
        DataContext.make_empty_context_from_token(RepoVertex(project=project))
        for project in projects
    ]
    return [value for _, value in adapter.project_property(data_contexts, "Repo", field_name)]


class GitlabAdapterTests(unittest.TestCase):
    def test_starting_tokens_translate_edge_arguments(self) -> None:
        client = FakeGitlabClient()
        adapter = GitlabAdapter(client)

        tokens = adapter.get_starting_tokens(
            "GitlabRepos",
            {
                "query": "web",
                "search_namespace": True,
                "language": None,
                "last_activity_after": "2023-01-01T12:00:00.000Z",
            },
        )
        # Nothing is listed until the tokens are consumed.
        self.assertEqual([], client.calls)

        self.assertEqual([1, 2, 3], [token.project["id"] for token in tokens])
        self.assertEqual(
            [
                (
                    "iter_projects",
                    {
                        "search": "web",
                        "search_namespaces": True,
                        "last_activity_after": "2023-01-01T12:00:00.000Z",
                    },
                )
            ],
            client.calls,
        )

    def test_repo_properties(self) -> None:
        adapter = GitlabAdapter(FakeGitlabClient())
        project = {
            "id": 17,
            "name": "web-frontend",
            "description": "The customer-facing website.",
            "http_url_to_repo": "https://gitlab.example.com/team/web-frontend.git",
        }

        self.assertEqual(
            ["https://gitlab.example.com/team/web-frontend.git"],
            _project_repo_values(adapter, [project], "url"),
        )
        self.assertEqual(["17"], _project_repo_values(adapter, [project], "id"))
        self.assertEqual(["web-frontend"], _project_repo_values(adapter, [project], "name"))
        self.assertEqual(
            ["The customer-facing website."],
            _project_repo_values(adapter, [project], "description"),
        )
        self.assertEqual(["Repo"], _project_repo_values(adapter, [project], "__typename"))

    def test_missing_description_defaults_to_empty_string(self) -> None:
        client = FakeGitlabClient(project_details={5: {"id": 5, "name": "no-description"}})
        adapter = GitlabAdapter(client)
        projects = [
            {"id": 4, "name": "null-description", "description": None},
            {"id": 5, "name": "no-description"},
        ]
        self.assertEqual(["", ""], _project_repo_values(adapter, projects, "description"))

    def test_missing_required_properties_raise(self) -> None:
        adapter = GitlabAdapter(FakeGitlabClient())
        projects_and_fields = (
            ({"id": 4, "name": "a", "http_url_to_repo": None}, "url"),
            ({"id": 4, "name": None, "http_url_to_repo": "https://x/a.git"}, "name"),
            ({"id": None, "name": "a", "http_url_to_repo": "https://x/a.git"}, "id"),
        )
        for project, field_name in projects_and_fields:
            with self.assertRaises(ResolutionError):
                _project_repo_values(adapter, [project], field_name)

    def test_fields_absent_from_listing_are_looked_up_once(self) -> None:
        client = FakeGitlabClient(
            project_details={
                8: {
                    "id": 8,
                    "name": "simple-project",
                    "description": "Full details.",
                    "http_url_to_repo": "https://gitlab.example.com/team/simple-project.git",
                }
            }
        )
        adapter = GitlabAdapter(client)
        token = RepoVertex(project={"id": 8, "name": "simple-project"})
        data_contexts = [DataContext.make_empty_context_from_token(token)]

        self.assertEqual(
            [(data_contexts[0], "https://gitlab.example.com/team/simple-project.git")],
            list(adapter.project_property(data_contexts, "Repo", "url")),
        )
        self.assertEqual(
            [(data_contexts[0], "Full details.")],
            list(adapter.project_property(data_contexts, "Repo", "description")),
        )
        self.assertEqual([("get_project", 8)], client.calls)

    def test_missing_required_property_after_lookup_raises(self) -> None:
        client = FakeGitlabClient(project_details={9: {"id": 9, "name": "no-url"}})
        adapter = GitlabAdapter(client)
        with self.assertRaises(ResolutionError):
            _project_repo_values(adapter, [{"id": 9, "name": "no-url"}], "url")

    def test_files_edge_lists_blobs_only(self) -> None:
        client = FakeGitlabClient()
        adapter = GitlabAdapter(client)
        data_contexts = [
            DataContext.make_empty_context_from_token(RepoVertex(project={"id": 1})),
            DataContext.make_empty_context_from_token(RepoVertex(project={"id": 3})),
        ]

        neighbors_by_context = [
            [token.tree_entry["path"] for token in neighbors]
            for _, neighbors in adapter.project_neighbors(
                data_contexts, "Repo", "files", {"ref": "main"}
            )
        ]
        self.assertEqual(
            [["src/app.py", "requirements.txt", "README.md"], []], neighbors_by_context
        )
        self.assertEqual(
            [
                ("iter_repository_tree", "1", "main", None),
                ("iter_repository_tree", "3", "main", None),
            ],
            client.calls,
        )

    def test_files_edge_passes_path_on(self) -> None:
        client = FakeGitlabClient()
        adapter = GitlabAdapter(client)
        data_contexts = [DataContext.make_empty_context_from_token(RepoVertex(project={"id": 2}))]

        neighbor_data = list(
            adapter.project_neighbors(
                data_contexts, "Repo", "files", {"ref": "main", "path": "backend"}
            )
        )
        self.assertEqual(1, len(neighbor_data))
        self.assertEqual(
            ["backend/requirements.txt"],
            [token.tree_entry["path"] for token in neighbor_data[0][1]],
        )
        self.assertEqual([("iter_repository_tree", "2", "main", "backend")], client.calls)

    def test_file_content_is_fetched_on_demand_and_memoized(self) -> None:
        client = FakeGitlabClient()
        adapter = GitlabAdapter(client)
        token = RepoFileVertex(
            project_id="1", ref="main", tree_entry={"path": "requirements.txt", "type": "blob"}
        )
        data_contexts: List[DataContext[GitlabVertex]] = [
            DataContext.make_empty_context_from_token(token)
        ]

        paths = list(adapter.project_property(data_contexts, "RepoFile", "path"))
        self.assertEqual([(data_contexts[0], "requirements.txt")], paths)
        self.assertEqual([], client.calls)

        for _ in range(2):
            contents = list(adapter.project_property(data_contexts, "RepoFile", "content"))
            self.assertEqual([(data_contexts[0], "flask==2.3.2\nrequests==2.31.0\n")], contents)
        self.assertEqual([("get_file_content", "1", "requirements.txt", "main")], client.calls)

    def test_tokens_of_missing_optional_vertices_have_no_values(self) -> None:
        client = FakeGitlabClient()
        adapter = GitlabAdapter(client)
        data_contexts: List[DataContext[GitlabVertex]] = [
            DataContext.make_empty_context_from_token(None)  # type: ignore
        ]

        self.assertEqual(
            [(data_contexts[0], None)],
            list(adapter.project_property(data_contexts, "RepoFile", "content")),
        )
        neighbors = list(adapter.project_neighbors(data_contexts, "Repo", "files", {"ref": "main"}))
        self.assertEqual([(data_contexts[0], [])], neighbors)
        self.assertEqual([], client.calls)

    def test_unknown_edges_and_properties(self) -> None:
        adapter = GitlabAdapter(FakeGitlabClient())
        with self.assertRaises(NotImplementedError):
            list(adapter.get_starting_tokens("GithubRepos", {}))
        with self.assertRaises(NotImplementedError):
            list(adapter.project_property([], "Repo", "stars"))
        with self.assertRaises(NotImplementedError):
            list(adapter.project_neighbors([], "RepoFile", "files", {}))
