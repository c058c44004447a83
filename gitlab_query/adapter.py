# Copyright 2023-present Kensho Technologies, LLC.
"""Interpreter adapter resolving the GitLab schema against the GitLab REST API.

Every (type name, field name) pair of the schema is resolved by a dedicated handler function,
looked up in a dispatch table:
- the GitlabRepos root edge lists projects, passing the edge's arguments on to GitLab;
- Repo properties are read off the listed project document, with a single point lookup of the full
  project document if a property's key is absent from the listing;
- the Repo.files edge lists the repository tree at the requested ref;
- RepoFile.content is fetched only when the query asks for it.

The adapter never filters: the interpreter applies all @filter directives to the raw values.
"""
import logging
from typing import Any, Callable, Dict, Iterable, Iterator, Mapping, Optional, Tuple

import funcy

from .client import GitlabClient
from .exceptions import ResolutionError
from .interpreter import DataContext, InterpreterAdapter
from .schema import REPO_FILE_TYPE_NAME, REPO_TYPE_NAME, ROOT_EDGE_NAME
from .vertices import GitlabVertex, RepoFileVertex, RepoVertex


logger = logging.getLogger(__name__)


# GitlabRepos argument name -> GET /projects query parameter name.
PROJECT_LISTING_PARAMETERS = {
    "query": "search",
    "search_namespace": "search_namespaces",
    "language": "with_programming_language",
    "membership": "membership",
    "last_activity_after": "last_activity_after",
    "last_activity_before": "last_activity_before",
}

# Repo property name -> key of the value in GitLab's project document.
REPO_PROPERTY_KEYS = {
    "url": "http_url_to_repo",
    "id": "id",
    "name": "name",
    "description": "description",
}

# Repo properties that GitLab may legitimately leave unset, and the value to use instead.
REPO_PROPERTY_DEFAULTS = {
    "description": "",
}

TREE_BLOB_TYPE = "blob"


def _get_project_listing_parameters(parameters: Mapping[str, Any]) -> Dict[str, Any]:
    """Translate the GitlabRepos edge arguments to GitLab's query parameters, dropping unset ones."""
    unknown_parameters = set(parameters) - set(PROJECT_LISTING_PARAMETERS)
    if unknown_parameters:
        raise AssertionError(
            f"Received unknown {ROOT_EDGE_NAME} parameters {sorted(unknown_parameters)}. "
            f"These should have been rejected by query validation."
        )

    return funcy.select_values(
        lambda value: value is not None,
        {PROJECT_LISTING_PARAMETERS[name]: value for name, value in parameters.items()},
    )


def _get_repo_project_id(repo: RepoVertex) -> Any:
    project_id = repo.project.get("id")
    if project_id is None:
        raise ResolutionError(f"GitLab project document has no id: {repo.project}")
    return project_id


def _project_repo_property(client: GitlabClient, repo: RepoVertex, field_name: str) -> Any:
    upstream_key = REPO_PROPERTY_KEYS[field_name]

    if upstream_key not in repo.project and not repo.details_loaded and "id" in repo.project:
        # The listing omitted this field entirely (e.g. a "simple" project representation):
        # fetch the full project document once for this vertex.
        logger.debug(
            "Project listing for %s lacks %s, looking up the full project.",
            repo.project["id"],
            upstream_key,
        )
        repo.project.update(client.get_project(repo.project["id"]))
        repo.details_loaded = True

    value = repo.project.get(upstream_key)
    if value is None:
        if field_name in REPO_PROPERTY_DEFAULTS:
            return REPO_PROPERTY_DEFAULTS[field_name]
        raise ResolutionError(
            f'GitLab project {repo.project.get("id", "<unknown>")} is missing the required '
            f'"{upstream_key}" field, needed for {REPO_TYPE_NAME}.{field_name}.'
        )

    if field_name == "id":
        # GitLab ids are integers, but the schema treats them as opaque strings.
        return str(value)
    return value


def _project_repo_file_path(client: GitlabClient, repo_file: RepoFileVertex) -> str:
    path = repo_file.tree_entry.get("path")
    if path is None:
        raise ResolutionError(
            f"Repository tree entry of project {repo_file.project_id} has no path: "
            f"{repo_file.tree_entry}"
        )
    return path


def _project_repo_file_content(client: GitlabClient, repo_file: RepoFileVertex) -> str:
    if repo_file.content is None:
        path = _project_repo_file_path(client, repo_file)
        repo_file.content = client.get_file_content(repo_file.project_id, path, repo_file.ref)
    return repo_file.content


def _project_typename(client: GitlabClient, token: GitlabVertex) -> str:
    return token.typename


_PropertyHandler = Callable[[GitlabClient, Any], Any]

_PROPERTY_HANDLERS: Dict[Tuple[str, str], _PropertyHandler] = {
    (REPO_TYPE_NAME, "url"): funcy.rpartial(_project_repo_property, "url"),
    (REPO_TYPE_NAME, "id"): funcy.rpartial(_project_repo_property, "id"),
    (REPO_TYPE_NAME, "name"): funcy.rpartial(_project_repo_property, "name"),
    (REPO_TYPE_NAME, "description"): funcy.rpartial(_project_repo_property, "description"),
    (REPO_FILE_TYPE_NAME, "path"): _project_repo_file_path,
    (REPO_FILE_TYPE_NAME, "content"): _project_repo_file_content,
}


def _get_repo_files(
    client: GitlabClient, repo: RepoVertex, ref: str, path: Optional[str]
) -> Iterator[RepoFileVertex]:
    """Lazily list the files of one repository at the given ref, skipping directories."""
    project_id = str(_get_repo_project_id(repo))
    for tree_entry in client.iter_repository_tree(project_id, ref, path=path):
        if tree_entry.get("type") == TREE_BLOB_TYPE:
            yield RepoFileVertex(project_id=project_id, ref=ref, tree_entry=tree_entry)


class GitlabAdapter(InterpreterAdapter[GitlabVertex]):
    def __init__(self, client: GitlabClient) -> None:
        """Construct an adapter that loads all data through the given GitLab client.

        Args:
            client: GitlabClient configured with the host and token of the GitLab instance

        Returns:
            GitlabAdapter which can be passed to the interpreter to run queries over GitLab data
        """
        self.client = client

    def get_starting_tokens(
        self, edge_name: str, parameters: Mapping[str, Any], **hints: Any
    ) -> Iterable[GitlabVertex]:
        """List the projects matching the root edge's arguments."""
        if edge_name != ROOT_EDGE_NAME:
            raise NotImplementedError(f"Unknown starting edge name: {edge_name}")

        listing_parameters = _get_project_listing_parameters(parameters)
        logger.info("Listing GitLab projects with parameters %s", listing_parameters)
        for project in self.client.iter_projects(listing_parameters):
            yield RepoVertex(project=project)

    def project_property(
        self,
        data_contexts: Iterable[DataContext[GitlabVertex]],
        current_type_name: str,
        field_name: str,
        **hints: Any,
    ) -> Iterable[Tuple[DataContext[GitlabVertex], Any]]:
        """Compute the requested property of the current token of each data context."""
        if field_name == "__typename":
            handler: _PropertyHandler = _project_typename
        else:
            handler_key = (current_type_name, field_name)
            found_handler = _PROPERTY_HANDLERS.get(handler_key, None)
            if found_handler is None:
                raise NotImplementedError(f"Failed to find property handler for {handler_key}.")
            handler = found_handler

        for data_context in data_contexts:
            current_token = data_context.current_token
            current_value = None
            if current_token is not None:
                current_value = handler(self.client, current_token)
            yield (data_context, current_value)

    def project_neighbors(
        self,
        data_contexts: Iterable[DataContext[GitlabVertex]],
        current_type_name: str,
        edge_name: str,
        parameters: Mapping[str, Any],
        **hints: Any,
    ) -> Iterable[Tuple[DataContext[GitlabVertex], Iterable[GitlabVertex]]]:
        """Compute the neighbors along the given edge of the current token of each context."""
        handler_key = (current_type_name, edge_name)
        if handler_key != (REPO_TYPE_NAME, "files"):
            raise NotImplementedError(f"Failed to find neighbors handler for {handler_key}.")

        ref = parameters["ref"]
        path = parameters.get("path", None)
        for data_context in data_contexts:
            current_token = data_context.current_token
            neighbors: Iterable[GitlabVertex] = []
            if current_token is not None:
                if not isinstance(current_token, RepoVertex):
                    raise AssertionError(
                        f"Expected a {REPO_TYPE_NAME} token, got {current_token} instead."
                    )
                # _get_repo_files() binds the token now, so the lazily-consumed iterable
                # does not depend on this loop's variables.
                neighbors = _get_repo_files(self.client, current_token, ref, path)

            yield (data_context, neighbors)
