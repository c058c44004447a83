# Copyright 2023-present Kensho Technologies, LLC.
"""Thin synchronous wrapper over the handful of GitLab REST API v4 endpoints we query."""
import base64
import binascii
import logging
from typing import Any, Dict, Iterator, List, Mapping, Optional
from urllib.parse import quote

import requests

from .config import GitlabConfig
from .exceptions import ResolutionError, TransportError


logger = logging.getLogger(__name__)

NEXT_PAGE_HEADER = "X-Next-Page"


def _encode_path_segment(value: Any) -> str:
    """URL-encode a project id ("42" or "group/project") or file path as a single path segment."""
    return quote(str(value), safe="")


def _serialize_query_parameters(params: Mapping[str, Any]) -> Dict[str, str]:
    """Convert parameter values to the string forms GitLab expects, dropping unset values."""
    serialized: Dict[str, str] = {}
    for key, value in params.items():
        if value is None:
            continue
        elif isinstance(value, bool):
            # requests would send "True"/"False", which GitLab does not recognize.
            serialized[key] = "true" if value else "false"
        else:
            serialized[key] = str(value)
    return serialized


def _get_next_page_number(response: requests.Response, current_page: int) -> Optional[int]:
    """Return the number of the page after the given response, or None if it was the last page.

    GitLab sets the X-Next-Page header on paginated responses, leaving it blank on the final page.
    Some deployments omit the header (e.g. for very large collections), in which case we keep
    asking for the next page until an empty page signals the end of the collection.
    """
    if NEXT_PAGE_HEADER not in response.headers:
        return current_page + 1

    raw_next_page = response.headers[NEXT_PAGE_HEADER].strip()
    if not raw_next_page:
        return None

    try:
        return int(raw_next_page)
    except ValueError:
        raise ResolutionError(
            f"Malformed {NEXT_PAGE_HEADER} header value {raw_next_page!r} "
            f"in response from {response.url}."
        )


class GitlabClient:
    """Client for the GitLab endpoints backing the query schema.

    All calls block until a response arrives. Listing methods are generators that fetch one page
    at a time, only when the consumer asks for an item past the end of the last fetched page.
    """

    def __init__(self, config: GitlabConfig, session: Optional[requests.Session] = None) -> None:
        """Create a client for the configured GitLab instance.

        Args:
            config: immutable host and token configuration for the process
            session: optional pre-built requests session, mostly useful for testing
        """
        self.config = config
        self.session = session if session is not None else requests.Session()
        self.session.headers.update(
            {
                "Authorization": f"Bearer {config.token}",
                "Accept": "application/json",
            }
        )
        self.session.verify = config.verify_ssl
        logger.debug(
            "GitLab client ready, api_url=%s, verify_ssl=%s", config.api_url, config.verify_ssl
        )

    def close(self) -> None:
        """Release the pooled connections held by the underlying session."""
        self.session.close()

    def _get(self, endpoint: str, params: Optional[Mapping[str, Any]] = None) -> requests.Response:
        """Issue one GET request, converting every failure mode into a TransportError."""
        url = self.config.api_url + endpoint
        logger.debug("Request: GET %s params=%s", url, params)
        try:
            response = self.session.get(url, params=params, timeout=self.config.timeout)
        except requests.RequestException as e:
            raise TransportError(f"Request to {url} failed: {e}") from e

        logger.debug("Response: GET %s (status=%d)", endpoint, response.status_code)
        if response.status_code >= 400:
            raise TransportError(
                f"GitLab API returned status {response.status_code} for {url}: "
                f"{response.text[:200]}",
                status_code=response.status_code,
            )
        return response

    def _get_json(self, endpoint: str, params: Optional[Mapping[str, Any]] = None) -> Any:
        response = self._get(endpoint, params=params)
        try:
            return response.json()
        except ValueError as e:
            raise ResolutionError(f"GitLab API returned a non-JSON body for {endpoint}.") from e

    def _paginate(self, endpoint: str, params: Mapping[str, Any]) -> Iterator[Dict[str, Any]]:
        """Yield every item of a paginated listing, fetching pages lazily until exhausted."""
        base_params = _serialize_query_parameters(params)
        base_params["per_page"] = str(self.config.page_size)

        page: Optional[int] = 1
        pages_fetched = 0
        items_fetched = 0
        while page is not None:
            page_params = dict(base_params)
            page_params["page"] = str(page)
            response = self._get(endpoint, params=page_params)
            pages_fetched += 1

            try:
                items: List[Dict[str, Any]] = response.json()
            except ValueError as e:
                raise ResolutionError(
                    f"GitLab API returned a non-JSON body for page {page} of {endpoint}."
                ) from e
            if not isinstance(items, list):
                raise ResolutionError(
                    f"Expected a JSON array for page {page} of {endpoint}, "
                    f"got {type(items).__name__} instead."
                )

            if not items:
                break

            next_page = _get_next_page_number(response, page)
            items_fetched += len(items)
            yield from items
            page = next_page

        logger.info(
            "Drained %s: %d item(s) across %d page(s).", endpoint, items_fetched, pages_fetched
        )

    def iter_projects(self, params: Mapping[str, Any]) -> Iterator[Dict[str, Any]]:
        """Yield the project documents matching the given GET /projects filter parameters."""
        return self._paginate("/projects", params)

    def get_project(self, project_id: Any) -> Dict[str, Any]:
        """Return the full document of a single project."""
        project = self._get_json(f"/projects/{_encode_path_segment(project_id)}")
        if not isinstance(project, dict):
            raise ResolutionError(
                f"Expected a JSON object for project {project_id}, "
                f"got {type(project).__name__} instead."
            )
        return project

    def iter_repository_tree(
        self, project_id: Any, ref: str, path: Optional[str] = None
    ) -> Iterator[Dict[str, Any]]:
        """Yield every entry (blobs and trees) of a project's repository at the given ref.

        Args:
            project_id: numeric id or URL path of the project
            ref: branch, tag or commit to list
            path: optional directory within the repository to start listing from

        Yields:
            tree entry documents, each with at least "path" and "type" keys
        """
        params = {"ref": ref, "path": path, "recursive": True}
        endpoint = f"/projects/{_encode_path_segment(project_id)}/repository/tree"
        return self._paginate(endpoint, params)

    def get_file_content(self, project_id: Any, file_path: str, ref: str) -> str:
        """Return the decoded text content of one file at the given ref.

        Content reported as base64-encoded is decoded; bytes that are not valid UTF-8 are replaced
        rather than raising.
        """
        endpoint = (
            f"/projects/{_encode_path_segment(project_id)}"
            f"/repository/files/{_encode_path_segment(file_path)}"
        )
        document = self._get_json(endpoint, params={"ref": ref})
        if not isinstance(document, dict) or "content" not in document:
            raise ResolutionError(f"GitLab returned no content for {file_path} at ref {ref}.")

        content = document["content"]
        if content is None:
            raise ResolutionError(f"GitLab returned null content for {file_path} at ref {ref}.")

        encoding = document.get("encoding")
        if encoding == "base64":
            try:
                raw_bytes = base64.b64decode(content, validate=True)
            except (binascii.Error, ValueError) as e:
                raise ResolutionError(
                    f"Content of {file_path} at ref {ref} is not valid base64."
                ) from e
            return raw_bytes.decode("utf-8", errors="replace")
        elif encoding in (None, "text"):
            return content
        else:
            raise ResolutionError(
                f"Unsupported content encoding {encoding!r} for {file_path} at ref {ref}."
            )
