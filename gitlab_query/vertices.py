# Copyright 2023-present Kensho Technologies, LLC.
"""Data tokens for the vertices of the GitLab schema.

Each token wraps the upstream document it was built from. Property values are derived from that
document on demand, so fields the query never asks about are never validated or fetched.
"""
from dataclasses import dataclass, field
from typing import Any, ClassVar, Dict, Optional, Union

from .schema import REPO_FILE_TYPE_NAME, REPO_TYPE_NAME


@dataclass
class RepoVertex:
    """A GitLab project, as listed by the projects endpoint."""

    typename: ClassVar[str] = REPO_TYPE_NAME

    project: Dict[str, Any]
    # Whether the full project document has already been fetched and merged into "project".
    details_loaded: bool = False


@dataclass
class RepoFileVertex:
    """A blob entry of a repository tree, at the ref it was listed at."""

    typename: ClassVar[str] = REPO_FILE_TYPE_NAME

    project_id: str
    ref: str
    tree_entry: Dict[str, Any]
    content: Optional[str] = field(default=None, repr=False)  # memoized after the first fetch


GitlabVertex = Union[RepoVertex, RepoFileVertex]
