# Copyright 2023-present Kensho Technologies, LLC.
"""The queryable shape of GitLab repository data.

Queries start at the GitlabRepos root edge, whose arguments are passed through to GitLab's project
listing endpoint. Each Repo can be expanded along its "files" edge to reach the files present at a
given ref. For example, the following query outputs the contents of every requirements.txt file on
the main branch of every project active since the start of 2023:

    {
        GitlabRepos(last_activity_after: "2023-01-01T12:00:00.000Z") {
            name @output(out_name: "repo_name")
            files(ref: "main") {
                path @filter(op_name: "regex", value: ["$path_regex"])
                content @output(out_name: "content")
            }
        }
    }

with the argument {"path_regex": "requirements\\.txt$"}.
"""
from graphql import GraphQLSchema, build_ast_schema, parse


ROOT_EDGE_NAME = "GitlabRepos"
REPO_TYPE_NAME = "Repo"
REPO_FILE_TYPE_NAME = "RepoFile"

FILTER_DIRECTIVE_NAME = "filter"
OUTPUT_DIRECTIVE_NAME = "output"
OPTIONAL_DIRECTIVE_NAME = "optional"

DIRECTIVES_TEXT = """
directive @filter(
    \"\"\"Name of the filter operation to perform.\"\"\"
    op_name: String!
    \"\"\"List of string operands for the operator.\"\"\"
    value: [String!]
) repeatable on FIELD
directive @output(
    \"\"\"What to designate the output field generated from this property field.\"\"\"
    out_name: String
) on FIELD
directive @optional on FIELD
"""

SCHEMA_TEXT = (
    """
schema {
    query: RootSchemaQuery
}
"""
    + DIRECTIVES_TEXT
    + """
\"\"\"A GitLab project and its git repository.\"\"\"
type Repo {
    \"\"\"HTTP(S) clone URL of the repository.\"\"\"
    url: String!
    \"\"\"GitLab's opaque identifier for the project.\"\"\"
    id: String!
    name: String!
    \"\"\"Project description, or an empty string if the project has none.\"\"\"
    description: String!
    \"\"\"Files present in the repository at the given branch, tag or commit.\"\"\"
    files(ref: String!, path: String): [RepoFile!]!
}

\"\"\"A file (git blob) in a repository at a particular ref.\"\"\"
type RepoFile {
    \"\"\"Path of the file relative to the repository root.\"\"\"
    path: String!
    \"\"\"Full text content of the file.\"\"\"
    content: String!
}

type RootSchemaQuery {
    GitlabRepos(
        \"\"\"Search term matched against project names.\"\"\"
        query: String
        \"\"\"Also match the search term against namespace paths.\"\"\"
        search_namespace: Boolean
        \"\"\"Limit to projects using the given programming language.\"\"\"
        language: String
        \"\"\"Limit to projects the token's user is a member of.\"\"\"
        membership: Boolean
        \"\"\"RFC 3339 timestamp; only projects with activity after it.\"\"\"
        last_activity_after: String
        \"\"\"RFC 3339 timestamp; only projects with activity before it.\"\"\"
        last_activity_before: String
    ): [Repo!]!
}
"""
)


def get_schema() -> GraphQLSchema:
    """Build a fresh GraphQLSchema object for the GitLab repository schema."""
    return build_ast_schema(parse(SCHEMA_TEXT))


SCHEMA = get_schema()
