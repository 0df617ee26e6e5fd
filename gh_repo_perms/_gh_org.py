# SPDX-FileCopyrightText: 2025 DB Systel GmbH
#
# SPDX-License-Identifier: Apache-2.0

"""Class for the GitHub organization which gathers teams, repositories and
their collaborators' permissions"""

import logging
import sys
from collections.abc import Iterator
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass, field

from github import Auth, Github, GithubIntegration, UnknownObjectException
from github.GithubException import BadCredentialsException
from github.Organization import Organization
from jwt.exceptions import InvalidKeyError

from ._exceptions import DecodeError
from ._gh_api import PAGE_SIZE, get_github_secrets_from_env, paginate_graphql_query
from ._helpers import dict_to_pretty_string
from ._permissions import (
    CollaboratorEdge,
    RepoPermissionMap,
    aggregate_repo_permissions,
    parse_collaborator_edge,
)
from ._teams import parse_team_node, resolve_team_fullnames

TEAMS_QUERY = f"""
    query($owner: String!, $cursor: String) {{
        organization(login: $owner) {{
            teams(first: {PAGE_SIZE}, after: $cursor) {{
                pageInfo {{
                    hasNextPage
                    endCursor
                }}
                nodes {{
                    slug
                    parentTeam {{
                        slug
                    }}
                }}
            }}
        }}
    }}
"""

REPOS_QUERY = f"""
    query($owner: String!, $cursor: String) {{
        organization(login: $owner) {{
            repositories(
                first: {PAGE_SIZE}, after: $cursor, orderBy: {{field: UPDATED_AT, direction: DESC}}
            ) {{
                pageInfo {{
                    hasNextPage
                    endCursor
                }}
                nodes {{
                    name
                    url
                    isArchived
                }}
            }}
        }}
    }}
"""

COLLABORATORS_QUERY = f"""
    query($owner: String!, $repo: String!, $cursor: String) {{
        organization(login: $owner) {{
            repository(name: $repo) {{
                collaborators(first: {PAGE_SIZE}, after: $cursor) {{
                    pageInfo {{
                        hasNextPage
                        endCursor
                    }}
                    edges {{
                        node {{
                            login
                        }}
                        permissionSources {{
                            permission
                            source {{
                                __typename
                                ... on Organization {{
                                    login
                                }}
                                ... on Repository {{
                                    name
                                }}
                                ... on Team {{
                                    slug
                                }}
                            }}
                        }}
                    }}
                }}
            }}
        }}
    }}
"""


@dataclass(frozen=True)
class RepoHandle:
    """A non-archived repository of the organisation"""

    name: str
    url: str


def filter_active_repos(nodes: Iterator[dict] | list[dict]) -> list[RepoHandle]:
    """Turn repository nodes into RepoHandles, dropping archived repositories
    while keeping the order"""
    repos: list[RepoHandle] = []
    for node in nodes:
        try:
            if node["isArchived"]:
                logging.debug("Ignoring archived repository %s", node["name"])
                continue
            repos.append(RepoHandle(name=node["name"], url=node["url"]))
        except (KeyError, TypeError) as exc:
            raise DecodeError(f"Unexpected repository node in GraphQL response: {node!r}") from exc

    return repos


@dataclass
class GHorg:  # pylint: disable=too-many-instance-attributes
    """Dataclass holding GH organization data and functions"""

    gh: Github = None  # type: ignore
    org: Organization = None  # type: ignore
    gh_token: str = ""
    gh_app_id: str | int = ""
    gh_app_private_key: str = ""
    org_login: str = ""
    team_fullnames: dict[str, str] = field(default_factory=dict)
    repos: list[RepoHandle] = field(default_factory=list)

    # --------------------------------------------------------------------------
    # Helper functions
    # --------------------------------------------------------------------------
    def login(
        self, orgname: str, token: str = "", app_id: str | int = "", app_private_key: str = ""
    ) -> None:
        """Login to GH via PAT or App, gather org data"""
        # Get all login data from config and environment
        self.gh_token = get_github_secrets_from_env(env_variable="GITHUB_TOKEN", secret=token)
        self.gh_app_id = get_github_secrets_from_env(env_variable="GITHUB_APP_ID", secret=app_id)
        self.gh_app_private_key = get_github_secrets_from_env(
            env_variable="GITHUB_APP_PRIVATE_KEY", secret=app_private_key
        )

        # Decide how to login. If app set, prefer this
        if self.gh_app_id and self.gh_app_private_key:
            logging.debug("Logging in via app %s", self.gh_app_id)
            auth = Auth.AppAuth(app_id=self.gh_app_id, private_key=self.gh_app_private_key)
            app = GithubIntegration(auth=auth)
            try:
                installation = app.get_org_installation(org=orgname)
            except InvalidKeyError:
                logging.critical("Invalid private key provided for GitHub App")
                sys.exit(1)
            self.gh = installation.get_github_for_installation()
            logging.debug("Logged in via app installation %s", installation.id)

            # The GraphQL queries need a token, so use the one of the installation
            logging.debug("Getting access token for installation %s", installation.id)
            self.gh_token = app.get_access_token(installation_id=installation.id).token
        elif self.gh_token:
            logging.debug("Logging in as user with PAT")
            self.gh = Github(auth=Auth.Token(self.gh_token))
            try:
                logging.debug("Logged in as %s", self.gh.get_user().login)
            except BadCredentialsException:
                logging.critical("Invalid GitHub token provided")
                sys.exit(1)
        else:
            logging.critical(
                "No GitHub token or App ID+private key provided. Set GITHUB_TOKEN to a token "
                "with the 'admin:org' permission"
            )
            sys.exit(1)

        logging.debug("Gathering data from organization '%s'", orgname)
        try:
            self.org = self.gh.get_organization(orgname)
        except UnknownObjectException:
            logging.critical("Organisation '%s' does not exist or is not accessible", orgname)
            sys.exit(1)
        # The login as returned by GitHub, as permission sources use its exact spelling
        self.org_login = self.org.login
        logging.debug("Gathered data from organization '%s' (%s)", self.org.login, self.org.name)

    def ratelimit(self):
        """Print current rate limit"""
        rate_limit = self.gh.get_rate_limit()
        # Newer PyGithub versions group the limits under `resources`
        core = rate_limit.resources.core if hasattr(rate_limit, "resources") else rate_limit.core
        logging.info(
            "Current rate limit: %s/%s (reset: %s)", core.remaining, core.limit, core.reset
        )

    def pretty_print_dataclass(self) -> str:
        """Convert this dataclass to a pretty-printed output"""
        data = {
            "org_login": self.org_login,
            "gh_token": self.gh_token,
            "gh_app_id": self.gh_app_id,
            "gh_app_private_key": self.gh_app_private_key,
            "team_fullnames": self.team_fullnames,
            "repos": ", ".join(repo.name for repo in self.repos),
        }
        return dict_to_pretty_string(data, sensible_keys=["gh_token", "gh_app_private_key"])

    # --------------------------------------------------------------------------
    # Teams
    # --------------------------------------------------------------------------
    def get_team_fullnames(self) -> dict[str, str]:
        """Get all teams of the organisation and resolve their full names
        including all parent teams"""
        nodes = paginate_graphql_query(
            TEAMS_QUERY,
            {"owner": self.org_login},
            self.gh_token,
            connection_path=("organization", "teams"),
        )
        teams = [parse_team_node(node) for node in nodes]
        logging.info("Found %s teams in organisation %s", len(teams), self.org_login)

        self.team_fullnames = resolve_team_fullnames(teams)
        return self.team_fullnames

    # --------------------------------------------------------------------------
    # Repos
    # --------------------------------------------------------------------------
    def get_repos(self) -> list[RepoHandle]:
        """Get all non-archived repositories, most recently updated first"""
        nodes = paginate_graphql_query(
            REPOS_QUERY,
            {"owner": self.org_login},
            self.gh_token,
            connection_path=("organization", "repositories"),
        )
        self.repos = filter_active_repos(nodes)
        logging.info(
            "Found %s non-archived repositories in organisation %s",
            len(self.repos),
            self.org_login,
        )

        return self.repos

    # --------------------------------------------------------------------------
    # Collaborators
    # --------------------------------------------------------------------------
    def get_collaborators(self, repo: RepoHandle) -> list[CollaboratorEdge]:
        """Get all collaborators of a repository with their permission sources"""
        edges = paginate_graphql_query(
            COLLABORATORS_QUERY,
            {"owner": self.org_login, "repo": repo.name},
            self.gh_token,
            connection_path=("organization", "repository", "collaborators"),
        )
        return [parse_collaborator_edge(edge) for edge in edges]

    def get_repo_permissions(self, repo: RepoHandle) -> RepoPermissionMap:
        """Get the aggregated permissions of a repository"""
        logging.debug("Collecting permissions of repository %s", repo.name)
        collaborators = self.get_collaborators(repo)
        return aggregate_repo_permissions(
            collaborators,
            team_fullnames=self.team_fullnames,
            org_login=self.org_login,
            repo_name=repo.name,
        )

    def iter_repo_permissions(
        self, repos: list[RepoHandle], workers: int = 1
    ) -> Iterator[tuple[RepoHandle, RepoPermissionMap]]:
        """Yield the aggregated permissions of each repository, in the order
        of the given repositories.

        With more than one worker, repositories are processed in a thread pool
        of that size. Once a repository fails, all pending ones are cancelled
        and the error is raised.
        """
        if workers <= 1:
            for repo in repos:
                yield repo, self.get_repo_permissions(repo)
            return

        with ThreadPoolExecutor(max_workers=workers) as executor:
            futures: list[Future] = [
                executor.submit(self.get_repo_permissions, repo) for repo in repos
            ]
            try:
                for repo, future in zip(repos, futures):
                    yield repo, future.result()
            finally:
                for future in futures:
                    future.cancel()
