# SPDX-FileCopyrightText: 2025 DB Systel GmbH
#
# SPDX-License-Identifier: Apache-2.0

"""Permission sources of repository collaborators and their aggregation into
one effective permission per source"""

import logging
from dataclasses import dataclass, field
from enum import Enum, IntEnum

from ._exceptions import AggregationConflictError, DecodeError


class Permission(IntEnum):
    """Repository permission levels as reported in permission sources, ordered
    from lowest to highest"""

    NONE = 0
    READ = 1
    WRITE = 2
    ADMIN = 3

    def __str__(self) -> str:
        return self.name

    @classmethod
    def from_graphql(cls, value: str) -> "Permission":
        """Convert a permission string of the GraphQL API"""
        try:
            return cls[value.upper()]
        except (KeyError, AttributeError) as exc:
            raise DecodeError(f"Unknown permission value in GraphQL response: {value!r}") from exc


class SourceKind(Enum):
    """Category of a permission source, used as prefix of its key"""

    ORG = "org"
    TEAM = "team"
    USER = "user"


# Permission sources. Each is one reason why a collaborator has access to a repository
@dataclass(frozen=True)
class OrganizationSource:
    """Access granted by the organisation (membership or ownership)"""

    login: str


@dataclass(frozen=True)
class TeamSource:
    """Access granted by membership in a team"""

    slug: str


@dataclass(frozen=True)
class RepositorySource:
    """Access granted directly on the repository"""

    name: str


PermissionSource = OrganizationSource | TeamSource | RepositorySource


@dataclass(frozen=True)
class PermissionSourceKey:
    """Identifies a permission source across collaborators of a repository"""

    kind: SourceKind
    identity: str

    def __str__(self) -> str:
        return f"{self.kind.value}:{self.identity}"

    @classmethod
    def parse(cls, key: str) -> "PermissionSourceKey":
        """Create a key from its string representation, e.g. `team:parent/child`"""
        kind, sep, identity = key.partition(":")
        if not sep:
            raise ValueError(f"Permission source key '{key}' has no kind prefix")
        return cls(SourceKind(kind), identity)


@dataclass
class CollaboratorEdge:
    """A collaborator of a repository and all reasons of their access, in the
    order reported by GitHub"""

    login: str
    sources: list[tuple[PermissionSource, Permission]] = field(default_factory=list)


RepoPermissionMap = dict[PermissionSourceKey, Permission]


# --------------------------------------------------------------------------
# Normalisation
# --------------------------------------------------------------------------
def parse_permission_source(source: dict) -> PermissionSource:
    """Turn the `source` object of a GraphQL permission source into one of
    the permission source classes, based on its type name"""
    try:
        typename = source["__typename"]
        if typename == "Organization":
            return OrganizationSource(login=source["login"])
        if typename == "Team":
            return TeamSource(slug=source["slug"])
        if typename == "Repository":
            return RepositorySource(name=source["name"])
    except (KeyError, TypeError) as exc:
        raise DecodeError(f"Unexpected permission source in GraphQL response: {source!r}") from exc

    raise DecodeError(f"Unknown permission source type '{typename}'")


def parse_collaborator_edge(edge: dict) -> CollaboratorEdge:
    """Turn a collaborator edge of the GraphQL API into a CollaboratorEdge"""
    try:
        login: str = edge["node"]["login"]
        raw_sources: list[dict] = edge["permissionSources"] or []
        sources = [
            (
                parse_permission_source(raw["source"]),
                Permission.from_graphql(raw["permission"]),
            )
            for raw in raw_sources
        ]
    except (KeyError, TypeError) as exc:
        raise DecodeError(f"Unexpected collaborator edge in GraphQL response: {edge!r}") from exc

    return CollaboratorEdge(login=login, sources=sources)


def source_key(
    source: PermissionSource, collaborator_login: str, team_fullnames: dict[str, str]
) -> PermissionSourceKey:
    """Derive the key of a permission source.

    Direct repository grants are keyed by the collaborator, not the repository.
    """
    if isinstance(source, OrganizationSource):
        return PermissionSourceKey(SourceKind.ORG, source.login)
    if isinstance(source, TeamSource):
        if source.slug in team_fullnames:
            return PermissionSourceKey(SourceKind.TEAM, team_fullnames[source.slug])
        logging.warning(
            "Team '%s' is not known in the team hierarchy, using its slug as name", source.slug
        )
        return PermissionSourceKey(SourceKind.TEAM, source.slug)
    return PermissionSourceKey(SourceKind.USER, collaborator_login)


# --------------------------------------------------------------------------
# Aggregation
# --------------------------------------------------------------------------
def _merge_permission(
    result: RepoPermissionMap, key: PermissionSourceKey, permission: Permission, repo_name: str
) -> None:
    """Add a permission for a key to the result, reconciling it with a
    permission already recorded for the same key"""
    current = result.get(key)
    if current is None:
        result[key] = permission
        return
    if current == permission:
        return

    # Teams with ADMIN are sometimes reported with an additional WRITE
    if key.kind is SourceKind.TEAM and {current, permission} == {Permission.WRITE, Permission.ADMIN}:
        logging.debug("Resolving WRITE/ADMIN duplicate of %s on %s to ADMIN", key, repo_name)
        result[key] = Permission.ADMIN
        return

    raise AggregationConflictError(repo=repo_name, key=key, old=current, new=permission)


def aggregate_collaborator(
    result: RepoPermissionMap,
    collaborator: CollaboratorEdge,
    team_fullnames: dict[str, str],
    org_login: str,
    repo_name: str,
) -> None:
    """Merge the permission sources of one collaborator into the result"""
    org_key = PermissionSourceKey(SourceKind.ORG, org_login)
    is_org_owner = False
    skipped_keys: set[PermissionSourceKey] = set()

    for source, permission in collaborator.sources:
        key = source_key(source, collaborator.login, team_fullnames)

        # Every member of the organisation has access through the organisation
        # itself, this is never recorded
        if key == org_key:
            if permission is Permission.ADMIN:
                is_org_owner = True
            continue

        # For organisation owners, the API reports ADMIN for every other reason
        # of access as well. Drop the first of these per key
        if is_org_owner and key not in skipped_keys and permission is Permission.ADMIN:
            logging.debug(
                "Skipping %s for organisation owner %s on %s", key, collaborator.login, repo_name
            )
            skipped_keys.add(key)
            continue

        _merge_permission(result, key, permission, repo_name)


def aggregate_repo_permissions(
    collaborators: list[CollaboratorEdge],
    team_fullnames: dict[str, str],
    org_login: str,
    repo_name: str,
) -> RepoPermissionMap:
    """Collapse the permission sources of all collaborators of a repository
    into one permission per permission source key.

    The permission sources reported by GitHub contain every reason why a user
    can access a repository, including redundant ones caused by organisation
    ownership. Those are removed, while two different permissions for the same
    key raise AggregationConflictError.
    """
    result: RepoPermissionMap = {}
    for collaborator in collaborators:
        aggregate_collaborator(result, collaborator, team_fullnames, org_login, repo_name)

    return result
