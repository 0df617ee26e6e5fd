# SPDX-FileCopyrightText: 2025 DB Systel GmbH
#
# SPDX-License-Identifier: Apache-2.0

"""Tests for the normalisation and aggregation of permission sources"""

import pytest

from gh_repo_perms._exceptions import AggregationConflictError, DecodeError
from gh_repo_perms._permissions import (
    CollaboratorEdge,
    OrganizationSource,
    Permission,
    PermissionSourceKey,
    RepositorySource,
    SourceKind,
    TeamSource,
    aggregate_repo_permissions,
    parse_collaborator_edge,
    source_key,
)

ORG = "ACME"
TEAMS = {"core": "engineering/core", "engineering": "engineering", "ops": "ops"}


def key(string: str) -> PermissionSourceKey:
    return PermissionSourceKey.parse(string)


def aggregate(*collaborators: CollaboratorEdge) -> dict[str, str]:
    """Aggregate and return the result with plain strings for easy comparison"""
    result = aggregate_repo_permissions(
        list(collaborators), team_fullnames=TEAMS, org_login=ORG, repo_name="widget"
    )
    return {str(k): str(v) for k, v in result.items()}


def test_permission_order():
    assert Permission.NONE < Permission.READ < Permission.WRITE < Permission.ADMIN


def test_permission_from_graphql():
    assert Permission.from_graphql("WRITE") is Permission.WRITE
    assert Permission.from_graphql("admin") is Permission.ADMIN
    with pytest.raises(DecodeError):
        Permission.from_graphql("MAINTAIN")
    with pytest.raises(DecodeError):
        Permission.from_graphql(None)  # type: ignore


def test_key_string_form_and_parse():
    team_key = PermissionSourceKey(SourceKind.TEAM, "engineering/core")
    assert str(team_key) == "team:engineering/core"
    assert PermissionSourceKey.parse("team:engineering/core") == team_key
    with pytest.raises(ValueError):
        PermissionSourceKey.parse("engineering")


def test_source_key_per_variant():
    assert str(source_key(OrganizationSource("ACME"), "alice", TEAMS)) == "org:ACME"
    assert str(source_key(TeamSource("core"), "alice", TEAMS)) == "team:engineering/core"
    # Direct grants are keyed by the collaborator, not the repository
    assert str(source_key(RepositorySource("widget"), "alice", TEAMS)) == "user:alice"


def test_source_key_unknown_team_uses_slug():
    assert str(source_key(TeamSource("new-team"), "alice", TEAMS)) == "team:new-team"


def test_parse_collaborator_edge():
    edge = {
        "node": {"login": "alice"},
        "permissionSources": [
            {"permission": "READ", "source": {"__typename": "Organization", "login": "ACME"}},
            {"permission": "WRITE", "source": {"__typename": "Team", "slug": "core"}},
            {"permission": "ADMIN", "source": {"__typename": "Repository", "name": "widget"}},
        ],
    }
    collaborator = parse_collaborator_edge(edge)
    assert collaborator.login == "alice"
    assert collaborator.sources == [
        (OrganizationSource("ACME"), Permission.READ),
        (TeamSource("core"), Permission.WRITE),
        (RepositorySource("widget"), Permission.ADMIN),
    ]


@pytest.mark.parametrize(
    "edge",
    [
        {"permissionSources": []},
        {"node": {"login": "alice"}},
        {
            "node": {"login": "alice"},
            "permissionSources": [{"permission": "READ", "source": {"__typename": "User"}}],
        },
        {
            "node": {"login": "alice"},
            "permissionSources": [{"permission": "READ", "source": {"__typename": "Team"}}],
        },
    ],
)
def test_parse_collaborator_edge_invalid(edge):
    with pytest.raises(DecodeError):
        parse_collaborator_edge(edge)


def test_parse_collaborator_edge_without_sources():
    collaborator = parse_collaborator_edge({"node": {"login": "bob"}, "permissionSources": None})
    assert not collaborator.sources


@pytest.mark.parametrize("permission", list(Permission))
def test_org_ambient_source_never_recorded(permission):
    alice = CollaboratorEdge("alice", [(OrganizationSource(ORG), permission)])
    assert not aggregate(alice)


def test_other_org_is_recorded():
    alice = CollaboratorEdge("alice", [(OrganizationSource("OTHER"), Permission.READ)])
    assert aggregate(alice) == {"org:OTHER": "READ"}


def test_owner_bypass_suppresses_admin():
    alice = CollaboratorEdge(
        "alice",
        [(OrganizationSource(ORG), Permission.ADMIN), (RepositorySource("widget"), Permission.ADMIN)],
    )
    assert not aggregate(alice)


def test_owner_bypass_only_once_per_key():
    alice = CollaboratorEdge(
        "alice",
        [
            (OrganizationSource(ORG), Permission.ADMIN),
            (RepositorySource("widget"), Permission.ADMIN),
            (RepositorySource("widget"), Permission.ADMIN),
        ],
    )
    assert aggregate(alice) == {"user:alice": "ADMIN"}


def test_owner_bypass_keeps_lower_permissions():
    alice = CollaboratorEdge(
        "alice",
        [
            (OrganizationSource(ORG), Permission.ADMIN),
            (TeamSource("core"), Permission.ADMIN),
            (TeamSource("ops"), Permission.READ),
        ],
    )
    assert aggregate(alice) == {"team:ops": "READ"}


def test_owner_bypass_needs_org_source_first():
    alice = CollaboratorEdge(
        "alice",
        [(RepositorySource("widget"), Permission.ADMIN), (OrganizationSource(ORG), Permission.ADMIN)],
    )
    assert aggregate(alice) == {"user:alice": "ADMIN"}


def test_owner_bypass_is_per_collaborator():
    alice = CollaboratorEdge(
        "alice",
        [(OrganizationSource(ORG), Permission.ADMIN), (TeamSource("core"), Permission.ADMIN)],
    )
    bob = CollaboratorEdge("bob", [(TeamSource("core"), Permission.ADMIN)])
    assert aggregate(alice, bob) == {"team:engineering/core": "ADMIN"}


def test_org_read_does_not_make_owner():
    alice = CollaboratorEdge(
        "alice",
        [(OrganizationSource(ORG), Permission.READ), (TeamSource("core"), Permission.ADMIN)],
    )
    assert aggregate(alice) == {"team:engineering/core": "ADMIN"}


def test_same_source_twice_is_idempotent():
    alice = CollaboratorEdge(
        "alice", [(TeamSource("core"), Permission.WRITE), (TeamSource("core"), Permission.WRITE)]
    )
    bob = CollaboratorEdge("bob", [(TeamSource("core"), Permission.WRITE)])
    assert aggregate(alice, bob) == {"team:engineering/core": "WRITE"}


@pytest.mark.parametrize(
    "first, second",
    [(Permission.WRITE, Permission.ADMIN), (Permission.ADMIN, Permission.WRITE)],
)
def test_team_write_admin_resolves_to_admin(first, second):
    bob = CollaboratorEdge("bob", [(TeamSource("ops"), first), (TeamSource("ops"), second)])
    assert aggregate(bob) == {"team:ops": "ADMIN"}


def test_team_write_admin_across_collaborators():
    alice = CollaboratorEdge("alice", [(TeamSource("ops"), Permission.ADMIN)])
    bob = CollaboratorEdge("bob", [(TeamSource("ops"), Permission.WRITE)])
    assert aggregate(alice, bob) == {"team:ops": "ADMIN"}


def test_user_conflict_raises():
    bob = CollaboratorEdge(
        "bob",
        [(RepositorySource("widget"), Permission.READ), (RepositorySource("widget"), Permission.WRITE)],
    )
    with pytest.raises(AggregationConflictError) as excinfo:
        aggregate(bob)

    assert excinfo.value.repo == "widget"
    assert excinfo.value.key == key("user:bob")
    assert str(excinfo.value) == "mismatch for repo=widget key=user:bob: READ != WRITE"


def test_user_write_admin_is_a_conflict():
    bob = CollaboratorEdge(
        "bob",
        [(RepositorySource("widget"), Permission.WRITE), (RepositorySource("widget"), Permission.ADMIN)],
    )
    with pytest.raises(AggregationConflictError):
        aggregate(bob)


def test_team_read_write_is_a_conflict():
    alice = CollaboratorEdge("alice", [(TeamSource("core"), Permission.READ)])
    bob = CollaboratorEdge("bob", [(TeamSource("core"), Permission.WRITE)])
    with pytest.raises(AggregationConflictError) as excinfo:
        aggregate(alice, bob)

    assert str(excinfo.value.key) == "team:engineering/core"


def test_mixed_sources():
    alice = CollaboratorEdge(
        "alice",
        [
            (OrganizationSource(ORG), Permission.READ),
            (TeamSource("core"), Permission.WRITE),
            (TeamSource("engineering"), Permission.READ),
        ],
    )
    bob = CollaboratorEdge(
        "bob",
        [
            (OrganizationSource(ORG), Permission.READ),
            (RepositorySource("widget"), Permission.ADMIN),
        ],
    )
    assert aggregate(alice, bob) == {
        "team:engineering/core": "WRITE",
        "team:engineering": "READ",
        "user:bob": "ADMIN",
    }
