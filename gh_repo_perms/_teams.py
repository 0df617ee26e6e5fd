# SPDX-FileCopyrightText: 2025 DB Systel GmbH
#
# SPDX-License-Identifier: Apache-2.0

"""Teams of an organisation and their position in the team hierarchy"""

import logging
from collections.abc import Iterable
from dataclasses import dataclass

from ._exceptions import DecodeError, TeamHierarchyError


@dataclass(frozen=True)
class Team:
    """A team, identified by its slug, and the slug of its parent team if any"""

    slug: str
    parent_slug: str | None = None


def parse_team_node(node: dict) -> Team:
    """Turn a team node from the GraphQL API into a Team"""
    try:
        parent = node.get("parentTeam")
        return Team(slug=node["slug"], parent_slug=parent["slug"] if parent else None)
    except (KeyError, TypeError, AttributeError) as exc:
        raise DecodeError(f"Unexpected team node in GraphQL response: {node!r}") from exc


def resolve_team_fullnames(teams: Iterable[Team]) -> dict[str, str]:
    """Build a mapping of team slugs to their full path, e.g. `root/parent/team`.

    A parent slug that is not part of the given teams ends the walk, as if the
    team was a root team. A chain of parents leading back to a team already
    visited raises TeamHierarchyError.
    """
    team_parents: dict[str, str | None] = {}
    for team in teams:
        team_parents[team.slug] = team.parent_slug

    team_fullnames: dict[str, str] = {}
    for slug in team_parents:
        path = [slug]
        tip = slug
        while parent := team_parents.get(tip):
            if parent in path:
                raise TeamHierarchyError(
                    f"Team '{slug}' leads into a parent cycle: "
                    f"{' -> '.join(path)} -> {parent}"
                )
            path.append(parent)
            # The parent is not a team of this organisation, treat as root
            if parent not in team_parents:
                logging.debug(
                    "Parent team '%s' of '%s' is unknown, treating it as root", parent, tip
                )
                break
            tip = parent
        team_fullnames[slug] = "/".join(reversed(path))

    return team_fullnames
