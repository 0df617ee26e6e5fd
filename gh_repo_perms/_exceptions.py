# SPDX-FileCopyrightText: 2025 DB Systel GmbH
#
# SPDX-License-Identifier: Apache-2.0

"""Exceptions raised while collecting repository permissions. All of them are
fatal for a run."""


class RepoPermissionsError(Exception):
    """Base exception for all errors of this tool"""


class TransportError(RepoPermissionsError):
    """Network failure or unexpected HTTP status when talking to GitHub"""


class RemoteProtocolError(RepoPermissionsError):
    """The GraphQL API answered with one or more application-level errors"""

    def __init__(self, errors: list) -> None:
        self.errors = errors
        messages = [
            err.get("message", str(err)) if isinstance(err, dict) else str(err) for err in errors
        ]
        super().__init__(f"GraphQL error: {'; '.join(messages)}")


class DecodeError(RepoPermissionsError):
    """The response does not have the expected shape"""


class AggregationConflictError(RepoPermissionsError):
    """Two irreconcilable permissions have been reported for the same
    permission source on one repository"""

    def __init__(self, repo: str, key: object, old: object, new: object) -> None:
        self.repo = repo
        self.key = key
        self.old = old
        self.new = new
        super().__init__(f"mismatch for repo={repo} key={key}: {old} != {new}")


class TeamHierarchyError(RepoPermissionsError):
    """The parent relations of teams do not form a forest"""
