# SPDX-FileCopyrightText: 2025 DB Systel GmbH
#
# SPDX-License-Identifier: Apache-2.0

"""Dataclasses and functions for the permission report"""

import json
import sys
from dataclasses import asdict, dataclass, field
from typing import TextIO

from ._permissions import RepoPermissionMap, SourceKind

BUCKETS = (SourceKind.ORG, SourceKind.TEAM, SourceKind.USER)


@dataclass
class RepoPermissions:
    """Sorted permission entries of one repository, bucketed by source kind"""

    url: str
    org: list[str] = field(default_factory=list)
    team: list[str] = field(default_factory=list)
    user: list[str] = field(default_factory=list)

    @classmethod
    def from_permission_map(cls, url: str, permissions: RepoPermissionMap) -> "RepoPermissions":
        """Bucket and sort the entries of a permission map"""
        buckets: dict[SourceKind, list[str]] = {kind: [] for kind in BUCKETS}
        for key, perm in permissions.items():
            buckets[key.kind].append(f"{key}={perm}")

        return cls(
            url=url,
            org=sorted(buckets[SourceKind.ORG]),
            team=sorted(buckets[SourceKind.TEAM]),
            user=sorted(buckets[SourceKind.USER]),
        )

    def to_row(self) -> str:
        """One tab-separated line: URL, then org, team and user entries"""
        return "\t".join([self.url, " ".join(self.org), " ".join(self.team), " ".join(self.user)])


@dataclass
class PermissionReport:
    """Collects the permissions of all repositories of an organisation and
    prints them either line by line or as JSON"""

    org: str = ""
    output: str = "text"
    repos: list[RepoPermissions] = field(default_factory=list)
    stream: TextIO | None = field(default=None, repr=False)

    def add_repo(self, url: str, permissions: RepoPermissionMap) -> RepoPermissions:
        """Add a repository. In text mode, its row is printed immediately"""
        repo = RepoPermissions.from_permission_map(url, permissions)
        self.repos.append(repo)
        if self.output == "text":
            print(repo.to_row(), file=self.stream or sys.stdout, flush=True)

        return repo

    def report_into_dict(self) -> dict:
        """Convert the report to a dict"""
        return {"org": self.org, "repos": [asdict(repo) for repo in self.repos]}

    def finish(self) -> None:
        """Print what has not been printed yet"""
        if self.output == "json":
            print(json.dumps(self.report_into_dict(), indent=2), file=self.stream or sys.stdout)
