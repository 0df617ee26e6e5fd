# SPDX-FileCopyrightText: 2025 DB Systel GmbH
#
# SPDX-License-Identifier: Apache-2.0

"""Report the effective permissions on all repositories of a GitHub
Organization, granted via organisation, teams, and individual access"""

import argparse
import logging
import sys

from . import __version__
from ._config import parse_config_files
from ._exceptions import RepoPermissionsError
from ._gh_org import GHorg
from ._helpers import configure_logger, log_progress
from ._report import PermissionReport

# Main parser with root-level flags
parser = argparse.ArgumentParser(
    description=__doc__, formatter_class=argparse.ArgumentDefaultsHelpFormatter
)
parser.add_argument(
    "--version", action="version", version="GitHub Repository Permissions " + __version__
)

# Initiate first-level subcommands
subparsers = parser.add_subparsers(dest="command", help="Available commands", required=True)

# Common flags, usable for all effective subcommands
common_flags = argparse.ArgumentParser(add_help=False)  # No automatic help to avoid duplication
common_flags.add_argument("-v", "--verbose", action="store_true", help="Get INFO logging output")
common_flags.add_argument("-vv", "--debug", action="store_true", help="Get DEBUG logging output")
common_flags.add_argument(
    "-c",
    "--config",
    help="Path to the directory in which the configuration of an GitHub organisation is located",
)
common_flags.add_argument(
    "--org",
    help="Name of the GitHub organisation. Overrides the name from the configuration",
)

# Report command
parser_report = subparsers.add_parser(
    "report",
    help="Report the permissions of all non-archived repositories",
    parents=[common_flags],
)
parser_report.add_argument(
    "-o",
    "--output",
    help="Output format for report",
    choices=["json", "text"],
    default="text",
)
parser_report.add_argument(
    "-w",
    "--workers",
    type=int,
    help="Number of repositories processed in parallel. Defaults to the configuration, or 1",
)

# Teams command
parser_teams = subparsers.add_parser(
    "teams",
    help="List all teams with their full name including parent teams",
    parents=[common_flags],
)


def _prepare_org(args: argparse.Namespace) -> tuple[GHorg, dict]:
    """Read configuration, login to GitHub and return the organisation and the
    app configuration"""
    cfg_org: dict = {}
    cfg_app: dict = {}
    if args.config:
        cfg_org, cfg_app = parse_config_files(args.config)

    orgname = args.org or cfg_org.get("org_name", "")
    if not orgname:
        logging.critical(
            "No GitHub organisation name configured in organisation settings or given via --org. "
            "Cannot continue"
        )
        sys.exit(1)

    org = GHorg()
    # Login to GitHub with token, get GitHub organisation
    org.login(
        orgname=orgname,
        token=cfg_app.get("github_token", ""),
        app_id=cfg_app.get("github_app_id", ""),
        app_private_key=cfg_app.get("github_app_private_key", ""),
    )
    # Get current rate limit
    org.ratelimit()

    return org, cfg_app


def run_report(org: GHorg, output: str, workers: int) -> None:
    """Collect and print the permissions of all repositories"""
    log_progress("Resolving team hierarchy...")
    org.get_team_fullnames()
    log_progress("Listing repositories...")
    repos = org.get_repos()

    report = PermissionReport(org=org.org_login, output=output)
    try:
        for num, (repo, permissions) in enumerate(
            org.iter_repo_permissions(repos, workers=workers), start=1
        ):
            log_progress(f"Collected permissions of {num}/{len(repos)} repositories...")
            report.add_repo(repo.url, permissions)
    except RepoPermissionsError:
        log_progress("")  # clear progress
        # Repositories are reported in order, so the failing one follows the last reported
        logging.critical("Collecting permissions of %s failed", repos[len(report.repos)].url)
        raise
    log_progress("")  # clear progress

    report.finish()


def run_teams(org: GHorg) -> None:
    """Print all teams with their full name, sorted by full name"""
    log_progress("Resolving team hierarchy...")
    team_fullnames = org.get_team_fullnames()
    log_progress("")  # clear progress
    for slug, fullname in sorted(team_fullnames.items(), key=lambda item: item[1]):
        print(f"{slug}\t{fullname}")


def main():
    """Main function"""

    # Process arguments
    args = parser.parse_args()

    configure_logger(verbose=args.verbose, debug=args.debug)

    log_progress("Preparing...")
    org, cfg_app = _prepare_org(args)

    try:
        if args.command == "report":
            workers = args.workers or cfg_app.get("workers", 1)
            if workers > 1:
                logging.info("Processing up to %s repositories in parallel", workers)
            run_report(org, output=args.output, workers=workers)

        elif args.command == "teams":
            run_teams(org)

    except RepoPermissionsError as exc:
        log_progress("")  # clear progress
        logging.critical("%s", exc)
        sys.exit(1)

    logging.debug("Final dataclass:\n%s", org.pretty_print_dataclass())
    org.ratelimit()
