"""Command line entry point for the Bitbucket Cloud client.

Prints the result of a single API call as JSON lines, which makes it handy
for checking credentials, proxy settings and rate limit behaviour from a
build agent.
"""

import argparse
import dataclasses
import json
import logging
import sys
from enum import Enum
from typing import Any, List, Optional

from dotenv import load_dotenv

from .api import BitbucketCloudClient, BitbucketAPIError, SharedResources
from .api.models import UserRoleInRepository
from .config import load_config

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_API_ERROR = 1
EXIT_ABSENT = 2


def _to_json(value: Any) -> str:
    def default(obj):
        if isinstance(obj, Enum):
            return obj.value
        if dataclasses.is_dataclass(obj):
            return dataclasses.asdict(obj)
        return str(obj)
    
    if dataclasses.is_dataclass(value):
        value = dataclasses.asdict(value)
    return json.dumps(value, default=default)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Query the Bitbucket Cloud API with the settings a CI host would use"
    )
    parser.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        default="WARNING",
        help="Logging level (default: WARNING)"
    )
    parser.add_argument("owner", help="Repository owner (user or team)")
    
    subparsers = parser.add_subparsers(dest="command", required=True)
    
    branches = subparsers.add_parser("branches", help="List active branches")
    branches.add_argument("repository")
    branches.add_argument("--name", action="append", default=None,
                          help="Only list branches with this name (repeatable)")
    
    pulls = subparsers.add_parser("pull-requests", help="List open pull requests")
    pulls.add_argument("repository")
    
    repositories = subparsers.add_parser("repositories", help="List the owner's repositories")
    repositories.add_argument("--role", choices=[r.value for r in UserRoleInRepository],
                              default=None, help="Only list repositories with this role")
    
    default_branch = subparsers.add_parser("default-branch", help="Show the main branch")
    default_branch.add_argument("repository")
    
    resolve = subparsers.add_parser("resolve-commit", help="Resolve a commit hash")
    resolve.add_argument("repository")
    resolve.add_argument("hash")
    
    return parser


def run(args: argparse.Namespace, client: BitbucketCloudClient) -> int:
    """Execute one command and print its result."""
    results: List[Any]
    if args.command == "branches":
        results = client.get_branches(names=args.name)
    elif args.command == "pull-requests":
        results = client.get_pull_requests()
    elif args.command == "repositories":
        role = UserRoleInRepository(args.role) if args.role else None
        results = client.get_repositories(role)
    else:
        if args.command == "default-branch":
            lookup = client.get_default_branch()
        else:
            lookup = client.resolve_commit(args.hash)
        if not lookup.is_present:
            print(lookup.reason, file=sys.stderr)
            return EXIT_ABSENT
        results = [lookup.value]
    
    for item in results:
        print(_to_json(item))
    return EXIT_OK


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point."""
    load_dotenv()
    args = build_parser().parse_args(argv)
    
    logging.basicConfig(
        level=getattr(logging, args.log_level),
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )
    
    config = load_config()
    with SharedResources.from_config(config) as resources:
        with BitbucketCloudClient(args.owner, getattr(args, "repository", None), resources,
                                  config.bitbucket, config.proxy) as client:
            try:
                return run(args, client)
            except BitbucketAPIError as e:
                logger.error(f"Bitbucket API call failed: {e}")
                return EXIT_API_ERROR


if __name__ == "__main__":
    sys.exit(main())
