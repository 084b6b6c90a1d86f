"""
Social Graph CLI

Usage:
    python -m socialgraph.cli update              # run one aggregation pass
    python -m socialgraph.cli graph               # print visualization graph JSON
    python -m socialgraph.cli add <npub> --group core
    python -m socialgraph.cli identities          # print registry document
    python -m socialgraph.cli raw                 # print snapshot document
    python -m socialgraph.cli schedule --hours 24
"""

import argparse
import asyncio
import json
import logging
import sys

from .config import GraphConfig
from .errors import SocialGraphError
from .service import build_service
from .types import Group


def parse_args(argv=None):
    parser = argparse.ArgumentParser(description="Nostr social graph aggregator")
    parser.add_argument("--env-file", default=None, help="Path to .env file")
    parser.add_argument("--verbose", "-v", action="store_true", help="Debug logging")

    sub = parser.add_subparsers(dest="command", required=True)
    sub.add_parser("update", help="Run one aggregation pass")
    sub.add_parser("graph", help="Print the visualization graph")
    sub.add_parser("identities", help="Print the known-identity registry")
    sub.add_parser("raw", help="Print the raw snapshot")

    add = sub.add_parser("add", help="Register an identity and refresh")
    add.add_argument("identity", help="npub or hex public key")
    add.add_argument("--group", choices=[g.value for g in Group], default=Group.OTHER.value)

    schedule = sub.add_parser("schedule", help="Refresh periodically")
    schedule.add_argument("--hours", type=float, default=24.0)

    return parser.parse_args(argv)


async def run(args) -> int:
    config = GraphConfig.from_env(args.env_file)
    service = build_service(config)

    if args.command == "update":
        graph = await service.force_refresh()
        print(json.dumps({
            "message": "Social graph updated",
            "timestamp": graph.generated_at,
            "nodeCount": len(graph.nodes),
            "linkCount": len(graph.links),
        }))
    elif args.command == "graph":
        graph = await service.get_graph()
        # Do not leave a background refresh dangling on exit
        if service.is_refreshing:
            graph = await service.force_refresh()
        print(json.dumps(graph.to_dict(), indent=2))
    elif args.command == "identities":
        print(json.dumps(await service.get_known_identities(), indent=2))
    elif args.command == "raw":
        print(json.dumps(await service.get_raw_snapshot(), indent=2))
    elif args.command == "add":
        graph = await service.add_known_identity(args.identity, Group(args.group))
        print(json.dumps({
            "message": "Social graph updated with new identity",
            "identity": args.identity,
            "group": args.group,
            "nodeCount": len(graph.nodes),
        }))
    elif args.command == "schedule":
        await service.run_scheduled(args.hours)

    return 0


def main(argv=None) -> int:
    args = parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )
    try:
        return asyncio.run(run(args))
    except SocialGraphError as e:
        logging.getLogger("socialgraph").error(f"{type(e).__name__}: {e}")
        return 1


if __name__ == "__main__":
    sys.exit(main())
