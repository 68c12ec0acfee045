"""List registered collaborator factories."""

import argparse

from recall.cli.commands.helpers import print_json
from recall.discovery import discover_factories
from recall.protocols import ENTRY_POINT_GROUP_COLLABORATORS


def cmd_discover(args: argparse.Namespace) -> int:
    factories = discover_factories()
    if args.json:
        print_json([{"name": f.name, "qualname": f.qualname, "dist": f.dist_name} for f in factories])
        return 0

    if not factories:
        print(f"No collaborator factories registered under '{ENTRY_POINT_GROUP_COLLABORATORS}'.")
        print("Pass --collaborators module:attr to `recall interactive` instead.")
        return 0

    print(f"Collaborator factories ({len(factories)}):")
    for f in factories:
        dist = f" ({f.dist_name} {f.dist_version})" if f.dist_name else ""
        print(f"  {f.name}: {f.qualname}{dist}")
    return 0
