"""
Command-line entry point.

Wraps the most common connector operations for use from a shell:
listing authorized orgs, describing metadata types, refreshing the special
types of a project and loading the org's user permissions.
"""

import argparse
import asyncio
import json
import logging
import sys
from typing import Any, List, Optional

from sfconnector.connector import SFConnector
from sfconnector.engine.errors import ConnectorError
from sfconnector.metadata.compressor import SortOrder
from sfconnector.shared.logging.config import setup_logging
from sfconnector.shared.settings import load_settings


# ============================================================================
# Logging configuration
# ============================================================================
LOG_FORMAT = (
    "%(asctime)s | %(levelname)-8s | %(name)-35s | %(message)s"
)


def _configure_logging(level: str, log_file: Optional[str] = None) -> None:
    numeric_level = getattr(logging, level.upper(), logging.INFO)
    logging.basicConfig(
        level=numeric_level,
        format=LOG_FORMAT,
        datefmt="%Y-%m-%d %H:%M:%S",
        handlers=[logging.StreamHandler(sys.stderr)],
        force=True,
    )
    logging.getLogger("asyncio").setLevel(logging.WARNING)

    if log_file:
        # JSON lines for the connector's own loggers
        setup_logging(numeric_level, log_file, logger_name="sfconnector", console=False)


def _print_progress(stage, increment, percentage, type_name, object_name, item_name, data) -> None:
    target = ".".join(name for name in (type_name, object_name, item_name) if name)
    print(f"[{percentage:6.2f}%] {stage.value} {target}".rstrip(), file=sys.stderr)


def _to_json(value: Any) -> Any:
    if hasattr(value, "model_dump"):
        return value.model_dump(by_alias=True, exclude_none=True)
    if isinstance(value, dict):
        return {key: _to_json(item) for key, item in value.items()}
    if isinstance(value, list):
        return [_to_json(item) for item in value]
    return value


def _build_connector(args: argparse.Namespace) -> SFConnector:
    connector = SFConnector(
        username_or_alias=args.org,
        api_version=args.api_version,
        project_folder=args.project,
    )
    if args.multi_thread:
        connector.set_multi_thread()
    if args.progress:
        connector.on_progress(_print_progress)
    return connector


async def _run_command(args: argparse.Namespace) -> Any:
    connector = _build_connector(args)
    try:
        return await _dispatch(connector, args)
    finally:
        connector.close()


async def _dispatch(connector: SFConnector, args: argparse.Namespace) -> Any:
    if args.command == "orgs":
        return await connector.list_auth_orgs()
    if args.command == "describe":
        return await connector.describe_metadata_types(args.types, download_all=not args.own_namespace)
    if args.command == "special-types":
        if args.recipe == "local":
            return await connector.retrieve_local_special_types(
                args.tmp, args.types, compress=args.compress, sort_order=args.sort_order
            )
        if args.recipe == "mixed":
            return await connector.retrieve_mixed_special_types(
                args.tmp, args.types, compress=args.compress, sort_order=args.sort_order
            )
        return await connector.retrieve_org_special_types(
            args.tmp, args.types, compress=args.compress, sort_order=args.sort_order
        )
    if args.command == "permissions":
        return await connector.load_user_permissions(args.tmp)
    raise ValueError(f"Unknown command '{args.command}'")


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="sfconnector", description="Salesforce org connector")
    parser.add_argument("--org", help="Username or alias of the org")
    parser.add_argument("--project", help="Project folder (default: current folder)", default=".")
    parser.add_argument("--api-version", help="API version for every command")
    parser.add_argument("--multi-thread", action="store_true", help="Describe in parallel batches")
    parser.add_argument("--progress", action="store_true", help="Print progress to stderr")
    parser.add_argument("--log-level", help="Log level (default: SF_LOG_LEVEL or INFO)")
    parser.add_argument("--log-file", help="Also write JSON log lines to this file")
    subparsers = parser.add_subparsers(dest="command")

    subparsers.add_parser("orgs", help="List authorized orgs")

    describe_parser = subparsers.add_parser("describe", help="Describe metadata types in the org")
    describe_parser.add_argument("types", nargs="+", help="Metadata type names")
    describe_parser.add_argument("--own-namespace", action="store_true",
                                 help="Only members of the org's namespace")

    special_parser = subparsers.add_parser("special-types", help="Refresh the project's special types")
    special_parser.add_argument("recipe", choices=["local", "mixed", "org"], help="Where to take the types from")
    special_parser.add_argument("tmp", help="Temporary folder for the scratch project")
    special_parser.add_argument("--types", help="Metadata JSON file with the selection")
    special_parser.add_argument("--compress", action="store_true", help="Canonicalize the copied files")
    special_parser.add_argument("--sort-order", choices=[order.value for order in SortOrder],
                                default=SortOrder.SIMPLE_FIRST.value, help="Compress sort order")

    permissions_parser = subparsers.add_parser("permissions", help="List the org's user permissions")
    permissions_parser.add_argument("tmp", help="Temporary folder for the scratch project")
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(argv)
    if not args.command:
        parser.print_help()
        return 1

    _configure_logging(args.log_level or load_settings().log_level, args.log_file)

    try:
        result = asyncio.run(_run_command(args))
    except ConnectorError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    print(json.dumps(_to_json(result), indent=2, default=str))
    return 0


if __name__ == "__main__":
    sys.exit(main())
