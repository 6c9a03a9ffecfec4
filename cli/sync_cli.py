"""Command-line export and import against the configured GitHub repository."""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from typing import TYPE_CHECKING

from postsync.config import Settings
from postsync.database import create_engine, ensure_database_dir
from postsync.models.base import Base
from postsync.services.export_service import ExportOutcome, ExportResult, ExportService
from postsync.services.github_client import GitHubClient
from postsync.services.import_service import ImportService
from postsync.services.lock import ExportLock
from postsync.services.sync_state import load_sync_state, save_sync_state

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

    from postsync.services.github_client import ObjectStore

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="postsync-cli",
        description="Sync blog posts with a GitHub repository",
    )
    parser.add_argument("--verbose", "-v", action="store_true", help="Log progress")

    subparsers = parser.add_subparsers(dest="command")
    export_parser = subparsers.add_parser("export", help="Export posts to GitHub")
    export_parser.add_argument("--post", type=int, help="Export only this post id")

    delete_parser = subparsers.add_parser("delete", help="Remove a post's file from GitHub")
    delete_parser.add_argument("post_id", type=int)

    import_parser = subparsers.add_parser("import", help="Import a commit from GitHub")
    import_parser.add_argument("commit", help="Commit sha")
    import_parser.add_argument("--message", default="", help="Commit message, if known")

    subparsers.add_parser("status", help="Show the last sync status")
    return parser


def _print_export(result: ExportResult) -> int:
    print(f"Export: {result.outcome}")
    if result.commit_sha:
        print(f"  Commit: {result.commit_sha}")
    for post_id in result.unmatched_post_ids:
        print(f"  Warning: no sha matched for post {post_id}")
    if result.state.last_error and result.outcome == ExportOutcome.ERROR:
        print(f"  Error: {result.state.last_error}")
    return 0 if result.outcome in (ExportOutcome.COMMITTED, ExportOutcome.NO_CHANGE) else 1


async def run_command(
    args: argparse.Namespace,
    session: AsyncSession,
    store: ObjectStore,
    settings: Settings,
) -> int:
    """Run one parsed command. Returns the process exit code."""
    state = await load_sync_state(session)

    if args.command == "status":
        print("Sync Status:")
        print(f"  Status:          {state.status}")
        print(f"  Export complete: {state.export_complete}")
        print(f"  Fully exported:  {state.fully_exported}")
        print(f"  Last error:      {state.last_error or '-'}")
        return 0

    if args.command == "import":
        service = ImportService(session, store, settings)
        imported = await service.import_commit(args.commit, args.message)
        await session.commit()
        if imported is None:
            print("Already synced this commit.")
            return 0
        print(f"Imported {len(imported)} post(s).")
        for path in imported:
            print(f"  < {path}")
        if service.last_error is not None:
            print(f"Error: {service.last_error}")
            await save_sync_state(session, state.error(service.last_error))
            return 1
        await save_sync_state(session, state.imported(f"Imported {len(imported)} post(s)."))
        return 0

    if not settings.github_configured:
        print("Error: GITHUB_TOKEN and GITHUB_REPOSITORY must be set.")
        return 1

    export_service = ExportService(session, store, settings, ExportLock(settings))
    if args.command == "export":
        if args.post is None:
            result = await export_service.export_all(state)
        else:
            result = await export_service.export_post(args.post, state)
    else:
        result = await export_service.delete_post(args.post_id, state)

    if result.outcome == ExportOutcome.NOT_FOUND:
        print("Error: post not found")
        return 1
    await save_sync_state(session, result.state)
    return _print_export(result)


async def _main(args: argparse.Namespace, settings: Settings) -> int:
    logger.info("Running %s against %s", args.command, settings.github_repository or "-")
    ensure_database_dir(settings.database_url)
    engine, session_factory = create_engine(settings)
    try:
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        async with GitHubClient.from_settings(settings) as store, session_factory() as session:
            return await run_command(args, session, store, settings)
    finally:
        await engine.dispose()


def main(argv: list[str] | None = None) -> None:
    """CLI entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)
    if args.command is None:
        parser.print_help()
        sys.exit(1)

    logging.basicConfig(
        level=logging.INFO if args.verbose else logging.WARNING,
        format="%(levelname)-8s %(name)s: %(message)s",
    )
    sys.exit(asyncio.run(_main(args, Settings())))


if __name__ == "__main__":
    main()
