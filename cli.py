"""
CLI utility for managing the reading library.

Usage:
    python cli.py visit <url> [--html-file page.html]   # Track a chapter page
    python cli.py list [--status reading] [--query q]   # List library entries
    python cli.py export [--output file.json]           # Export the library
    python cli.py import <file> [--replace]             # Import an export file
    python cli.py set-status <id> <status>              # Change reading status
    python cli.py delete <id>                           # Remove an entry
    python cli.py sites                                 # List supported sites
"""
import argparse
import asyncio
import json
import logging
import sys

from adapters.base_adapter import Page
from config import settings
from library import ImportFormatError, SORT_KEYS, entry_title, export_filename
from tracker import build_tracker


async def _with_tracker(action):
    tracker = build_tracker(settings)
    try:
        return await action(tracker)
    finally:
        await tracker.close()


def _truncate(text, width):
    text = text or ""
    return text[:width - 3] + "..." if len(text) > width else text


def cmd_visit(args):
    """Track a visited page."""
    html = ""
    if args.html_file:
        with open(args.html_file, encoding="utf-8") as f:
            html = f.read()

    async def action(tracker):
        return await tracker.visit(Page(url=args.url, html=html))

    handled_by = asyncio.run(_with_tracker(action))

    if handled_by:
        print(f"Handled by {handled_by}: {args.url}")
    else:
        print(f"No site adapter for {args.url}")


def cmd_list(args):
    """List library entries."""
    async def action(tracker):
        return await tracker.library.list_entries(query=args.query, status=args.status, sort=args.sort)

    items, total, counts = asyncio.run(_with_tracker(action))
    items = items[:args.limit]

    print(f"\n{'ID':<30} {'Title':<35} {'Chapter':<10} {'Status':<10} {'Updated':<20}")
    print("-" * 109)

    for key, entry in items:
        title = _truncate(entry_title(entry), 35)
        chapter = _truncate(str(entry.get("chapter_label") or "-"), 10)
        updated = str(entry.get("updated_at") or "")[:19].replace("T", " ")
        print(f"{_truncate(key, 30):<30} {title:<35} {chapter:<10} {entry.get('status', ''):<10} {updated:<20}")

    summary = ", ".join(f"{status}: {count}" for status, count in counts.items() if status != "all")
    print(f"\nShowing {len(items)} of {total} entries ({summary})")


def cmd_export(args):
    """Export the library to a JSON file."""
    async def action(tracker):
        return await tracker.library.export_library()

    payload = asyncio.run(_with_tracker(action))
    output = args.output or export_filename()

    with open(output, "w", encoding="utf-8") as f:
        json.dump(payload, f, ensure_ascii=False, indent=2)

    print(f"Exported {len(payload['data'])} entries to {output}")


def cmd_import(args):
    """Import an export file or raw library map."""
    try:
        with open(args.file, encoding="utf-8") as f:
            payload = json.load(f)
    except (OSError, json.JSONDecodeError) as e:
        print(f"Error: could not read {args.file}: {e}")
        sys.exit(1)

    mode = "replace" if args.replace else "merge"

    async def action(tracker):
        return await tracker.library.import_library(payload, mode=mode)

    try:
        result = asyncio.run(_with_tracker(action))
    except ImportFormatError as e:
        print(f"Error: {e}")
        sys.exit(1)

    print(f"✓ Import complete ({mode}); library holds {len(result)} entries")


def cmd_set_status(args):
    """Change the reading status of an entry."""
    async def action(tracker):
        return await tracker.library.set_status(args.id, args.status)

    try:
        entry = asyncio.run(_with_tracker(action))
    except KeyError:
        print(f"Error: no entry {args.id}")
        sys.exit(1)

    print(f"{args.id} -> {entry['status']}")


def cmd_delete(args):
    """Remove an entry from the library."""
    async def action(tracker):
        return await tracker.library.delete_entry(args.id)

    try:
        asyncio.run(_with_tracker(action))
    except KeyError:
        print(f"Error: no entry {args.id}")
        sys.exit(1)

    print(f"Deleted {args.id}")


def cmd_sites(args):
    """List supported sites."""
    async def action(tracker):
        return tracker.registry.ids()

    for site_id in asyncio.run(_with_tracker(action)):
        print(site_id)


def main():
    """Main CLI entry point."""
    logging.basicConfig(
        level=getattr(logging, settings.log_level.upper(), logging.INFO),
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )

    parser = argparse.ArgumentParser(
        description="Light Novel Tracker CLI"
    )

    subparsers = parser.add_subparsers(dest="command", help="Command to run")

    # Visit command
    visit_parser = subparsers.add_parser("visit", help="Track a visited chapter page")
    visit_parser.add_argument("url", help="Chapter page URL")
    visit_parser.add_argument(
        "--html-file",
        help="Saved page markup to read fields from"
    )
    visit_parser.set_defaults(func=cmd_visit)

    # List command
    list_parser = subparsers.add_parser("list", help="List library entries")
    list_parser.add_argument("--status", help="Only show entries with this status")
    list_parser.add_argument("--query", help="Search text")
    list_parser.add_argument(
        "--sort",
        choices=SORT_KEYS,
        default="updated_desc",
        help="Sort order"
    )
    list_parser.add_argument(
        "--limit",
        type=int,
        default=50,
        help="Maximum number of entries to show"
    )
    list_parser.set_defaults(func=cmd_list)

    # Export command
    export_parser = subparsers.add_parser("export", help="Export the library")
    export_parser.add_argument("--output", help="Output file (default: dated file name)")
    export_parser.set_defaults(func=cmd_export)

    # Import command
    import_parser = subparsers.add_parser("import", help="Import an export file")
    import_parser.add_argument("file", help="JSON file to import")
    import_parser.add_argument(
        "--replace",
        action="store_true",
        help="Replace the library instead of merging"
    )
    import_parser.set_defaults(func=cmd_import)

    # Set status command
    status_parser = subparsers.add_parser("set-status", help="Change an entry's reading status")
    status_parser.add_argument("id", help="Entry id (source:novel_key)")
    status_parser.add_argument("status", help="reading, on-hold, dropped or finished")
    status_parser.set_defaults(func=cmd_set_status)

    # Delete command
    delete_parser = subparsers.add_parser("delete", help="Remove an entry")
    delete_parser.add_argument("id", help="Entry id (source:novel_key)")
    delete_parser.set_defaults(func=cmd_delete)

    # Sites command
    sites_parser = subparsers.add_parser("sites", help="List supported sites")
    sites_parser.set_defaults(func=cmd_sites)

    # Parse arguments
    args = parser.parse_args()

    if not args.command:
        parser.print_help()
        sys.exit(1)

    # Run command
    args.func(args)


if __name__ == "__main__":
    main()
