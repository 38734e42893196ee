#!/usr/bin/env python3
"""CLI entry point for the Transifex document sync system."""

import argparse
import json
import sys
from pathlib import Path

import yaml
from rich.console import Console
from rich.table import Table

from .core.orchestrator import OperationResult
from .core.service import SyncService
from .logging_config import setup_logging
from .models.config import FolderMapping

console = Console()


def get_service(args: argparse.Namespace) -> SyncService:
    """Build the service for the selected home directory."""
    home = Path(args.home).expanduser() if args.home else None
    return SyncService.from_home(home)


def _print_result(result: OperationResult) -> int:
    if result.success:
        console.print(f"[green]{result.message}")
        return 0
    console.print(f"[red]{result.message}")
    return 1


def cmd_verify_auth(args: argparse.Namespace) -> int:
    """Verify API authentication."""
    console.print("Verifying Transifex API token...", style="blue")
    return _print_result(get_service(args).test_connection(args.token))


def cmd_check(args: argparse.Namespace) -> int:
    """Run one change check."""
    service = get_service(args)
    changes = service.run_scheduled_check()
    if changes is None:
        console.print("[red]Check failed, see the activity log")
        return 1

    console.print(
        f"\n[bold]Summary:[/bold] {len(changes.new_files)} new, "
        f"{len(changes.updated_files)} updated, {len(changes.failed_folders)} folders failed"
    )
    return 0 if not changes.failed_folders else 1


def cmd_watch(args: argparse.Namespace) -> int:
    """Run change checks on the configured interval until interrupted."""
    service = get_service(args)
    try:
        service.watch(args.interval)
    except KeyboardInterrupt:
        service.stop()
        console.print("[yellow]Stopped")
    return 0


def cmd_serve(args: argparse.Namespace) -> int:
    """Serve webhook deliveries."""
    from .server import serve

    serve(get_service(args), host=args.host, port=args.port, path=args.path)
    return 0


def cmd_status(args: argparse.Namespace) -> int:
    """Show configured folders and file mappings."""
    service = get_service(args)
    config = service.store.read()

    console.print("\n[bold]Configured Folders:[/bold]")
    if config.folders:
        for f in config.folders:
            triggers = ", ".join(sorted(t.value for t in f.triggers))
            console.print(f"  [blue]{f.name}[/blue] ({f.id}) -> {f.project_id} [dim]on {triggers}[/dim]")
    else:
        console.print("  [dim]None[/dim]")

    counts = service.get_status_counts()
    console.print(
        f"\n[bold]Files:[/bold] {counts['total']} total, {counts['mapped']} mapped, "
        f"{counts['pending']} pending, {counts['orphaned']} orphaned"
    )

    if config.file_mappings:
        table = Table()
        table.add_column("File ID")
        table.add_column("Name")
        table.add_column("Folder")
        table.add_column("Resource")
        table.add_column("Last Modified")

        for m in config.file_mappings:
            if config.is_orphaned(m):
                resource = "[red]orphaned"
            else:
                resource = m.resource_id or "[yellow]pending"
            table.add_row(m.file_id, m.file_name, m.folder_id, resource, m.last_modified[:19])

        console.print(table)
    else:
        console.print("[dim]No files tracked yet. Run 'check' to scan folders.[/dim]")

    return 0


def cmd_upload(args: argparse.Namespace) -> int:
    """Upload one document."""
    console.print(f"Uploading {args.file_id}...", style="blue")
    return _print_result(get_service(args).trigger_upload(args.file_id, args.folder))


def cmd_download(args: argparse.Namespace) -> int:
    """Download one translation."""
    console.print(f"Downloading {args.resource_id} ({args.language})...", style="blue")
    return _print_result(get_service(args).trigger_download(args.resource_id, args.language))


def cmd_map(args: argparse.Namespace) -> int:
    """Map a pending file to a resource."""
    return _print_result(get_service(args).map_resource(args.file_id, args.resource_id, args.folder))


def cmd_rescan(args: argparse.Namespace) -> int:
    """Rescan one folder."""
    return _print_result(get_service(args).rescan_folder(args.folder_id))


def cmd_languages(args: argparse.Namespace) -> int:
    """List a folder's project languages."""
    return _print_result(get_service(args).list_languages(args.folder_id))


def cmd_folder(args: argparse.Namespace) -> int:
    """Manage folder mappings."""
    service = get_service(args)

    if args.folder_command == "add":
        try:
            folder = FolderMapping(
                id=args.id,
                name=args.name,
                source_location=args.source,
                translations_location=args.translations,
                organization_slug=args.organization,
                project_slug=args.project,
                formats=set(args.formats.split(",")),
                triggers=set(args.triggers.split(",")),
            )
        except ValueError as e:
            console.print(f"[red]Invalid folder mapping: {e}")
            return 1
        return _print_result(service.add_folder(folder))

    elif args.folder_command == "remove":
        return _print_result(service.remove_folder(args.id))

    elif args.folder_command == "list":
        folders = service.store.read().folders
        if not folders:
            console.print("[yellow]No folder mappings configured")
            return 0

        table = Table(title="Folder Mappings")
        table.add_column("ID", style="cyan")
        table.add_column("Name", style="blue")
        table.add_column("Project")
        table.add_column("Formats")
        table.add_column("Triggers", style="yellow")

        for f in folders:
            table.add_row(
                f.id,
                f.name,
                f.project_id,
                ", ".join(sorted(x.value for x in f.formats)),
                ", ".join(sorted(x.value for x in f.triggers)),
            )
        console.print(table)
        return 0

    return 1


def cmd_config(args: argparse.Namespace) -> int:
    """Show, export or import configuration."""
    service = get_service(args)

    if args.config_command == "show":
        console.print_json(json.dumps(service.get_config()))
        return 0

    elif args.config_command == "export":
        with open(args.file, "w", encoding="utf-8") as f:
            yaml.safe_dump(service.get_config(), f, default_flow_style=False, sort_keys=False)
        console.print(f"[green]Configuration written to {args.file}")
        return 0

    elif args.config_command == "import":
        try:
            with open(args.file, encoding="utf-8") as f:
                data = yaml.safe_load(f) or {}
        except (OSError, yaml.YAMLError) as e:
            console.print(f"[red]Could not read {args.file}: {e}")
            return 1
        if not isinstance(data, dict):
            console.print(f"[red]{args.file} does not contain a mapping")
            return 1
        return _print_result(service.save_config(data))

    return 1


def cmd_log(args: argparse.Namespace) -> int:
    """Show or clear the activity log."""
    service = get_service(args)

    if args.clear:
        return _print_result(service.clear_activity_log())

    entries = service.activity.entries()[: args.limit]
    if not entries:
        console.print("[dim]Activity log is empty[/dim]")
        return 0
    for entry in entries:
        console.print(entry, markup=False)
    return 0


def main() -> int:
    """Main CLI entry point."""
    parser = argparse.ArgumentParser(
        prog="txsync",
        description="Sync workspace documents with Transifex resources",
    )
    parser.add_argument("--home", help="Directory holding the store file (default: ~/.txsync)")
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    subparsers = parser.add_subparsers(dest="command", help="Command to run")

    # verify-auth command
    verify_parser = subparsers.add_parser("verify-auth", help="Verify API authentication")
    verify_parser.add_argument("--token", help="Token to test instead of the stored one")

    # check / watch commands
    subparsers.add_parser("check", help="Scan folders once and upload changed documents")
    watch_parser = subparsers.add_parser("watch", help="Scan folders on an interval")
    watch_parser.add_argument("--interval", type=int, help="Minutes between checks (default: from settings)")

    # serve command
    serve_parser = subparsers.add_parser("serve", help="Receive webhooks over HTTP")
    serve_parser.add_argument("--host", default="0.0.0.0", help="Bind address")
    serve_parser.add_argument("--port", type=int, default=8080, help="Port (default: 8080)")
    serve_parser.add_argument("--path", default="/webhook", help="Webhook path (default: /webhook)")

    # status command
    subparsers.add_parser("status", help="Show folders and file mappings")

    # manual operations
    upload_parser = subparsers.add_parser("upload", help="Upload a mapped document now")
    upload_parser.add_argument("file_id", help="Workspace document ID")
    upload_parser.add_argument("--folder", help="Folder mapping ID, when the document is in several")

    download_parser = subparsers.add_parser("download", help="Download a translation now")
    download_parser.add_argument("resource_id", help="Resource id (o:org:p:project:r:slug)")
    download_parser.add_argument("language", help="Language code (e.g., es)")

    map_parser = subparsers.add_parser("map", help="Map a pending document to a resource")
    map_parser.add_argument("file_id", help="Workspace document ID")
    map_parser.add_argument("resource_id", help="Resource slug or full resource id")
    map_parser.add_argument("--folder", help="Folder mapping ID, when the document is in several")

    rescan_parser = subparsers.add_parser("rescan", help="Rescan one folder mapping")
    rescan_parser.add_argument("folder_id", help="Folder mapping ID")

    languages_parser = subparsers.add_parser("languages", help="List a folder's project languages")
    languages_parser.add_argument("folder_id", help="Folder mapping ID")

    # folder commands
    folder_parser = subparsers.add_parser("folder", help="Manage folder mappings")
    folder_subparsers = folder_parser.add_subparsers(dest="folder_command")

    folder_add = folder_subparsers.add_parser("add", help="Add or replace a folder mapping")
    folder_add.add_argument("id", help="Folder mapping ID")
    folder_add.add_argument("name", help="Human-readable name")
    folder_add.add_argument("--source", required=True, help="Workspace folder ID to scan")
    folder_add.add_argument("--translations", required=True, help="Workspace folder ID for translations")
    folder_add.add_argument("--organization", required=True, help="Transifex organization slug")
    folder_add.add_argument("--project", required=True, help="Transifex project slug")
    folder_add.add_argument("--formats", default="docx", help="Comma-separated: docx,xlsx")
    folder_add.add_argument(
        "--triggers",
        default="translated",
        help="Comma-separated: translated,reviewed,proofread,updated",
    )

    folder_remove = folder_subparsers.add_parser("remove", help="Remove a folder mapping")
    folder_remove.add_argument("id", help="Folder mapping ID")

    folder_subparsers.add_parser("list", help="List folder mappings")

    # config commands
    config_parser = subparsers.add_parser("config", help="Show, export or import configuration")
    config_subparsers = config_parser.add_subparsers(dest="config_command")
    config_subparsers.add_parser("show", help="Print configuration (secrets masked)")
    config_export = config_subparsers.add_parser("export", help="Write configuration to YAML")
    config_export.add_argument("file", help="Output YAML file")
    config_import = config_subparsers.add_parser("import", help="Save configuration from YAML")
    config_import.add_argument("file", help="Input YAML file")

    # log command
    log_parser = subparsers.add_parser("log", help="Show the activity log")
    log_parser.add_argument("--limit", type=int, default=20, help="Entries to show (default: 20)")
    log_parser.add_argument("--clear", action="store_true", help="Clear the log")

    args = parser.parse_args()
    setup_logging(verbose=args.verbose, console=console)

    if args.command == "verify-auth":
        return cmd_verify_auth(args)
    elif args.command == "check":
        return cmd_check(args)
    elif args.command == "watch":
        return cmd_watch(args)
    elif args.command == "serve":
        return cmd_serve(args)
    elif args.command == "status":
        return cmd_status(args)
    elif args.command == "upload":
        return cmd_upload(args)
    elif args.command == "download":
        return cmd_download(args)
    elif args.command == "map":
        return cmd_map(args)
    elif args.command == "rescan":
        return cmd_rescan(args)
    elif args.command == "languages":
        return cmd_languages(args)
    elif args.command == "folder":
        if args.folder_command:
            return cmd_folder(args)
        else:
            folder_parser.print_help()
            return 1
    elif args.command == "config":
        if args.config_command:
            return cmd_config(args)
        else:
            config_parser.print_help()
            return 1
    elif args.command == "log":
        return cmd_log(args)
    else:
        parser.print_help()
        return 1


if __name__ == "__main__":
    sys.exit(main())
