"""Command line interface for Collectory."""

from __future__ import annotations

import difflib
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

import click
import yaml
from rich.console import Console
from rich.markup import escape
from rich.syntax import Syntax
from rich.table import Table

from collectory.catalog import CollectionStore, get_collection, get_item, items_in_collection
from collectory.classification import ImageClassifier
from collectory.config import (
    CollectoryConfig,
    ConfigError,
    ConfigManager,
    flatten_for_env,
    resolve_with_precedence,
)
from collectory.logs import configure_logging
from collectory.scan import ScanError, ScanState, ScanWorkflow, StagedScan
from collectory.state import LocalStorage, StateError, StorageRepository
from collectory.state.models import AppData

console = Console()

_STATE_MESSAGES = {
    ScanState.UPLOADING: "[cyan]Reading photo...[/cyan]",
    ScanState.ANALYZING: "[cyan]Analyzing with AI...[/cyan]",
}


def _handle_cli_error(
    message: str,
    *,
    code: str,
    json_output: bool,
    original: Exception | None = None,
) -> None:
    """Emit a standardized error and terminate the command.

    Args:
        message: Human-readable error message.
        code: Machine-readable error identifier used in JSON mode.
        json_output: Indicates whether JSON mode is active.
        original: Original exception for chaining when not using JSON.

    Raises:
        SystemExit: When emitting JSON output to terminate the command.
        click.ClickException: For non-JSON flows to surface the error.
    """
    if json_output:
        console.print_json(data={"error": {"code": code, "message": message}})
        raise SystemExit(1)
    raise click.ClickException(message) from original


def _emit(ctx: click.Context, message: Any) -> None:
    """Print ``message`` unless quiet mode is active."""
    if not ctx.obj.get("quiet"):
        console.print(message)


def _load_config(overrides: dict[str, Any] | None = None) -> CollectoryConfig:
    try:
        return ConfigManager().load(cli_overrides=overrides)
    except ConfigError as exc:
        raise click.ClickException(str(exc)) from exc


def _open_store(ctx: click.Context) -> CollectionStore:
    """Return the session's collection store, creating it on first use."""
    store = ctx.obj.get("store")
    if store is not None:
        return store

    config: CollectoryConfig = ctx.obj["config"]
    directory = Path(config.storage.directory).expanduser()
    try:
        configure_logging(config.logging, directory)
    except OSError as exc:
        raise click.ClickException(f"Unable to prepare data directory {directory}: {exc}") from exc
    repository = StorageRepository(LocalStorage(directory), key=config.storage.key)
    store = CollectionStore(repository, orphan_policy=config.storage.orphan_policy)
    ctx.obj["store"] = store
    return store


def _persist(action, *args: Any, **kwargs: Any) -> Any:
    """Run a store mutation, reporting storage failures as CLI errors."""
    try:
        return action(*args, **kwargs)
    except StateError as exc:
        raise click.ClickException(str(exc)) from exc


def _build_classifier(config: CollectoryConfig) -> ImageClassifier:
    try:
        return ImageClassifier(config.llm)
    except RuntimeError as exc:
        raise click.ClickException(str(exc)) from exc


def _format_millis(value: int) -> str:
    return datetime.fromtimestamp(value / 1000, tz=timezone.utc).strftime("%Y-%m-%d %H:%M")


def _collections_table(data: AppData, *, highlight: str | None = None) -> Table:
    table = Table(title="Collections")
    table.add_column("ID", style="dim")
    table.add_column("Name")
    table.add_column("Items", justify="right")
    table.add_column("Description")
    for collection in data.collections:
        name = escape(collection.name)
        if collection.id == highlight:
            name = f"[bold blue]{name} (suggested)[/bold blue]"
        table.add_row(
            collection.id,
            name,
            str(len(items_in_collection(data, collection.id))),
            escape(collection.description or ""),
        )
    return table


def _render_staged(ctx: click.Context, staged: StagedScan, data: AppData) -> None:
    result = staged.result
    if result.is_owned:
        _emit(ctx, "[yellow]Already in your collection.[/yellow]")
        matched = get_item(data, result.matched_item_id) if result.matched_item_id else None
        if matched is not None:
            _emit(ctx, f"  Matches [bold]{escape(matched.name)}[/bold] ({matched.id})")
    else:
        _emit(ctx, "[green]New find![/green]")
    _emit(ctx, f"[bold]{escape(result.item_name)}[/bold]")
    _emit(ctx, f'  "{escape(result.item_description)}"')


@click.group(context_settings={"help_option_names": ["-h", "--help"]})
@click.version_option(package_name="collectory")
@click.option("-q", "--quiet", is_flag=True, help="Suppress non-error output.")
@click.option("--model", type=str, help="Vision model to use for this run (overrides llm.model).")
@click.option(
    "--data-dir",
    type=click.Path(file_okay=False, path_type=Path),
    help="Data directory for this run (overrides storage.directory).",
)
@click.pass_context
def cli(ctx: click.Context, quiet: bool, model: str | None, data_dir: Path | None) -> None:
    """Collectory catalogues your collectibles by photographing them with AI assistance."""
    ctx.ensure_object(dict)
    if ctx.invoked_subcommand == "config":
        return
    overrides: dict[str, Any] = {}
    if model:
        overrides["llm.model"] = model
    if data_dir is not None:
        overrides["storage.directory"] = str(data_dir)
    config = _load_config(overrides or None)
    ctx.obj["config"] = config
    ctx.obj["quiet"] = quiet or config.cli.quiet_default


@cli.command("list")
@click.option("--json", "json_output", is_flag=True, help="Emit collections as JSON.")
@click.pass_context
def list_collections(ctx: click.Context, json_output: bool) -> None:
    """List collections with their item counts."""
    data = _open_store(ctx).data
    if json_output:
        payload = [
            {
                **collection.model_dump(mode="json", by_alias=True, exclude_none=True),
                "itemCount": len(items_in_collection(data, collection.id)),
            }
            for collection in data.collections
        ]
        console.print_json(data={"collections": payload})
        return
    if not data.collections:
        _emit(ctx, "[yellow]No collections yet. Create one with `collectory collection add`.[/yellow]")
        return
    _emit(ctx, _collections_table(data))


@cli.command()
@click.argument("collection_id")
@click.option("--json", "json_output", is_flag=True, help="Emit items as JSON.")
@click.pass_context
def show(ctx: click.Context, collection_id: str, json_output: bool) -> None:
    """Show the items filed under COLLECTION_ID."""
    data = _open_store(ctx).data
    collection = get_collection(data, collection_id)
    if collection is None:
        _handle_cli_error(
            f"Collection {collection_id} not found.", code="not_found", json_output=json_output
        )
        return
    items = items_in_collection(data, collection_id)

    if json_output:
        console.print_json(
            data={
                "collection": collection.model_dump(mode="json", by_alias=True, exclude_none=True),
                "items": [
                    item.model_dump(mode="json", by_alias=True, exclude={"image_url"})
                    for item in items
                ],
            }
        )
        return

    table = Table(title=f"{collection.name} ({len(items)} pcs)")
    table.add_column("ID", style="dim")
    table.add_column("Name")
    table.add_column("Description")
    table.add_column("Added")
    for item in items:
        table.add_row(
            item.id,
            escape(item.name),
            escape(item.description),
            _format_millis(item.created_at),
        )
    _emit(ctx, table)


@cli.group()
def collection() -> None:
    """Create, rename, and delete collections."""


@collection.command("add")
@click.argument("name")
@click.option("--description", type=str, help="Optional description for the collection.")
@click.pass_context
def collection_add(ctx: click.Context, name: str, description: str | None) -> None:
    """Create a collection called NAME."""
    store = _open_store(ctx)
    before = store.data
    after = _persist(store.create_collection, name, description=description)
    if after is before:
        raise click.ClickException("Collection name must not be blank.")
    created = after.collections[-1]
    _emit(ctx, f"[green]Created collection {escape(created.name)} ({created.id}).[/green]")


@collection.command("rename")
@click.argument("collection_id")
@click.argument("name")
@click.pass_context
def collection_rename(ctx: click.Context, collection_id: str, name: str) -> None:
    """Rename the collection COLLECTION_ID to NAME."""
    store = _open_store(ctx)
    if get_collection(store.data, collection_id) is None:
        raise click.ClickException(f"Collection {collection_id} not found.")
    if not name.strip():
        raise click.ClickException("Collection name must not be blank.")
    _persist(store.rename_collection, collection_id, name)
    _emit(ctx, f"[green]Renamed collection {collection_id} to {escape(name.strip())}.[/green]")


@collection.command("delete")
@click.argument("collection_id")
@click.option("-y", "--yes", is_flag=True, help="Delete without asking for confirmation.")
@click.pass_context
def collection_delete(ctx: click.Context, collection_id: str, yes: bool) -> None:
    """Delete COLLECTION_ID together with every item in it."""
    store = _open_store(ctx)
    target = get_collection(store.data, collection_id)
    if target is None:
        raise click.ClickException(f"Collection {collection_id} not found.")
    count = len(items_in_collection(store.data, collection_id))
    if not yes:
        click.confirm(
            f"Delete collection '{target.name}' and all {count} item(s) in it? "
            "This cannot be undone.",
            abort=True,
        )
    _persist(store.delete_collection, collection_id)
    _emit(ctx, f"[green]Deleted collection {escape(target.name)} and {count} item(s).[/green]")


@cli.group()
def item() -> None:
    """Manage individual items."""


@item.command("delete")
@click.argument("item_id")
@click.option("-y", "--yes", is_flag=True, help="Delete without asking for confirmation.")
@click.pass_context
def item_delete(ctx: click.Context, item_id: str, yes: bool) -> None:
    """Delete the item ITEM_ID."""
    store = _open_store(ctx)
    target = get_item(store.data, item_id)
    if target is None:
        raise click.ClickException(f"Item {item_id} not found.")
    if not yes:
        click.confirm(
            f"Delete '{target.name}'? This permanently removes it and cannot be undone.",
            abort=True,
        )
    _persist(store.delete_item, item_id)
    _emit(ctx, f"[green]Deleted {escape(target.name)}.[/green]")


@cli.command()
@click.argument("image", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option("--collection", "collection_id", type=str, help="File the item under this collection.")
@click.option("--discard", is_flag=True, help="Show the classification without saving it.")
@click.option("--json", "json_output", is_flag=True, help="Emit the scan outcome as JSON.")
@click.pass_context
def scan(
    ctx: click.Context,
    image: Path,
    collection_id: str | None,
    discard: bool,
    json_output: bool,
) -> None:
    """Photograph-to-catalogue: classify IMAGE and file it into a collection."""
    if collection_id and discard:
        raise click.UsageError("--collection and --discard cannot be combined.")

    store = _open_store(ctx)
    workflow = ScanWorkflow(store, _build_classifier(ctx.obj["config"]))
    if not json_output:
        workflow.subscribe(
            lambda state: _emit(ctx, _STATE_MESSAGES[state]) if state in _STATE_MESSAGES else None
        )

    try:
        staged = workflow.start(image)
    except ScanError as exc:
        _handle_cli_error(str(exc), code="scan_failed", json_output=json_output, original=exc)
        return

    data = store.data
    if not json_output:
        _render_staged(ctx, staged, data)

    choices = [c.id for c in data.collections]
    if not discard and collection_id is None:
        if not choices:
            workflow.discard()
            _handle_cli_error(
                "No collections exist yet; create one before adding items.",
                code="no_collections",
                json_output=json_output,
            )
            return
        suggested = staged.result.suggested_collection_id
        if json_output:
            # No prompting in JSON mode: the suggestion is the only implicit target.
            if suggested not in choices:
                workflow.discard()
                _handle_cli_error(
                    "No usable suggested collection; pass --collection or --discard.",
                    code="collection_required",
                    json_output=json_output,
                )
                return
            collection_id = suggested
        else:
            console.print(_collections_table(data, highlight=suggested))
            collection_id = click.prompt(
                "Add to collection (id, or 'skip' to discard)",
                type=click.Choice([*choices, "skip"]),
                default=suggested if suggested in choices else None,
            )
            discard = collection_id == "skip"

    result_payload = staged.result.model_dump(mode="json", by_alias=True, exclude_none=True)
    if discard:
        workflow.discard()
        if json_output:
            console.print_json(data={"result": result_payload, "item": None})
        else:
            _emit(ctx, "[yellow]Discarded; nothing was saved.[/yellow]")
        return

    if collection_id not in choices:
        workflow.discard()
        _handle_cli_error(
            f"Collection {collection_id} not found.", code="not_found", json_output=json_output
        )
        return

    try:
        added = workflow.commit(collection_id)
    except StateError as exc:
        _handle_cli_error(
            f"Unable to save item: {exc}", code="storage_error", json_output=json_output, original=exc
        )
        return

    if json_output:
        console.print_json(
            data={
                "result": result_payload,
                "item": added.model_dump(mode="json", by_alias=True, exclude={"image_url"}),
            }
        )
        return
    target = get_collection(store.data, collection_id)
    target_name = target.name if target is not None else collection_id
    _emit(ctx, f"[green]Added {escape(added.name)} to {escape(target_name)}.[/green]")


@cli.command("export")
@click.option(
    "--output",
    type=click.Path(file_okay=False, path_type=Path),
    help="Directory for the backup file (defaults to storage.export_directory).",
)
@click.pass_context
def export_data(ctx: click.Context, output: Path | None) -> None:
    """Write a JSON backup of all collections and items."""
    store = _open_store(ctx)
    directory = output or Path(ctx.obj["config"].storage.export_directory)
    try:
        path = store.export(directory)
    except OSError as exc:
        raise click.ClickException(f"Export failed: {exc}") from exc
    _emit(ctx, f"[green]Exported backup to {path}.[/green]")


@cli.command("import")
@click.argument("backup", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.pass_context
def import_data(ctx: click.Context, backup: Path) -> None:
    """Replace all collections and items with the contents of BACKUP."""
    store = _open_store(ctx)
    try:
        data = store.import_file(backup)
    except StateError as exc:
        raise click.ClickException(f"Import failed: {exc}") from exc
    _emit(
        ctx,
        f"[green]Import succeeded: {len(data.collections)} collection(s), "
        f"{len(data.items)} item(s).[/green]",
    )


@cli.group()
def config() -> None:
    """Manage Collectory configuration files and overrides."""


@config.command("view")
@click.option("--no-env", is_flag=True, help="Ignore environment overrides when displaying output.")
@click.option(
    "--env", "as_env", is_flag=True, help="Show the settings as COLLECTORY__ environment variables."
)
def config_view(no_env: bool, as_env: bool) -> None:
    """Display the effective configuration after applying precedence rules."""
    manager = ConfigManager()
    try:
        effective = manager.load(include_env=not no_env)
    except ConfigError as exc:
        raise click.ClickException(str(exc)) from exc

    if as_env:
        for name, value in flatten_for_env(effective).items():
            console.print(f"{name}={value}", markup=False, highlight=False, soft_wrap=True)
        return

    yaml_text = yaml.safe_dump(effective.model_dump(mode="python"), sort_keys=False)
    console.print(Syntax(yaml_text, "yaml", word_wrap=True))


@config.command("set")
@click.argument("key")
@click.option("--value", required=True, help="Value to assign to KEY.")
def config_set(key: str, value: str) -> None:
    """Persist a configuration value expressed as a dotted KEY."""
    manager = ConfigManager()
    manager.ensure_exists()

    segments = [segment.strip() for segment in key.split(".") if segment.strip()]
    if not segments:
        raise click.ClickException("KEY must specify a dotted path such as 'llm.model'.")

    try:
        parsed_value = yaml.safe_load(value)
    except yaml.YAMLError as exc:
        raise click.ClickException(f"Unable to parse value: {exc}") from exc

    try:
        file_data = manager.load_file_overrides()
        node = file_data
        for segment in segments[:-1]:
            child = node.setdefault(segment, {})
            if not isinstance(child, dict):
                raise ConfigError(f"Cannot assign into '{segment}' because it is not a mapping.")
            node = child
        node[segments[-1]] = parsed_value
        resolve_with_precedence(defaults=CollectoryConfig(), file_overrides=file_data)
    except ConfigError as exc:
        raise click.ClickException(str(exc)) from exc

    before = manager.read_text().splitlines()
    manager.save(file_data)
    after = manager.read_text().splitlines()
    diff = difflib.unified_diff(
        before, after, fromfile="config.yaml (before)", tofile="config.yaml (after)", lineterm=""
    )
    # The timestamp line always changes; only report real edits.
    changed = [
        line
        for line in diff
        if line[:1] in "+-" and not line[1:].startswith(("# Last updated", "++", "--"))
    ]
    if not changed:
        console.print("[yellow]No changes applied; value already up to date.[/yellow]")
        return

    console.print(Syntax("\n".join(changed), "diff", word_wrap=False))
    console.print(f"[green]Updated {'.'.join(segments)}.[/green]")


@config.command("edit")
def config_edit() -> None:
    """Open the configuration file in an interactive editor session."""
    manager = ConfigManager()
    manager.ensure_exists()

    original = manager.read_text()
    edited = click.edit(original, extension=".yaml")

    if edited is None or edited == original:
        console.print("[yellow]No changes detected.[/yellow]")
        return

    try:
        parsed = yaml.safe_load(edited) or {}
    except yaml.YAMLError as exc:
        raise click.ClickException(f"Invalid YAML: {exc}") from exc

    if not isinstance(parsed, dict):
        raise click.ClickException("Configuration file must contain a top-level mapping.")

    try:
        resolve_with_precedence(defaults=CollectoryConfig(), file_overrides=parsed)
    except ConfigError as exc:
        raise click.ClickException(str(exc)) from exc

    manager.save(parsed)
    console.print("[green]Configuration updated successfully.[/green]")


def main() -> None:
    """Invoke the Click CLI as the console script entry point."""
    cli(obj={})


if __name__ == "__main__":
    main()
