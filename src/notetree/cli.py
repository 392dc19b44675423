"""CLI entry point using Typer."""

import asyncio
import json
from collections.abc import Awaitable, Callable, Collection
from dataclasses import dataclass
from functools import wraps
from typing import Annotated, Any, TypeVar

import typer

from notetree.client import HttpNodeStoreClient, LocalNodeStoreClient, NodeStoreClient
from notetree.config import (
    ConfigError,
    get_api_token,
    get_api_url,
    get_owner,
    get_root_path,
    get_timeout,
)
from notetree.errors import NoteTreeError, error_from_detail
from notetree.lifecycle import LifecycleManager, OperationResult
from notetree.logging_utils import setup_logging
from notetree.service import NodeService
from notetree.storage import NodeStore
from notetree.tree import TreeNode, find_matching_nodes

R = TypeVar("R")

app = typer.Typer(help="notetree CLI - folders and notes with a trash")


@dataclass
class Connection:
    """Where commands send their requests."""

    root: str
    owner: str | None = None
    api_url: str | None = None
    token: str | None = None


def handle_cli_errors(func: Callable[..., R]) -> Callable[..., R]:
    """Handle common CLI errors."""

    @wraps(func)
    def wrapper(*args: Any, **kwargs: Any) -> R:  # noqa: ANN401
        try:
            return func(*args, **kwargs)
        except (NoteTreeError, ValueError) as e:
            typer.echo(f"Error: {e}", err=True)
            raise typer.Exit(code=1) from e

    return wrapper


def _client(conn: Connection) -> NodeStoreClient:
    if conn.api_url:
        return HttpNodeStoreClient(conn.api_url, conn.token, timeout=get_timeout())
    if not conn.owner:
        msg = "An owner is required: pass --owner or set NOTETREE_OWNER"
        raise ConfigError(msg)
    return LocalNodeStoreClient(NodeService(NodeStore(conn.root)), conn.owner)


def _run(
    conn: Connection,
    action: Callable[[LifecycleManager], Awaitable[R]],
) -> R:
    async def runner() -> R:
        client = _client(conn)
        try:
            return await action(LifecycleManager(client))
        finally:
            await client.aclose()

    return asyncio.run(runner())


def _unwrap(result: OperationResult) -> Any:  # noqa: ANN401
    """Return the data of a successful result or raise its error."""
    if not result.success and result.error is not None:
        error = error_from_detail(
            {"kind": str(result.error.kind), "message": result.error.message},
            status_code=0,
        )
        if result.error.refetch:
            typer.echo("The subtree was re-read from the store.", err=True)
        raise error
    return result.data


def _render(
    forest: list[TreeNode],
    depth: int = 0,
    marked: Collection[str] = (),
) -> list[str]:
    lines: list[str] = []
    for node in forest:
        label = f"{node.name}/" if node.is_folder else node.name
        mark = ("* " if node.id in marked else "  ") if marked else ""
        lines.append(f"{mark}{'  ' * depth}{label}  [{node.id}]")
        if node.children:
            lines.extend(_render(node.children, depth + 1, marked))
    return lines


def _echo_forest(
    forest: list[TreeNode],
    empty: str,
    marked: Collection[str] = (),
) -> None:
    lines = _render(forest, marked=marked)
    typer.echo("\n".join(lines) if lines else empty)


@app.callback()
def main_options(
    ctx: typer.Context,
    root: Annotated[
        str | None,
        typer.Option(help="Store root, path or fsspec URL [env: NOTETREE_ROOT]"),
    ] = None,
    owner: Annotated[
        str | None,
        typer.Option(help="Owner for local mode [env: NOTETREE_OWNER]"),
    ] = None,
    api_url: Annotated[
        str | None,
        typer.Option(help="Server URL for remote mode [env: NOTETREE_API_URL]"),
    ] = None,
    token: Annotated[
        str | None,
        typer.Option(help="Bearer token for remote mode [env: NOTETREE_TOKEN]"),
    ] = None,
) -> None:
    """Select local (--root/--owner) or remote (--api-url/--token) mode."""
    setup_logging()
    ctx.obj = Connection(
        root or get_root_path(),
        owner or get_owner(),
        api_url or get_api_url(),
        token or get_api_token(),
    )


@app.command("tree")
@handle_cli_errors
def cmd_tree(
    ctx: typer.Context,
    expand: Annotated[
        list[str] | None,
        typer.Option(help="Reveal and expand this folder (repeatable)"),
    ] = None,
    trash: Annotated[bool, typer.Option("--trash", help="Show the trash")] = False,
    name_filter: Annotated[
        str | None,
        typer.Option("--filter", help="Mark rows whose name contains this text"),
    ] = None,
) -> None:
    """Print the folder tree, or the trash."""

    async def action(manager: LifecycleManager) -> list[TreeNode]:
        if trash:
            _unwrap(await manager.fetch_trash())
            return manager.trash_tree()
        _unwrap(await manager.fetch_root())
        for folder_id in expand or ():
            _unwrap(await manager.reveal(folder_id))
            _unwrap(await manager.fetch_children(folder_id))
        return manager.tree()

    forest = _run(ctx.obj, action)
    if name_filter is None:
        _echo_forest(forest, "Trash is empty." if trash else "No notes yet.")
        return
    matches = find_matching_nodes(forest, name_filter)
    if not matches:
        typer.echo(f"No notes match '{name_filter}'.")
        return
    _echo_forest(forest, "", marked=set(matches))


@app.command("create")
@handle_cli_errors
def cmd_create(
    ctx: typer.Context,
    name: Annotated[str, typer.Argument(help="Name of the new note or folder")],
    parent: Annotated[
        str | None,
        typer.Option(help="Parent folder id (root when omitted)"),
    ] = None,
    folder: Annotated[bool, typer.Option("--folder", help="Create a folder")] = False,
    duplicate_from: Annotated[
        str | None,
        typer.Option(help="Copy content and tags from this note"),
    ] = None,
) -> None:
    """Create a note or a folder."""

    async def action(manager: LifecycleManager) -> Any:  # noqa: ANN401
        return _unwrap(
            await manager.create(
                name,
                parent,
                is_folder=folder,
                duplicate_from_id=duplicate_from,
            ),
        )

    node = _run(ctx.obj, action)
    typer.echo(f"Created {node.kind} '{node.name}' ({node.id})")


@app.command("rename")
@handle_cli_errors
def cmd_rename(
    ctx: typer.Context,
    node_id: Annotated[str, typer.Argument(help="Id of the note or folder")],
    name: Annotated[str, typer.Argument(help="New name")],
) -> None:
    """Rename a note or folder."""

    async def action(manager: LifecycleManager) -> Any:  # noqa: ANN401
        return _unwrap(await manager.rename(node_id, name))

    node = _run(ctx.obj, action)
    typer.echo(f"Renamed {node.id} to '{node.name}'")


@app.command("edit")
@handle_cli_errors
def cmd_edit(
    ctx: typer.Context,
    node_id: Annotated[str, typer.Argument(help="Id of the note")],
    content: Annotated[str, typer.Option(help="New content of the note")],
) -> None:
    """Replace the content of a note."""

    async def action(manager: LifecycleManager) -> Any:  # noqa: ANN401
        return _unwrap(await manager.update_content(node_id, content))

    node = _run(ctx.obj, action)
    typer.echo(f"Updated content of '{node.name}'")


@app.command("move")
@handle_cli_errors
def cmd_move(
    ctx: typer.Context,
    node_id: Annotated[str, typer.Argument(help="Id of the note or folder")],
    parent: Annotated[
        str | None,
        typer.Option(help="New parent folder id (root when omitted)"),
    ] = None,
) -> None:
    """Move a note or folder under another folder."""

    async def action(manager: LifecycleManager) -> Any:  # noqa: ANN401
        return _unwrap(await manager.move(node_id, parent))

    node = _run(ctx.obj, action)
    typer.echo(f"Moved '{node.name}' to {node.parent_id or 'root'}")


@app.command("delete")
@handle_cli_errors
def cmd_delete(
    ctx: typer.Context,
    node_id: Annotated[str, typer.Argument(help="Id of the note or folder")],
    permanent: Annotated[
        bool,
        typer.Option("--permanent", help="Purge a note that is already in trash"),
    ] = False,
) -> None:
    """Move to trash; a second delete on a trashed note purges it."""

    async def action(manager: LifecycleManager) -> Any:  # noqa: ANN401
        if permanent:
            return _unwrap(await manager.permanent_delete(node_id))
        return _unwrap(await manager.delete(node_id))

    outcome = _run(ctx.obj, action)
    typer.echo(outcome.message)


@app.command("restore")
@handle_cli_errors
def cmd_restore(
    ctx: typer.Context,
    node_id: Annotated[str, typer.Argument(help="Id of the trashed note or folder")],
) -> None:
    """Restore a note or folder, with its subtree, from the trash."""

    async def action(manager: LifecycleManager) -> Any:  # noqa: ANN401
        return _unwrap(await manager.restore(node_id))

    outcome = _run(ctx.obj, action)
    typer.echo(
        f"Restored '{outcome.node.name}' with {outcome.children_count} "
        "descendant(s)",
    )


@app.command("show")
@handle_cli_errors
def cmd_show(
    ctx: typer.Context,
    node_id: Annotated[str, typer.Argument(help="Id of the note or folder")],
) -> None:
    """Show a note with its location."""

    async def action(manager: LifecycleManager) -> tuple[Any, Any]:
        node = _unwrap(await manager.open(node_id))
        return node, _unwrap(await manager.reveal(node_id))

    node, path = _run(ctx.obj, action)
    location = " / ".join(ancestor.name for ancestor in path.chain) or "(root)"
    typer.echo(f"{node.name}  [{node.id}]")
    typer.echo(f"Kind: {node.kind}")
    typer.echo(f"Location: {'Trash' if path.trash_fallback else location}")
    if node.is_trashed:
        typer.echo(f"Deleted at: {node.deleted_at.isoformat()}")
    if not node.is_folder and node.content:
        typer.echo("")
        typer.echo(node.content)


@app.command("search")
@handle_cli_errors
def cmd_search(
    ctx: typer.Context,
    query: Annotated[str, typer.Argument(help="Text to look for")],
    page: Annotated[int, typer.Option(min=1, help="Result page")] = 1,
    limit: Annotated[int, typer.Option(min=1, help="Results per page")] = 10,
) -> None:
    """Search note names and contents."""

    async def action(manager: LifecycleManager) -> Any:  # noqa: ANN401
        return await manager.client.search(query, page=page, limit=limit)

    result = _run(ctx.obj, action)
    if not result.data:
        typer.echo("No notes found.")
        return
    for hit in result.data:
        excerpt = f": {hit.excerpt}" if hit.excerpt else ""
        typer.echo(f"- {hit.id}: {hit.name}{excerpt}")
    if result.has_more:
        typer.echo(f"(more results on page {page + 1})")


@app.command("stats")
@handle_cli_errors
def cmd_stats(ctx: typer.Context) -> None:
    """Print note statistics as JSON."""

    async def action(manager: LifecycleManager) -> Any:  # noqa: ANN401
        return await manager.client.stats()

    typer.echo(json.dumps(_run(ctx.obj, action), indent=2))


def main() -> None:
    """Entry point for the notetree CLI."""
    app()


if __name__ == "__main__":
    main()
