"""
CLI components (using typer)
"""

import asyncio
from pathlib import Path

import typer
from rich.console import Console
from rich.progress import Progress as ProgressBar
from rich.tree import Tree

from tilecatalog.settings import settings

CONSOLE = Console()

APP = typer.Typer()

STYLES = {"error": "red", "warning": "yellow", "success": "green"}


def notify(level: str, message: str):
    CONSOLE.print(f"[{STYLES.get(level, 'white')}]{message}[/]")


def _catalog(local: bool):
    if local:
        from tilecatalog.catalog.local import LocalTileCatalog

        return LocalTileCatalog(repository=settings.create_repository())

    return settings.create_client_catalog()


def _session(local: bool, **kwargs):
    from tilecatalog.session import CatalogSession

    return CatalogSession(
        catalog=_catalog(local),
        policy=settings.drain_policy,
        notify=notify,
        **kwargs,
    )


def _render(nodes, branch: Tree):
    for node in nodes:
        if node.is_leaf:
            branch.add(f"[green]{node.title}[/] [dim]{node.file_name}[/]")
        else:
            _render(node.children or [], branch.add(f"[bold]{node.title}[/]"))


@APP.command()
def serve(host: str = "127.0.0.1", port: int = 8000):
    """
    Start the tile catalog server. The record tables and the object store
    are prepared before the server accepts requests.
    """
    from uvicorn import run

    from tilecatalog.server import create_app

    repository = settings.create_repository()
    CONSOLE.print(
        f"Serving tiles from [bold]{settings.database_url}[/] ({settings.store_type} store)"
    )

    run(create_app(repository=repository), host=host, port=port)


@APP.command()
def tree(local: bool = False):
    """
    Show every tile as a z / x / y tree.
    """

    from tilecatalog.catalog.core import CatalogUnavailable

    async def run():
        async with _session(local) as session:
            root = Tree("[bold]tiles[/]")
            _render(session.tree, root)
            CONSOLE.print(root)

    try:
        asyncio.run(run())
    except CatalogUnavailable as e:
        notify("error", f"Could not load the tile catalog: {e}")
        raise typer.Exit(code=1)


@APP.command(name="list")
def list_tiles(z: str, x: str | None = None, y: str | None = None, local: bool = False):
    """
    List the tile records under a (z), (z, x) or (z, x, y) prefix.
    """
    from tilecatalog.records import Prefix

    async def run():
        catalog = _catalog(local)
        try:
            records = await catalog.list_prefix(Prefix(z=z, x=x, y=y))
        finally:
            if hasattr(catalog, "aclose"):
                await catalog.aclose()

        for record in records:
            CONSOLE.print(f"{record.file_name}  [dim]{record.id}[/]")

        CONSOLE.print(f"{len(records)} tiles")

    asyncio.run(run())


def _upload(local: bool, start):
    with ProgressBar(console=CONSOLE) as bar:
        progress_task = bar.add_task("Uploading", total=100)

        def on_progress(progress):
            bar.update(progress_task, completed=progress.percent)

        async def run():
            async with _session(local, on_progress=on_progress) as session:
                return await start(session)

        created = asyncio.run(run())

    CONSOLE.print(f"{len(created)} tiles uploaded.")


@APP.command()
def upload(folder: Path, local: bool = False):
    """
    Upload a folder laid out as z/x/y.jpg.
    """
    from tilecatalog.uploads import scan_folder

    files = scan_folder(folder)
    _upload(local, lambda session: session.upload_folder(files))


@APP.command()
def put(key: str, filenames: list[Path], local: bool = False):
    """
    Upload y.jpg files into an existing z/x folder, given by its node key
    (for example z_3_x_5).
    """
    from tilecatalog.uploads import TileFile

    files = []
    for filename in filenames:
        with filename.open("rb") as handle:
            files.append(TileFile(name=filename.name, payload=handle.read()))

    _upload(local, lambda session: session.upload_into(key, files))


@APP.command()
def delete(keys: list[str], local: bool = False):
    """
    Delete tiles and folders by node key (z_3, z_3_x_5, z_3_x_5_y_7).
    Everything under a deleted folder is removed.
    """
    from tilecatalog.resolver import NothingToDelete

    async def run():
        async with _session(local) as session:
            return await session.delete(keys)

    try:
        result = asyncio.run(run())
    except NothingToDelete:
        raise typer.Exit(code=1)

    CONSOLE.print(f"{result.deleted_count} tiles deleted.")


def main():
    global APP

    APP()
