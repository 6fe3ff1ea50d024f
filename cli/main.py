import asyncio

import typer
import uvicorn

from featureboard.app.config import settings

app = typer.Typer(help="Featureboard - feedback boards with upvotes and comments")


@app.command()
def start(
    host: str = typer.Option(None, help="Bind address (defaults to FEATUREBOARD_HOST)"),
    port: int = typer.Option(None, help="Port (defaults to FEATUREBOARD_PORT)"),
    reload: bool = typer.Option(False, help="Reload on code changes"),
) -> None:
    """Start the Featureboard server."""
    typer.echo("Starting Featureboard...")
    uvicorn.run(
        "featureboard.app.main:app",
        host=host or settings.host,
        port=port or settings.port,
        reload=reload,
        log_level=settings.log_level.lower(),
    )


@app.command("init-db")
def init_db() -> None:
    """Create the database tables."""
    from featureboard.app.db import Database

    async def _create() -> None:
        database = Database.from_settings(settings)
        try:
            await database.create_all()
        finally:
            await database.dispose()

    asyncio.run(_create())
    typer.echo(f"Database initialized at {settings.database_url}")


if __name__ == "__main__":
    app()
