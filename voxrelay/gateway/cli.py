"""voxrelay gateway CLI.

Usage:
    voxrelay serve
    voxrelay serve --port 3000 --reload
    python -m voxrelay.gateway.cli show-config
"""

from typing import Annotated

import typer

from voxrelay.config import get_settings

app = typer.Typer(help="voxrelay gateway CLI.")


@app.command("serve")
def serve(
    host: Annotated[
        str | None,
        typer.Option("--host", help="Bind address (default: HOST or 0.0.0.0)"),
    ] = None,
    port: Annotated[
        int | None,
        typer.Option("--port", "-p", help="Listen port (default: PORT or 3000)"),
    ] = None,
    reload: Annotated[
        bool,
        typer.Option("--reload", help="Restart on code changes (development)"),
    ] = False,
) -> None:
    """Run the gateway (HTTP surface and streaming relay) with uvicorn."""
    import uvicorn

    settings = get_settings()
    uvicorn.run(
        "voxrelay.gateway.main:app",
        host=host or settings.host,
        port=port or settings.port,
        reload=reload,
        log_config=None,
    )


@app.command("show-config")
def show_config() -> None:
    """Print the effective configuration with secrets masked."""
    settings = get_settings()
    for name, value in settings.model_dump().items():
        if name.endswith("api_key"):
            value = "<set>" if value else "<missing>"
        typer.echo(f"{name}: {value}")


def main():
    """Entry point for the CLI."""
    app()


if __name__ == "__main__":
    main()
