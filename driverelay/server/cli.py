"""DriveRelay server command line interface."""

from pathlib import Path
from typing import Optional

import typer

from driverelay import __version__

app = typer.Typer(add_completion=False, help="DriveRelay upload server.")


def _version_callback(value: bool) -> bool:
    if value:
        typer.echo(__version__)
        raise typer.Exit()
    return value


@app.command()
def serve(
    host: Optional[str] = typer.Option(None, "--host", help="Bind host."),
    port: Optional[int] = typer.Option(None, "--port", "-p", help="Bind port."),
    workers: Optional[int] = typer.Option(None, "--workers", help="Number of workers."),
    config: Optional[Path] = typer.Option(None, "--config", "-c", help="YAML config file."),
    storage_path: Optional[Path] = typer.Option(None, "--storage-path", help="Staging and state directory."),
    state_backend: Optional[str] = typer.Option(None, "--state-backend", help="memory, file or redis."),
    redis_url: Optional[str] = typer.Option(None, "--redis-url", help="Redis URL for the redis backend."),
    remote_backend: Optional[str] = typer.Option(None, "--remote-backend", help="gcs, drive or local."),
    version: bool = typer.Option(
        False,
        "--version",
        "-v",
        help="Show the version and exit.",
        callback=_version_callback,
        is_eager=True,
        is_flag=True,
    ),
) -> None:
    """Start the TUS relay server."""
    from driverelay.server.main import run_server

    run_server(
        host=host,
        port=port,
        workers=workers,
        config_path=config,
        storage_path=storage_path,
        state_backend=state_backend,
        redis_url=redis_url,
        remote_backend=remote_backend,
    )


def main() -> None:
    app()


if __name__ == "__main__":
    main()
