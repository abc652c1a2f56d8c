"""Entry point when the package is executed as a module."""

import sys

import click
import uvicorn

from .platform.settings import Settings


@click.command()
@click.option("--reload", is_flag=True, help="Restart on code changes (development only)")
@click.option("--port", type=int, default=None, help="Override APP_HTTP__PORT")
def main(reload=False, port=None):
    settings = Settings()

    uvicorn.run(
        "chat_orchestrator:app",
        loop="uvloop",
        factory=True,
        host=settings.app_http.host,
        port=port or settings.app_http.port,
        log_level=settings.app_http.log_level.lower(),
        reload=reload,
    )


if __name__ == "__main__":
    sys.exit(main())
