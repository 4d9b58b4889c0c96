"""Command line entry point: plex-census."""
import logging
from pathlib import Path
from typing import Any, Dict, Optional

import typer
from typer import Typer, Option, Argument

from plex_census.config import Config, ConfigError, init_config
from plex_census.core.exporter import Exporter, ExportError
from plex_census.core.webapp import install_viewer
from plex_census.services.plex import PlexError, PlexService
from plex_census.utils.logger import setup_logging

logger = logging.getLogger(__name__)

app = Typer(help="Export Plex libraries to a static, browsable web gallery.")

# Tried in order when --config is not given
DEFAULT_CONFIG_PATHS = ["config.yaml", "config/config.yaml"]

_state: Dict[str, Any] = {"config_path": None, "verbose": False}


def _fail(message: str) -> None:
    typer.echo(f"ERROR: {message}", err=True)
    raise typer.Exit(code=1)


def _find_config_path() -> Optional[str]:
    if _state["config_path"]:
        return str(_state["config_path"])
    for path in DEFAULT_CONFIG_PATHS:
        if Path(path).exists():
            return path
    return None


def _load_config(overrides: Optional[Dict[str, Dict[str, Any]]] = None) -> Config:
    try:
        config = init_config(_find_config_path(), overrides)
    except ConfigError as e:
        _fail(str(e))
    level = "DEBUG" if _state["verbose"] else config.app.log_level
    setup_logging(level, config.app.log_dir, config.app.debug)
    return config


@app.callback()
def callback(
        config: Optional[Path] = Option(
            None, "--config", "-c", envvar="PLEX_CENSUS_CONFIG", help='YAML configuration file.'
        ),
        verbose: bool = Option(False, "-v", "--verbose", help='Show verbose output.'),
):
    _state["config_path"] = config
    _state["verbose"] = verbose


@app.command()
def export(
        url: Optional[str] = Option(None, help='Plex server, e.g. 192.168.1.10:32400.'),
        token: Optional[str] = Option(None, help='Plex token.'),
        header: Optional[str] = Option(None, help='Header text shown by the web gallery.'),
        libraries: Optional[str] = Option(None, help='Comma-separated library titles, e.g. "Films,TV Shows".'),
        web_root: Optional[Path] = Option(None, help='Web root the gallery is served from.'),
        watch_status: Optional[bool] = Option(
            None, "--watch-status/--no-watch-status", help='Export watched/partially watched state.'
        ),
        jpeg: Optional[bool] = Option(None, "--jpeg/--no-jpeg", help='Also cache JPEG covers for older browsers.'),
        debug: bool = Option(False, "--debug", help='Write the full trace to the daily debug log.'),
):
    """Export the configured libraries to <web_root>/data/library.json."""
    overrides = {
        "plex": {"url": url, "token": token},
        "export": {
            "website_header": header,
            "libraries": libraries,
            "web_root": str(web_root) if web_root else None,
            "watch_status": watch_status,
            "jpeg_fallback": jpeg,
        },
        "app": {"debug": True if debug else None},
    }
    config = _load_config(overrides)

    try:
        exporter = Exporter(config)
    except ConfigError as e:
        _fail(str(e))

    try:
        document = exporter.run()
    except (PlexError, ExportError) as e:
        logger.error(f"Export failed: {e}")
        _fail(str(e))
    finally:
        exporter.close()

    typer.echo(
        f"SUCCESS: {len(document.items)} items from {len(document.libraries)} libraries "
        f"written to {exporter.output_path}"
    )


@app.command()
def libraries():
    """List the libraries available on the Plex server."""
    config = _load_config()
    try:
        service = PlexService(config.require_plex())
        try:
            discovered = service.discover_libraries()
            for section in discovered.values():
                country = service.get_certification_country(section.key) if section.is_supported else "-"
                typer.echo(f"{section.key:>4}  {section.title:<30} {section.internal_type:<13} {country}")
        finally:
            service.close()
    except (ConfigError, PlexError) as e:
        _fail(str(e))


@app.command()
def check():
    """Check the connection to the Plex server."""
    config = _load_config()
    try:
        service = PlexService(config.require_plex())
        try:
            info = service.server_info()
        finally:
            service.close()
    except (ConfigError, PlexError) as e:
        _fail(str(e))
    typer.echo(f"Connected to {info['friendlyName']} (Plex {info['version']}, {info['platform']})")


@app.command("init-web")
def init_web(
        web_root: Path = Argument(..., help='Directory the gallery will be served from.'),
        force: bool = Option(False, "--force", help='Overwrite existing viewer files.'),
):
    """Install the static gallery (index.html and assets) into a web root."""
    setup_logging("DEBUG" if _state["verbose"] else "INFO", log_dir=None)
    written = install_viewer(web_root, force=force)
    typer.echo(f"Viewer installed in {web_root} ({len(written)} files written)")


@app.command()
def schedule():
    """Run exports on the configured cadence until interrupted."""
    config = _load_config()
    if not config.scheduler.enabled:
        _fail("Scheduler is disabled, set scheduler.enabled: true in the configuration")
    try:
        config.require_plex()
        config.require_export()
    except ConfigError as e:
        _fail(str(e))

    from plex_census.scheduler import start_scheduler
    start_scheduler(config)


def main():
    app()


if __name__ == '__main__':
    main()
