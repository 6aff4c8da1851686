"""
CLI entrypoint running the startup cycle of the fleet configuration.

Loads (or creates) the fleet file, merges the serials reported by the
detection source, persists the result when it changed, prepares the
per-device artifact folders, and prints the capture targets.
"""

from __future__ import annotations

import argparse
import logging
import logging.handlers
from collections.abc import Sequence
from pathlib import Path

from .core.codec import ConfigError
from .core.service import FleetConfigService
from .detection import SerialSource, StaticSerialSource
from .layout import (
    CaptureTarget,
    capture_targets,
    ensure_artifact_directories,
    resolve_output_dir,
)
from .settings import RuntimeSettings, SettingsService

LOGGER = logging.getLogger(__name__)
LOG_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"


def _ensure_rotating_file_handler(
    log_file: Path,
    *,
    max_mb: int = 5,
    backup_count: int = 3,
) -> None:
    """Attach a rotating file handler pointed at ``log_file`` if missing."""

    try:
        log_file.parent.mkdir(parents=True, exist_ok=True)
    except OSError as exc:
        LOGGER.warning("Unable to create log directory %s: %s", log_file.parent, exc)
        return

    root_logger = logging.getLogger()
    for handler in root_logger.handlers:
        if isinstance(handler, logging.handlers.RotatingFileHandler):
            existing = getattr(handler, "baseFilename", None)
            if existing and Path(existing).resolve() == log_file.resolve():
                return

    handler = logging.handlers.RotatingFileHandler(
        log_file,
        maxBytes=max_mb * 1024 * 1024,
        backupCount=backup_count,
        encoding="utf-8",
    )
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    root_logger.addHandler(handler)


def configure_logging(level: str, log_file: Path | None = None) -> None:
    numeric_level = getattr(logging, level.upper(), logging.INFO)
    logging.basicConfig(
        level=numeric_level,
        format=LOG_FORMAT,
    )
    if log_file is not None:
        _ensure_rotating_file_handler(log_file)


def describe_target(target: CaptureTarget) -> str:
    serial = target.serial if target.assigned else "UNASSIGNED"
    return (
        f"slot {target.slot}: {target.name or '-'} serial={serial} "
        f"orientation={target.orientation} dir={target.dirs.root}"
    )


def run_startup(
    service: FleetConfigService,
    source: SerialSource,
    *,
    save_on_change: bool = True,
) -> list[CaptureTarget]:
    """Load, reconcile, persist, and return the capture targets of the fleet."""

    service.load_or_create()
    detected = source.detect_serials()
    if not detected:
        LOGGER.warning("No serials detected; keeping stored fleet assignments")
    result = service.reconcile(detected, save=save_on_change)
    if result.changed:
        LOGGER.info("Fleet config updated from %d detected serial(s)", len(detected))

    config = service.snapshot
    output_dir = resolve_output_dir(config, service.path.parent)
    try:
        ensure_artifact_directories(config, output_dir=output_dir)
    except OSError as exc:
        LOGGER.warning("Unable to create artifact directories under %s: %s", output_dir, exc)
    return capture_targets(config, output_dir=output_dir)


def parse_args(argv: Sequence[str] | None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Stereo fleet configuration launcher.")
    parser.add_argument(
        "--config",
        type=Path,
        default=None,
        help="Fleet configuration file (default: fleet_config.ini in the working directory).",
    )
    parser.add_argument(
        "--settings-dir",
        type=Path,
        default=None,
        help="Directory containing settings.yaml (default: working directory).",
    )
    parser.add_argument(
        "--serial",
        dest="serials",
        action="append",
        default=[],
        metavar="SERIAL",
        help="Detected device serial; repeat for several devices.",
    )
    parser.add_argument(
        "--log-level",
        default=None,
        help="Python logging level (default: from settings, INFO).",
    )
    parser.add_argument(
        "--no-save",
        action="store_true",
        help="Do not persist changes produced by reconciliation.",
    )
    return parser.parse_args(argv)


def _config_path(args: argparse.Namespace, runtime: RuntimeSettings, settings_dir: Path) -> Path:
    if args.config is not None:
        return args.config
    return runtime.resolve_config_path([Path.cwd(), settings_dir])


def main(argv: Sequence[str] | None = None) -> int:
    args = parse_args(argv)
    try:
        settings_service = SettingsService(settings_dir=args.settings_dir)
    except ConfigError as exc:
        configure_logging(args.log_level or "INFO")
        LOGGER.error("Settings failed: %s", exc)
        return 2

    runtime = settings_service.runtime
    configure_logging(args.log_level or runtime.log_level, runtime.log_file)

    config_path = _config_path(args, runtime, settings_service.settings_dir)
    serials = list(args.serials) or runtime.detected_serials
    save_on_change = runtime.save_on_change and not args.no_save
    try:
        targets = run_startup(
            FleetConfigService(config_path),
            StaticSerialSource(serials),
            save_on_change=save_on_change,
        )
    except ConfigError as exc:
        LOGGER.error("Configuration failed: %s", exc)
        return 2
    except Exception:  # pragma: no cover - surfaced to operator
        LOGGER.exception("Fleet startup crashed.")
        return 1

    LOGGER.info("Fleet config at %s", config_path)
    for target in targets:
        print(describe_target(target))
    return 0


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())


__all__ = ["configure_logging", "main", "run_startup"]
