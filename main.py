from __future__ import annotations

import argparse
import sys
import traceback
from pathlib import Path

from cardstamp.config import get_log_dir
from cardstamp.log import get_log_file_path, get_logger, setup_file_logging

_log = get_logger("main")


def _filter_platform_startup_args(argv: list[str]) -> list[str]:
    """Drop arguments injected by the macOS launcher so argparse does not reject them."""
    filtered_args: list[str] = []
    for arg in argv:
        if sys.platform == "darwin" and arg.startswith("-psn_"):
            continue
        filtered_args.append(arg)
    return filtered_args


def _install_exception_logging() -> None:
    """Windowed builds have no console; send uncaught exceptions to the log file."""

    def _log_uncaught_exception(exc_type, exc_value, exc_tb) -> None:
        message = "".join(traceback.format_exception(exc_type, exc_value, exc_tb))
        _log.error("uncaught exception\n%s", message.rstrip())
        sys.__excepthook__(exc_type, exc_value, exc_tb)

    sys.excepthook = _log_uncaught_exception


def main() -> None:
    setup_file_logging(get_log_dir())
    _install_exception_logging()
    _log.info("startup argv=%s", sys.argv[1:])
    log_file = get_log_file_path()
    if log_file:
        _log.info("log file=%s", log_file)

    parser = argparse.ArgumentParser(description="Launch the CardStamp editor.")
    parser.add_argument(
        "design",
        nargs="?",
        type=Path,
        default=None,
        help="Open this design on startup.",
    )
    parser.add_argument("--records", type=Path, default=None, help="Load this record file on startup.")
    filtered_args = _filter_platform_startup_args(sys.argv[1:])
    args = parser.parse_args(filtered_args)
    startup_design = args.design.resolve(strict=False) if args.design else None
    startup_records = args.records.resolve(strict=False) if args.records else None
    _log.info("startup_design=%s startup_records=%s", startup_design, startup_records)

    try:
        from cardstamp.gui import launch_gui
    except Exception as exc:
        _log.error("GUI import failed: %s", exc)
        raise SystemExit(f"GUI is unavailable: {exc}") from exc

    _log.info("launching GUI")
    launch_gui(startup_design=startup_design, startup_records=startup_records)
    _log.info("GUI returned normally")


if __name__ == "__main__":
    main()
