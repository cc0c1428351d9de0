from __future__ import annotations

from pathlib import Path


def launch_gui(startup_design: Path | None = None, startup_records: Path | None = None) -> None:
    # PyQt6 is only imported once the editor is actually requested.
    from cardstamp.gui.editor import launch_gui as _launch

    _launch(startup_design=startup_design, startup_records=startup_records)
