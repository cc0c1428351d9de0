from pathlib import Path

import yaml

from cardstamp.config import DEFAULT_CONFIG, load_config, write_default_config


def test_load_config_missing_file_returns_defaults(tmp_path: Path) -> None:
    cfg = load_config(tmp_path / "absent.yaml")
    assert cfg["page_size"] == "A4"
    assert cfg["on_record_error"] == "abort"
    assert cfg["page_margin_pt"] == 20.0
    assert cfg["font_path"] is None


def test_load_config_merges_and_normalizes(tmp_path: Path) -> None:
    path = tmp_path / "config.yaml"
    path.write_text(
        yaml.safe_dump(
            {
                "page_size": "letter",
                "page_orientation": "sideways",
                "on_record_error": "SKIP",
                "page_margin_pt": "-5",
                "preview_max_width": "wide",
                "preview_max_height": 10,
            }
        ),
        encoding="utf-8",
    )
    cfg = load_config(path)
    assert cfg["page_size"] == "LETTER"
    assert cfg["page_orientation"] == "portrait"
    assert cfg["on_record_error"] == "skip"
    assert cfg["page_margin_pt"] == 0.0
    assert cfg["preview_max_width"] == DEFAULT_CONFIG["preview_max_width"]
    assert cfg["preview_max_height"] == 64
    assert cfg["archive_name"] == DEFAULT_CONFIG["archive_name"]


def test_load_config_ignores_non_mapping_yaml(tmp_path: Path) -> None:
    path = tmp_path / "config.yaml"
    path.write_text("- just\n- a list\n", encoding="utf-8")
    assert load_config(path)["font_family"] == DEFAULT_CONFIG["font_family"]


def test_write_default_config_respects_force(tmp_path: Path) -> None:
    path = tmp_path / "Config" / "config.yaml"
    assert write_default_config(path) == path
    assert yaml.safe_load(path.read_text(encoding="utf-8"))["page_size"] == "A4"

    path.write_text("page_size: LETTER\n", encoding="utf-8")
    write_default_config(path)
    assert load_config(path)["page_size"] == "LETTER"

    write_default_config(path, force=True)
    assert load_config(path)["page_size"] == "A4"
