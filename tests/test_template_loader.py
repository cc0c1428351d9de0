from pathlib import Path

from cardstamp.overlay_model import OverlayModel
from cardstamp.template_loader import (
    default_template_payload,
    list_template_names,
    load_template_payload,
    normalize_template_payload,
    save_template_payload,
    scale_template_payload,
)


def test_normalize_template_payload_clamps_values() -> None:
    payload = normalize_template_payload(
        {
            "name": "custom",
            "font_family": "georgia",
            "photo": {"position": {"x": 4, "y": 6}, "size": {"width": 5, "height": 900}},
            "fields": [
                {"id": 3, "field": "roll_number", "position": {"x": 10, "y": 20}, "font_size": 2, "font_color": "bogus"},
                {"id": 3, "field": "nickname", "font_size": 72},
            ],
        }
    )
    assert payload["name"] == "custom"
    assert payload["font_family"] == "Georgia"
    assert payload["photo"] == {"position": {"x": 4.0, "y": 6.0}, "size": {"width": 32, "height": 200}}
    first, second = payload["fields"]
    assert first == {
        "id": 3,
        "field": "roll_number",
        "position": {"x": 10.0, "y": 20.0},
        "font_size": 10,
        "font_color": "#222",
    }
    assert second["id"] == 0
    assert second["field"] == "full_name"
    assert second["font_size"] == 48
    assert second["position"] == {"x": 8.0, "y": 80.0}


def test_empty_fields_get_one_default_overlay() -> None:
    payload = normalize_template_payload({"fields": []})
    assert len(payload["fields"]) == 1
    assert payload["fields"][0]["field"] == "full_name"
    assert payload["photo"] is not None


def test_disabled_photo_stays_disabled() -> None:
    assert normalize_template_payload({"photo": None})["photo"] is None


def test_save_and_load_round_trip(tmp_path: Path) -> None:
    model = OverlayModel(font_family="Verdana")
    model.update_field(0, field="gr_number", position=(30, 40), font_size=20)
    payload = model.to_payload()
    payload["preview_width"] = 500
    payload["preview_height"] = 320

    path = save_template_payload(tmp_path / "templates" / "front", payload)
    assert path == tmp_path / "templates" / "front.json"
    loaded = load_template_payload(path)
    assert loaded["name"] == "front"
    assert (loaded["preview_width"], loaded["preview_height"]) == (500, 320)
    restored = OverlayModel.from_payload(loaded)
    assert restored.snapshot().fields == model.snapshot().fields
    assert list_template_names(tmp_path / "templates") == ["front"]


def test_list_template_names_on_missing_directory(tmp_path: Path) -> None:
    assert list_template_names(tmp_path / "missing") == []


def test_scale_template_payload_to_new_preview() -> None:
    payload = normalize_template_payload(
        {
            "preview_width": 400,
            "preview_height": 200,
            "photo": {"position": {"x": 10, "y": 10}, "size": {"width": 100, "height": 150}},
            "fields": [{"id": 0, "position": {"x": 40, "y": 100}}],
        }
    )
    scaled = scale_template_payload(payload, (800, 100))
    assert (scaled["preview_width"], scaled["preview_height"]) == (800, 100)
    assert scaled["fields"][0]["position"] == {"x": 80.0, "y": 50.0}
    assert scaled["photo"]["position"] == {"x": 20.0, "y": 5.0}
    assert scaled["photo"]["size"] == {"width": 200, "height": 75}
    assert payload["fields"][0]["position"] == {"x": 40.0, "y": 100.0}


def test_scale_template_payload_without_recorded_size_is_identity() -> None:
    payload = default_template_payload()
    assert scale_template_payload(payload, (640, 480)) is payload
