import pytest

from cardstamp.models import FieldKey, PhotoOverlay
from cardstamp.overlay_model import OverlayModel
from cardstamp.template_loader import normalize_template_payload


def test_new_model_has_default_field_and_photo() -> None:
    model = OverlayModel()
    assert len(model) == 1
    overlay = model.fields[0]
    assert overlay.id == 0
    assert overlay.field is FieldKey.FULL_NAME
    assert (overlay.x, overlay.y) == (8, 80)
    assert overlay.font_size == 16
    assert overlay.font_color == "#222"
    assert model.photo is not None
    assert model.photo.rect == (8, 8, 64, 64)


def test_add_field_twice_gives_distinct_ids_and_stacks_rows() -> None:
    model = OverlayModel()
    first = model.add_field()
    second = model.add_field()
    assert first != second
    assert len(model) == 3
    assert [item.y for item in model.fields] == [80, 120, 160]
    assert all(item.field is FieldKey.FULL_NAME for item in model.fields)


def test_add_field_places_below_lowest_overlay() -> None:
    model = OverlayModel()
    model.update_field(0, y=300)
    new_id = model.add_field()
    assert model.get_field(new_id).y == 340


def test_add_field_on_empty_model_starts_at_first_row() -> None:
    model = OverlayModel(with_default_field=False)
    new_id = model.add_field()
    assert model.get_field(new_id).y == 80


def test_remove_last_overlay_is_noop() -> None:
    model = OverlayModel()
    assert model.remove_field(0) is False
    assert len(model) == 1


def test_remove_unknown_id_is_noop() -> None:
    model = OverlayModel()
    model.add_field()
    assert model.remove_field(99) is False
    assert len(model) == 2


def test_ids_are_never_reused() -> None:
    model = OverlayModel()
    added = model.add_field()
    assert model.remove_field(added) is True
    assert model.add_field() == added + 1


def test_update_field_merges_and_is_idempotent() -> None:
    model = OverlayModel()
    model.update_field(0, field="roll_number", font_size=20)
    before = model.snapshot().fields[0]
    model.update_field(0, field="roll_number", font_size=20)
    after = model.snapshot().fields[0]
    assert before == after
    assert after.field is FieldKey.ROLL_NUMBER
    assert after.font_color == "#222"
    assert (after.x, after.y) == (8, 80)


def test_update_field_accepts_position_mapping_and_tuple() -> None:
    model = OverlayModel()
    model.update_field(0, position={"x": 30, "y": 45})
    assert (model.fields[0].x, model.fields[0].y) == (30.0, 45.0)
    model.update_field(0, position=(12, 14))
    assert (model.fields[0].x, model.fields[0].y) == (12.0, 14.0)


def test_update_field_clamps_font_size() -> None:
    model = OverlayModel()
    model.update_field(0, font_size=5)
    assert model.fields[0].font_size == 10
    model.update_field(0, font_size=99)
    assert model.fields[0].font_size == 48


def test_update_field_keeps_colour_when_invalid() -> None:
    model = OverlayModel()
    model.update_field(0, font_color="#ff0000")
    model.update_field(0, font_color="not-a-colour")
    assert model.fields[0].font_color == "#ff0000"


def test_update_field_rejects_bad_input() -> None:
    model = OverlayModel()
    with pytest.raises(ValueError):
        model.update_field(0, field="favourite_colour")
    with pytest.raises(TypeError):
        model.update_field(0, rotation=45)
    with pytest.raises(KeyError):
        model.update_field(42, font_size=12)


def test_update_photo_clamps_size_and_recreates_slot() -> None:
    model = OverlayModel()
    model.update_photo((20, 30), (10, 500))
    assert model.photo == PhotoOverlay(x=20, y=30, width=32, height=200)

    model.set_photo_enabled(False)
    assert model.photo is None
    model.update_photo((5, 6))
    assert model.photo is not None
    assert model.photo.rect == (5, 6, 64, 64)


def test_snapshot_is_isolated_from_later_edits() -> None:
    model = OverlayModel()
    snapshot = model.snapshot()
    model.update_field(0, position=(100, 100))
    model.update_photo((50, 50))
    assert (snapshot.fields[0].x, snapshot.fields[0].y) == (8, 80)
    assert snapshot.photo is not None
    assert snapshot.photo.rect == (8, 8, 64, 64)


def test_payload_round_trip_preserves_overlays() -> None:
    model = OverlayModel(font_family="Georgia")
    added = model.add_field()
    model.update_field(added, field="blood_group", font_size=22, font_color="#123456", position=(40, 200))
    model.set_photo_enabled(False)

    restored = OverlayModel.from_payload(normalize_template_payload(model.to_payload()))
    assert restored.font_family == "Georgia"
    assert restored.photo is None
    assert restored.snapshot().fields == model.snapshot().fields
    assert restored.add_field() == added + 1
