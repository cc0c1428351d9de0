import pytest

from cardstamp.errors import PreviewNotMeasuredError
from cardstamp.render.transform import CoordinateTransform, fit_preview_size


def test_origin_maps_to_origin() -> None:
    transform = CoordinateTransform.between((1000, 700), (333, 250))
    assert transform.to_natural_point(0, 0) == (0.0, 0.0)


def test_uniform_scale_doubles_positions_and_font() -> None:
    transform = CoordinateTransform.between((1000, 1000), (500, 500))
    assert transform.sx == 2.0
    assert transform.sy == 2.0
    assert transform.to_natural_point(8, 80) == (16.0, 160.0)
    assert transform.to_natural_font_size(16) == 32.0


def test_non_uniform_scale_uses_vertical_factor_for_fonts() -> None:
    transform = CoordinateTransform.between((1200, 600), (600, 400))
    assert transform.sx == 2.0
    assert transform.sy == 1.5
    assert transform.to_natural_rect((10, 20, 30, 40)) == (20.0, 30.0, 60.0, 60.0)
    assert transform.to_natural_font_size(20) == 30.0


def test_preview_round_trip_is_stable() -> None:
    transform = CoordinateTransform.between((1013, 641), (487, 309))
    rect = (12.5, 40.0, 64.0, 33.0)
    back = transform.to_preview_rect(transform.to_natural_rect(rect))
    assert back == pytest.approx(rect)


@pytest.mark.parametrize("preview", [(0, 300), (300, 0), (-1, 10)])
def test_unmeasured_preview_raises(preview) -> None:
    with pytest.raises(PreviewNotMeasuredError):
        CoordinateTransform.between((1000, 1000), preview)


def test_unmeasured_preview_is_runtime_error() -> None:
    with pytest.raises(RuntimeError):
        CoordinateTransform.between((1000, 1000), (0, 0))


def test_fit_preview_size_keeps_aspect_and_never_upscales() -> None:
    assert fit_preview_size((2000, 1000), 640, 480) == (640, 320)
    assert fit_preview_size((1000, 2000), 640, 480) == (240, 480)
    assert fit_preview_size((100, 50), 640, 480) == (100, 50)
    assert fit_preview_size((0, 50), 640, 480) == (0, 0)
