import numpy as np, cv2
import pytest

from core.models import Region
from core.visual import BOX_COLOR, decode_image, draw_regions, encode_jpeg, fit_to_buffer


def test_draw_regions_strokes_each_box_on_a_copy():
    img = np.zeros((100, 100, 3), dtype=np.uint8)
    regions = [Region(top_left=(10, 10), bottom_right=(40, 40)),
               Region(top_left=(50, 20), bottom_right=(90, 60), probability=0.9)]
    out = draw_regions(img, regions)
    assert out.shape == img.shape
    assert not img.any()
    assert tuple(out[10, 25]) == BOX_COLOR
    assert tuple(out[20, 70]) == BOX_COLOR
    # interior untouched
    assert not out[25, 25].any()


def test_draw_regions_clamps_out_of_frame_boxes():
    img = np.zeros((50, 50, 3), dtype=np.uint8)
    out = draw_regions(img, [Region(top_left=(-20, -20), bottom_right=(500, 500))])
    assert tuple(out[0, 25]) == BOX_COLOR
    assert tuple(out[49, 25]) == BOX_COLOR


def test_draw_regions_without_regions_is_identity():
    img = np.full((20, 20, 3), 7, dtype=np.uint8)
    out = draw_regions(img, [])
    assert np.array_equal(out, img) and out is not img


def test_fit_to_buffer():
    frame = np.zeros((720, 1280, 3), dtype=np.uint8)
    assert fit_to_buffer(frame, 640, 480).shape == (480, 640, 3)
    same = np.zeros((480, 640, 3), dtype=np.uint8)
    out = fit_to_buffer(same, 640, 480)
    assert out.shape == same.shape and out is not same


def test_decode_image_roundtrip_and_errors():
    src = np.full((30, 40, 3), 200, dtype=np.uint8)
    ok, buf = cv2.imencode(".png", src)
    assert np.array_equal(decode_image(buf.tobytes()), src)
    with pytest.raises(ValueError):
        decode_image(b"")
    with pytest.raises(ValueError):
        decode_image(b"\x00\x01garbage")


def test_encode_jpeg_produces_jpeg_bytes():
    data = encode_jpeg(np.zeros((16, 16, 3), dtype=np.uint8))
    assert data[:2] == b"\xff\xd8"
    assert decode_image(data).shape == (16, 16, 3)
