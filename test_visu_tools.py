import matplotlib
matplotlib.use("Agg")

import numpy as np
import pytest
import matplotlib.pyplot as plt
from focustools import visu_tools as vt
from focustools.patch_tools import PatchLayout


def make_probabilities(patch_count, class_count=11, seed=0):

    rng = np.random.default_rng(seed)
    probs = rng.random((patch_count, class_count)).astype(np.float32)

    return probs / probs.sum(axis=1, keepdims=True)


def test_probability_image_has_original_size():

    layout = PatchLayout.from_image((200, 300), 84, 84)
    probs = make_probabilities(layout.patch_count)

    prob_image = vt.create_probability_image(probs, layout)

    assert prob_image.shape == (11, 200, 300)
    assert prob_image.dtype == np.float32

    # pixel inside the last patch
    np.testing.assert_allclose(prob_image[:, 100, 200], probs[5])

    # remainder outside all patches is not applicable
    assert np.isnan(prob_image[:, 190, 10]).all()
    assert np.isnan(prob_image[:, 10, 290]).all()


def test_probability_image_from_tiles():

    layout = PatchLayout.from_tiles((200, 300), 3, 2, 84, 84, 84)
    probs = make_probabilities(layout.patch_count, class_count=3)

    prob_image = vt.create_probability_image(probs, layout)

    x, y, w, h = layout.bounds(4)
    np.testing.assert_allclose(prob_image[:, y, x], probs[4])
    np.testing.assert_allclose(prob_image[:, y + h - 1, x + w - 1], probs[4])

    # gap in front of the first tile
    assert np.isnan(prob_image[:, 0, 0]).all()

    covered = ~np.isnan(prob_image[0])
    assert covered.sum() == 6 * 84 * 84


def test_probability_image_count_mismatch():

    layout = PatchLayout.from_image((200, 300), 84, 84)

    with pytest.raises(ValueError):
        vt.create_probability_image(make_probabilities(5), layout)


def test_spectrum_lut():

    lut = vt.spectrum_lut()

    assert lut.shape == (3, 256)
    assert lut.dtype == np.uint8
    assert tuple(lut[:, 0]) == (255, 0, 0)
    # hue of 1/3 is pure green
    assert tuple(lut[:, 85]) == (0, 255, 0)
    assert tuple(lut[:, 170]) == (0, 0, 255)


def test_lut_index():

    assert vt.lut_index(0, 11) == 0
    assert vt.lut_index(10, 11) == vt.LUT_MAX_INDEX
    assert vt.lut_index(5, 11) == 86
    assert vt.lut_index(0, 1) == 0


def test_max_index_first_maximum():

    assert vt.max_index(np.array([0.1, 0.4, 0.4, 0.1])) == 1


def test_patch_color_scaled_by_confidence():

    probs = np.zeros(11, dtype=np.float32)
    probs[0] = 0.5
    probs[3] = 0.5

    # first class wins the tie, red at half brightness
    assert vt.patch_color(probs) == (127, 0, 0, 255)
    assert vt.patch_color(probs, solid=True) == (127, 0, 0, 128)


def test_patch_color_out_of_focus_class():

    lut = vt.spectrum_lut()
    probs = np.zeros(11, dtype=np.float32)
    probs[10] = 1.0

    r, g, b, a = vt.patch_color(probs, lut=lut)

    assert (r, g, b) == tuple(int(v) for v in lut[:, vt.LUT_MAX_INDEX])
    assert a == 255


def test_overlay_outlines():

    layout = PatchLayout.from_image((200, 300), 84, 84)
    probs = make_probabilities(layout.patch_count)

    overlay = vt.create_overlay(probs, layout, solid_patches=False, border_width=4)
    rects = overlay.of_type(vt.Rect)

    assert len(rects) == 6
    assert (rects[1].x, rects[1].y, rects[1].width, rects[1].height) == (86, 2, 80, 80)
    assert rects[1].stroke_width == 4
    assert rects[1].fill_color is None
    assert rects[1].stroke_color == vt.patch_color(probs[1])


def test_overlay_solid_patches():

    layout = PatchLayout.from_image((200, 300), 84, 84)
    probs = make_probabilities(layout.patch_count)

    overlay = vt.create_overlay(probs, layout, solid_patches=True, border_width=4)
    rect = overlay.of_type(vt.Rect)[0]

    assert (rect.x, rect.y, rect.width, rect.height) == (0, 0, 84, 84)
    assert rect.stroke_color is None
    assert rect.fill_color[3] == vt.SOLID_OPACITY


def test_overlay_legend():

    layout = PatchLayout.from_image((200, 300), 84, 84)
    overlay = vt.create_overlay(make_probabilities(layout.patch_count), layout)

    texts = overlay.of_type(vt.Text)
    lines = overlay.of_type(vt.Line)

    assert [t.text for t in texts] == [vt.LABEL_GOOD, vt.LABEL_BAD]
    assert len(lines) == vt.LUT_MAX_INDEX

    bar_y = 200 - vt.BAR_HEIGHT - vt.BAR_PAD
    assert texts[0].x == vt.BAR_PAD and texts[0].y == bar_y

    bar_offset = 2 * vt.BAR_PAD + texts[0].width
    assert lines[0].x1 == bar_offset
    assert lines[-1].x1 == bar_offset + vt.LUT_MAX_INDEX - 1
    assert (lines[0].y1, lines[0].y2) == (bar_y, bar_y + vt.BAR_HEIGHT)
    assert texts[1].x == bar_offset + vt.LUT_MAX_INDEX + vt.BAR_PAD


def test_overlay_without_colorbar():

    layout = PatchLayout.from_image((168, 168), 84, 84)
    overlay = vt.create_overlay(make_probabilities(4), layout, add_colorbar=False)

    assert len(overlay) == 4


def test_overlay_to_napari():

    layout = PatchLayout.from_image((168, 168), 84, 84)
    overlay = vt.create_overlay(make_probabilities(4), layout, solid_patches=True)

    shapes_kwargs, points_kwargs = vt.overlay_to_napari(overlay)

    assert len(shapes_kwargs["data"]) == 4 + vt.LUT_MAX_INDEX
    assert shapes_kwargs["shape_type"][:4] == ["rectangle"] * 4
    assert shapes_kwargs["shape_type"][4] == "line"
    assert shapes_kwargs["edge_color"].shape == (4 + vt.LUT_MAX_INDEX, 4)

    # napari uses [row, column]
    np.testing.assert_array_equal(shapes_kwargs["data"][1], [[0, 84], [84, 168]])
    assert shapes_kwargs["face_color"][0][3] == pytest.approx(vt.SOLID_OPACITY / 255.0)

    assert points_kwargs["data"].shape == (2, 2)
    assert points_kwargs["features"]["label"] == [vt.LABEL_GOOD, vt.LABEL_BAD]


def test_plot_overlay():

    image = np.zeros((168, 252), dtype=np.uint16)
    layout = PatchLayout.from_image(image.shape, 84, 84)
    overlay = vt.create_overlay(make_probabilities(layout.patch_count), layout)

    ax = vt.plot_overlay(image, overlay)

    assert len(ax.patches) == 6
    assert len(ax.lines) == vt.LUT_MAX_INDEX
    assert len(ax.texts) == 2
    plt.close(ax.figure)
