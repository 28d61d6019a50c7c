# -*- coding: utf-8 -*-

#################################################################
# File        : visu_tools.py
# Version     : 0.1.0
# Date        : 19.10.2026
#
# Disclaimer: This code is purely experimental. Feel free to
# use it at your own risk.
#
#################################################################

from __future__ import annotations
from dataclasses import dataclass, field
import numpy as np
import matplotlib.pyplot as plt
import matplotlib.colors as colors
import matplotlib.patches as mpatches
from focustools.patch_tools import PatchLayout
from typing import List, Dict, Tuple, Optional, Any, Union

# class indices are scaled to (0, 172) instead of (0, 255) to avoid the high
# indices looping from blue and purple back into red where we started
LUT_MAX_INDEX = 172

# geometry of the color bar
BAR_HEIGHT = 24
BAR_PAD = 5

LABEL_GOOD = "In focus"
LABEL_BAD = "Out of focus"
LABEL_COLOR = (255, 255, 255, 255)
FONT_SIZE = 12

# opacity of the patch colors
SOLID_OPACITY = 128
OUTLINE_OPACITY = 255

Color = Tuple[int, int, int, int]


@dataclass
class Rect:
    x: int
    y: int
    width: int
    height: int
    stroke_color: Optional[Color] = None
    stroke_width: int = 0
    fill_color: Optional[Color] = None


@dataclass
class Line:
    x1: int
    y1: int
    x2: int
    y2: int
    stroke_color: Color = (255, 255, 255, 255)


@dataclass
class Text:
    x: int
    y: int
    text: str
    stroke_color: Color = LABEL_COLOR
    font_size: int = FONT_SIZE

    @property
    def width(self) -> int:
        # approximate width of the rendered text for a sans-serif font
        return int(round(len(self.text) * self.font_size * 0.6))


@dataclass
class Overlay:
    """Shapes drawn on top of an image, e.g. the classified patches and the legend."""

    shapes: List[Union[Rect, Line, Text]] = field(default_factory=list)

    def add(self, shape: Union[Rect, Line, Text]) -> None:
        self.shapes.append(shape)

    def of_type(self, shapetype: type) -> List[Any]:
        return [s for s in self.shapes if isinstance(s, shapetype)]

    def __len__(self) -> int:
        return len(self.shapes)


def create_probability_image(probabilities: np.ndarray, layout: PatchLayout) -> np.ndarray:
    """Synthesize an image matching the size of the original image with one channel
    per focus class. Each pixel inside a patch gets the probability of that patch
    being at the focus level of the channel, all other pixels are NaN.

    :param probabilities: probabilities with shape [patches, classes]
    :type probabilities: NumPy.Array
    :param layout: position of the patches inside the original image
    :type layout: PatchLayout
    :return: probability image with shape [classes, Y, X]
    :rtype: NumPy.Array
    """

    layout.check_count(probabilities.shape[0])
    class_count = probabilities.shape[1]

    prob_image = np.full((class_count,) + tuple(layout.image_shape), np.nan, dtype=np.float32)

    for p in range(layout.patch_count):
        x, y, w, h = layout.bounds(p)
        prob_image[:, y:y + h, x:x + w] = probabilities[p][:, np.newaxis, np.newaxis]

    return prob_image


def spectrum_lut() -> np.ndarray:
    """Get the spectrum color table with 256 entries, where entry i is the
    fully saturated and bright color with the hue i / 255.

    :return: color table with shape [3, 256]
    :rtype: NumPy.Array
    """

    hsv = np.ones((256, 3))
    hsv[:, 0] = np.arange(256) / 255.0
    rgb = colors.hsv_to_rgb(hsv)

    return np.floor(rgb * 255.0 + 0.5).astype(np.uint8).T


def max_index(values: np.ndarray) -> int:

    # first index in case of ties
    return int(np.argmax(values))


def lut_index(class_index: int, class_count: int) -> int:

    if class_count < 2:
        return 0

    return LUT_MAX_INDEX * class_index // (class_count - 1)


def patch_color(probs: np.ndarray,
                solid: bool = False,
                lut: Optional[np.ndarray] = None) -> Color:
    """Get the color for a single patch. The hue denotes the most likely focus
    class and the brightness denotes the confidence (probability) of the
    patch being at that class.

    :param probs: probabilities for all classes of the patch
    :type probs: NumPy.Array
    :param solid: color used for a semi-transparent fill, defaults to False
    :type solid: bool, optional
    :param lut: color table, defaults to the spectrum table
    :type lut: NumPy.Array, optional
    :return: color as (r, g, b, alpha)
    :rtype: tuple
    """

    if lut is None:
        lut = spectrum_lut()

    class_index = max_index(probs)
    confidence = float(probs[class_index])
    index = lut_index(class_index, len(probs))

    r, g, b = (int(lut[ch, index] * confidence) for ch in range(3))
    opacity = SOLID_OPACITY if solid else OUTLINE_OPACITY

    return r, g, b, opacity


def add_legend(overlay: Overlay, image_height: int, lut: Optional[np.ndarray] = None) -> Overlay:
    """Add a color bar with labels at both ends to the lower left of the image.
    """

    if lut is None:
        lut = spectrum_lut()

    bar_y = image_height - BAR_HEIGHT - BAR_PAD

    label_good = Text(BAR_PAD, bar_y, LABEL_GOOD)
    overlay.add(label_good)

    bar_offset = 2 * BAR_PAD + label_good.width

    overlay.add(Text(bar_offset + LUT_MAX_INDEX + BAR_PAD, bar_y, LABEL_BAD))

    for i in range(LUT_MAX_INDEX):
        bar_x = bar_offset + i
        color = (int(lut[0, i]), int(lut[1, i]), int(lut[2, i]), 255)
        overlay.add(Line(bar_x, bar_y, bar_x, bar_y + BAR_HEIGHT, stroke_color=color))

    return overlay


def create_overlay(probabilities: np.ndarray,
                   layout: PatchLayout,
                   solid_patches: bool = False,
                   border_width: int = 4,
                   add_colorbar: bool = True) -> Overlay:
    """Create an overlay visualizing the most likely focus class of each patch.

    :param probabilities: probabilities with shape [patches, classes]
    :type probabilities: NumPy.Array
    :param layout: position of the patches inside the original image
    :type layout: PatchLayout
    :param solid_patches: fill the patches semi-transparent instead of drawing boxes, defaults to False
    :type solid_patches: bool, optional
    :param border_width: thickness of the boxes, defaults to 4
    :type border_width: int, optional
    :param add_colorbar: add the color bar with the legend, defaults to True
    :type add_colorbar: bool, optional
    :return: overlay with all shapes
    :rtype: Overlay
    """

    layout.check_count(probabilities.shape[0])

    overlay = Overlay()
    lut = spectrum_lut()
    stroke_width = 0 if solid_patches else border_width

    for p in range(layout.patch_count):
        x, y, w, h = layout.bounds(p)
        color = patch_color(probabilities[p], solid=solid_patches, lut=lut)

        # keep the stroke inside the patch
        rect = Rect(x + stroke_width // 2, y + stroke_width // 2,
                    w - stroke_width, h - stroke_width)

        if solid_patches:
            rect.fill_color = color
        else:
            rect.stroke_color = color
            rect.stroke_width = stroke_width

        overlay.add(rect)

    if add_colorbar:
        add_legend(overlay, layout.image_shape[0], lut=lut)

    return overlay


def to_rgba(color: Optional[Color]) -> np.ndarray:

    if color is None:
        return np.zeros(4)

    return np.asarray(color, dtype=float) / 255.0


def overlay_to_napari(overlay: Overlay) -> Tuple[Dict[str, Any], Dict[str, Any]]:
    """Convert the overlay into the arguments for a napari shapes layer
    (rectangles and lines) and a napari points layer showing the text labels.
    napari uses [row, column] coordinates.

    :param overlay: overlay to convert
    :type overlay: Overlay
    :return: tuple (shapes layer kwargs, text points layer kwargs)
    :rtype: tuple(dict, dict)
    """

    data, shape_type, edge_color, face_color, edge_width = [], [], [], [], []

    for shape in overlay.shapes:
        if isinstance(shape, Rect):
            data.append(np.array([[shape.y, shape.x],
                                  [shape.y + shape.height, shape.x + shape.width]], dtype=float))
            shape_type.append("rectangle")
            edge_color.append(to_rgba(shape.stroke_color))
            face_color.append(to_rgba(shape.fill_color))
            edge_width.append(shape.stroke_width)

        elif isinstance(shape, Line):
            data.append(np.array([[shape.y1, shape.x1], [shape.y2, shape.x2]], dtype=float))
            shape_type.append("line")
            edge_color.append(to_rgba(shape.stroke_color))
            face_color.append(np.zeros(4))
            edge_width.append(1)

    shapes_kwargs = {"data": data,
                     "shape_type": shape_type,
                     "edge_color": np.array(edge_color).reshape(-1, 4),
                     "face_color": np.array(face_color).reshape(-1, 4),
                     "edge_width": edge_width}

    texts = overlay.of_type(Text)
    points_kwargs = {"data": np.array([[t.y, t.x] for t in texts], dtype=float).reshape(-1, 2),
                     "features": {"label": [t.text for t in texts]},
                     "text": {"string": "{label}",
                              "color": "white",
                              "size": FONT_SIZE,
                              "anchor": "upper_left"},
                     "size": 1,
                     "face_color": "transparent"}

    return shapes_kwargs, points_kwargs


def plot_overlay(image: np.ndarray,
                 overlay: Overlay,
                 ax: Optional[plt.Axes] = None,
                 cmap: str = "gray") -> plt.Axes:
    """Show the image and draw the overlay on top using matplotlib.

    :param image: 2D image
    :type image: NumPy.Array
    :param overlay: overlay to draw
    :type overlay: Overlay
    :param ax: axes to draw into, defaults to None (new figure)
    :type ax: matplotlib.Axes, optional
    :param cmap: colormap for the image, defaults to "gray"
    :type cmap: str, optional
    :return: the axes
    :rtype: matplotlib.Axes
    """

    if ax is None:
        fig, ax = plt.subplots(figsize=(10, 10 * image.shape[0] / max(image.shape[1], 1)))

    ax.imshow(image, cmap=cmap, interpolation="nearest")

    for shape in overlay.shapes:
        if isinstance(shape, Rect):
            filled = shape.fill_color is not None
            ax.add_patch(mpatches.Rectangle((shape.x - 0.5, shape.y - 0.5), shape.width, shape.height,
                                            fill=filled,
                                            facecolor=to_rgba(shape.fill_color) if filled else "none",
                                            edgecolor=to_rgba(shape.stroke_color) if shape.stroke_color else "none",
                                            linewidth=shape.stroke_width))

        elif isinstance(shape, Line):
            ax.plot([shape.x1, shape.x2], [shape.y1, shape.y2],
                    color=to_rgba(shape.stroke_color), linewidth=1)

        elif isinstance(shape, Text):
            ax.text(shape.x, shape.y, shape.text,
                    color=to_rgba(shape.stroke_color),
                    fontsize=shape.font_size,
                    ha="left", va="top")

    ax.set_xlim(-0.5, image.shape[1] - 0.5)
    ax.set_ylim(image.shape[0] - 0.5, -0.5)
    ax.set_axis_off()

    return ax
