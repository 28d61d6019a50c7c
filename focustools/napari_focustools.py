# -*- coding: utf-8 -*-

#################################################################
# File        : napari_focustools.py
# Version     : 0.1.0
# Date        : 19.10.2026
#
# Disclaimer: This code is purely experimental. Feel free to
# use it at your own risk.
#
#################################################################

from __future__ import annotations
import logging
import dataclasses
import numpy as np
import napari
from PyQt5.QtWidgets import (

    QVBoxLayout,
    QFormLayout,
    QWidget,
    QCheckBox,
    QComboBox,
    QPushButton,
    QLineEdit,
    QSlider,
    QSpinBox,
    QLabel

)
from PyQt5.QtCore import Qt
from focustools import tf_model
from focustools import visu_tools as vt
from focustools.classifier import (ClassifierResult, ClassifierSettings, FocusQualityClassifier,
                                   BORDER_WIDTH_MIN, BORDER_WIDTH_MAX)
from typing import List, Optional

logger = logging.getLogger(__name__)

PROBABILITY_LAYER_NAME = "Probabilities"
OVERLAY_LAYER_NAME = "Focus patches"
LEGEND_LAYER_NAME = "Focus legend"


class FocusQualityWidget(QWidget):
    """Dock widget holding all parameters of the focus quality command.
    """

    def __init__(self, viewer: napari.Viewer) -> None:

        super(QWidget, self).__init__()

        self.viewer = viewer

        # parameters without a control, e.g. the cache directory
        self.base_settings = ClassifierSettings()
        defaults = self.base_settings

        self.layout = QVBoxLayout(self)
        form = QFormLayout()

        self.image_combo = QComboBox()
        form.addRow(QLabel("Microscope Image"), self.image_combo)

        self.model_edit = QLineEdit(defaults.model_source)
        self.model_edit.setToolTip("URL, zip archive or folder of the SavedModel")
        form.addRow(QLabel("Model"), self.model_edit)

        self.prob_check = QCheckBox("Generate probability image")
        self.prob_check.setChecked(defaults.create_probability_image)
        self.prob_check.setToolTip("When checked, a multi-channel image will be created with one channel "
                                   "per focus level, and each value corresponding to the probability "
                                   "of that sample being at that focus level.")
        form.addRow(self.prob_check)

        self.overlay_check = QCheckBox("Overlay probability patches")
        self.overlay_check.setChecked(defaults.overlay_patches)
        self.overlay_check.setToolTip("When checked, each classified region of the image will be overlaid "
                                      "with a color whose hue denotes the most likely focus level and "
                                      "whose brightness denotes the confidence of the region being at that level.")
        form.addRow(self.overlay_check)

        self.solid_check = QCheckBox("Show patches as solid rectangles")
        self.solid_check.setChecked(defaults.solid_patches)
        self.solid_check.setToolTip("When checked, overlaid probability patches will be filled "
                                    "semi-transparent and solid; when unchecked, they will be drawn "
                                    "as hollow boundary boxes.")
        form.addRow(self.solid_check)

        self.border_slider = QSlider(Qt.Horizontal)
        self.border_slider.setRange(BORDER_WIDTH_MIN, BORDER_WIDTH_MAX)
        self.border_slider.setValue(defaults.border_width)
        self.border_slider.setToolTip("When drawing probability patches as boundary boxes, "
                                      "this option controls the box thickness.")
        form.addRow(QLabel("Displayed patch border width"), self.border_slider)

        self.tiles_x_spin = QSpinBox()
        self.tiles_x_spin.setRange(0, 256)
        self.tiles_x_spin.setValue(defaults.tile_count_x)
        form.addRow(QLabel("Tile count X (0 = whole image)"), self.tiles_x_spin)

        self.tiles_y_spin = QSpinBox()
        self.tiles_y_spin.setRange(0, 256)
        self.tiles_y_spin.setValue(defaults.tile_count_y)
        form.addRow(QLabel("Tile count Y (0 = whole image)"), self.tiles_y_spin)

        self.layout.addLayout(form)

        self.run_button = QPushButton("Run")
        self.run_button.clicked.connect(self.run)
        self.layout.addWidget(self.run_button)
        self.layout.addStretch()

        # keep the list of images in sync with the viewer
        self.viewer.layers.events.inserted.connect(self.update_image_list)
        self.viewer.layers.events.removed.connect(self.update_image_list)
        self.update_image_list()

    def image_layers(self) -> List[napari.layers.Image]:

        return [layer for layer in self.viewer.layers
                if isinstance(layer, napari.layers.Image) and not layer.name.startswith(PROBABILITY_LAYER_NAME)]

    def update_image_list(self, event=None) -> None:

        current = self.image_combo.currentText()
        self.image_combo.clear()
        self.image_combo.addItems([layer.name for layer in self.image_layers()])

        index = self.image_combo.findText(current)
        if index >= 0:
            self.image_combo.setCurrentIndex(index)

    def set_settings(self, settings: ClassifierSettings) -> None:
        """Show the given parameters in the controls, e.g. the ones from the command line.
        """

        self.base_settings = settings
        self.model_edit.setText(str(settings.model_source))
        self.prob_check.setChecked(settings.create_probability_image)
        self.overlay_check.setChecked(settings.overlay_patches)
        self.solid_check.setChecked(settings.solid_patches)
        self.border_slider.setValue(settings.border_width)
        self.tiles_x_spin.setValue(settings.tile_count_x)
        self.tiles_y_spin.setValue(settings.tile_count_y)

    def settings(self) -> ClassifierSettings:

        return dataclasses.replace(self.base_settings,
                                   model_source=self.model_edit.text().strip() or tf_model.MODEL_URL,
                                   create_probability_image=self.prob_check.isChecked(),
                                   overlay_patches=self.overlay_check.isChecked(),
                                   solid_patches=self.solid_check.isChecked(),
                                   border_width=self.border_slider.value(),
                                   tile_count_x=self.tiles_x_spin.value(),
                                   tile_count_y=self.tiles_y_spin.value())

    def run(self) -> Optional[ClassifierResult]:

        name = self.image_combo.currentText()
        if not name:
            logger.error("No image selected")
            return None

        try:
            settings = self.settings()
        except ValueError:
            logger.exception("Invalid parameters")
            return None

        image_layer = self.viewer.layers[name]
        result = FocusQualityClassifier(settings).run(np.asarray(image_layer.data))

        if result is not None:
            show_results(self.viewer, result, image_layer)

        return result


def remove_layers(viewer: napari.Viewer, prefixes: List[str]) -> None:

    for layer in list(viewer.layers):
        if layer.name.startswith(tuple(prefixes)):
            viewer.layers.remove(layer)


def show_results(viewer: napari.Viewer,
                 result: ClassifierResult,
                 image_layer: Optional[napari.layers.Image] = None) -> List[napari.layers.Layer]:
    """Add the probability image and the overlay of a classifier result to the viewer.
    Layers of a previous run are replaced.

    :param viewer: the napari viewer
    :type viewer: napari.Viewer
    :param result: result of the focus quality command
    :type result: ClassifierResult
    :param image_layer: layer of the classified image, used for the scaling
    :type image_layer: napari.layers.Image, optional
    :return: list of new layers
    :rtype: list
    """

    scale = image_layer.scale if image_layer is not None else None
    remove_layers(viewer, [PROBABILITY_LAYER_NAME, OVERLAY_LAYER_NAME, LEGEND_LAYER_NAME])

    napari_layers = []

    if result.probability_image is not None:
        # one grayscale channel per focus class
        class_count = result.probability_image.shape[0]
        new_layers = viewer.add_image(result.probability_image,
                                      channel_axis=0,
                                      name=[PROBABILITY_LAYER_NAME + " " + str(c) for c in range(class_count)],
                                      colormap="gray",
                                      contrast_limits=[0.0, 1.0],
                                      scale=scale,
                                      visible=False)
        napari_layers.extend(new_layers)

    if result.overlay is not None:
        shapes_kwargs, points_kwargs = vt.overlay_to_napari(result.overlay)

        napari_layers.append(viewer.add_shapes(name=OVERLAY_LAYER_NAME, scale=scale, **shapes_kwargs))
        napari_layers.append(viewer.add_points(name=LEGEND_LAYER_NAME, scale=scale, **points_kwargs))

    return napari_layers
