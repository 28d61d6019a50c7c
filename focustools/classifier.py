# -*- coding: utf-8 -*-

#################################################################
# File        : classifier.py
# Version     : 0.1.0
# Date        : 19.10.2026
#
# Disclaimer: This code is purely experimental. Feel free to
# use it at your own risk.
#
#################################################################

"""
Command to apply the microscope image focus quality classifier model on an
input (16-bit, greyscale) image.

The model has been trained on raw 16-bit microscope images with integer-valued
inputs in [0, 65535], where the black level is usually in [0, ~1000] and the
typical brightness of cells is in [~1000, ~10,000].

The command optionally produces a multi-channel image of probability values
where each channel corresponds to one focus class, and optionally creates an
overlay to visualize the most likely focus class of each region.
"""

from __future__ import annotations
import logging
from dataclasses import dataclass
from pathlib import Path
from time import perf_counter
import numpy as np
from focustools import images
from focustools import tf_model
from focustools import visu_tools as vt
from focustools.patch_tools import PatchLayout, patch_shape_from_tensor
from typing import Callable, Optional, Union

logger = logging.getLogger(__name__)

BORDER_WIDTH_MIN = 1
BORDER_WIDTH_MAX = 10


@dataclass
class ClassifierSettings:
    """Parameters of the focus quality command.

    tile_count_x / tile_count_y = 0 feeds the whole image into the model,
    otherwise a mosaic of tile_count_x * tile_count_y equally spaced tiles
    of size tile_size is fed.
    """

    model_source: str = tf_model.MODEL_URL
    model_name: str = tf_model.MODEL_NAME
    cache_dir: Optional[Union[str, Path]] = None
    create_probability_image: bool = True
    overlay_patches: bool = True
    solid_patches: bool = False
    border_width: int = 4
    tile_count_x: int = 0
    tile_count_y: int = 0
    tile_size: int = images.TILE_SIZE

    def __post_init__(self) -> None:

        if not BORDER_WIDTH_MIN <= self.border_width <= BORDER_WIDTH_MAX:
            raise ValueError("border_width must be in [" + str(BORDER_WIDTH_MIN) + ", " +
                             str(BORDER_WIDTH_MAX) + "], not " + str(self.border_width))

        if self.tile_count_x < 0 or self.tile_count_y < 0:
            raise ValueError("Tile counts must not be negative")

        if (self.tile_count_x == 0) != (self.tile_count_y == 0):
            raise ValueError("Either both or none of the tile counts must be set")

        if self.tile_size < 1:
            raise ValueError("tile_size must be positive, not " + str(self.tile_size))

    @property
    def use_tiles(self) -> bool:
        return self.tile_count_x > 0 and self.tile_count_y > 0


@dataclass
class ClassifierResult:
    probabilities: np.ndarray
    layout: PatchLayout
    probability_image: Optional[np.ndarray] = None
    overlay: Optional[vt.Overlay] = None

    @property
    def class_count(self) -> int:
        return self.probabilities.shape[1]

    def most_likely_classes(self) -> np.ndarray:
        return np.argmax(self.probabilities, axis=1)


class FocusQualityClassifier:

    def __init__(self, settings: Optional[ClassifierSettings] = None,
                 model_loader: Callable[..., tf_model.FocusModel] = tf_model.load_model) -> None:

        self.settings = settings if settings is not None else ClassifierSettings()
        self.model_loader = model_loader

    def run(self, image: np.ndarray) -> Optional[ClassifierResult]:
        """Classify the focus quality of all patches of the image.
        Errors are reported to the log, in that case None is returned.

        :param image: 2D uint16 image [Y, X]
        :type image: NumPy.Array
        :return: the result or None if the command failed
        :rtype: ClassifierResult
        """

        try:
            return self.classify(image)
        except Exception:
            logger.exception("Focus quality classification failed")
            return None

    def classify(self, image: np.ndarray) -> ClassifierResult:
        """Same as run, but errors are raised instead of logged.
        """

        settings = self.settings

        images.validate_format(image)
        tensor = images.normalize(image)

        if settings.use_tiles:
            tensor = images.tile(tensor, settings.tile_count_x, settings.tile_count_y,
                                 settings.tile_size, settings.tile_size)
            logger.debug("Tiled image into %d x %d tiles, mosaic shape: %s",
                         settings.tile_count_x, settings.tile_count_y, tensor.shape)

        with self.model_loader(settings.model_source,
                               name=settings.model_name,
                               cache_dir=settings.cache_dir) as model:

            # run the model
            start = perf_counter()
            probabilities, patches = model.run(tensor)
            end = perf_counter()
            logger.info("Ran image through model in %dms", (end - start) * 1000)

        return self.process_patches(image.shape, probabilities, patches.shape)

    def create_layout(self, image_shape, patch_height: int, patch_width: int) -> PatchLayout:

        settings = self.settings
        if settings.use_tiles:
            return PatchLayout.from_tiles(image_shape, settings.tile_count_x, settings.tile_count_y,
                                          settings.tile_size, patch_height, patch_width)

        return PatchLayout.from_image(image_shape, patch_height, patch_width)

    def process_patches(self, image_shape, probabilities: np.ndarray, patches_shape) -> ClassifierResult:

        # extract probability values
        probabilities = np.asarray(probabilities, dtype=np.float32)
        logger.debug("Probabilities shape: %s", list(probabilities.shape))
        if probabilities.ndim != 2:
            raise ValueError("Unexpected shape of the probabilities tensor: " +
                             str(list(probabilities.shape)))

        # extract and validate patch layout
        logger.debug("Patches shape: %s", list(patches_shape))
        patch_count, patch_height, patch_width = patch_shape_from_tensor(patches_shape)
        if patch_count != probabilities.shape[0]:
            raise ValueError("Number of patches (" + str(patch_count) + ") and probabilities (" +
                             str(probabilities.shape[0]) + ") do not match")

        layout = self.create_layout(image_shape, patch_height, patch_width)
        layout.check_count(patch_count)

        # dump probabilities to the log
        for p in range(patch_count):
            logger.info("Patch %02d probabilities: %s", p, np.array2string(probabilities[p], precision=4))

        result = ClassifierResult(probabilities, layout)

        # synthesize matched-size image with computed probabilities
        if self.settings.create_probability_image:
            result.probability_image = vt.create_probability_image(probabilities, layout)

        if self.settings.overlay_patches:
            result.overlay = vt.create_overlay(probabilities, layout,
                                               solid_patches=self.settings.solid_patches,
                                               border_width=self.settings.border_width)

        return result
