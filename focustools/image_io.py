# -*- coding: utf-8 -*-

#################################################################
# File        : image_io.py
# Version     : 0.1.0
# Date        : 19.10.2026
#
# Disclaimer: This code is purely experimental. Feel free to
# use it at your own risk.
#
#################################################################

from __future__ import annotations
import logging
from pathlib import Path
import numpy as np
import tifffile
from skimage import io
from typing import Union

logger = logging.getLogger(__name__)

TIFF_SUFFIXES = (".tif", ".tiff")


def read_image2d(filename: Union[str, Path]) -> np.ndarray:
    """Read an image from disk. TIFF files are read using tifffile, all other
    formats (e.g. PNG) using scikit-image. Dimensions of size 1 are removed,
    so a single plane ends up as a 2D array [Y, X].

    :param filename: image file
    :type filename: str
    :return: the image array
    :rtype: NumPy.Array
    """

    filename = str(filename)

    if filename.lower().endswith(TIFF_SUFFIXES):
        array = tifffile.imread(filename)
    else:
        array = io.imread(filename)

    array = np.squeeze(array)
    logger.info("Read image %s with shape %s and type %s", filename, array.shape, array.dtype)

    return array


def write_probability_image(filename: Union[str, Path], prob_image: np.ndarray) -> str:
    """Write the probability image [C, Y, X] as float32 TIFF.

    :param filename: file to write
    :type filename: str
    :param prob_image: probability image with one channel per focus class
    :type prob_image: NumPy.Array
    :return: the filename
    :rtype: str
    """

    tifffile.imwrite(str(filename), prob_image.astype(np.float32),
                     photometric="minisblack",
                     metadata={"axes": "CYX"})
    logger.info("Saved probability image: %s", filename)

    return str(filename)
