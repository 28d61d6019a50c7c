# -*- coding: utf-8 -*-

#################################################################
# File        : images.py
# Version     : 0.1.0
# Date        : 19.10.2026
#
# Disclaimer: This code is purely experimental. Feel free to
# use it at your own risk.
#
#################################################################

from __future__ import annotations
import numpy as np
from skimage.util import dtype_limits
from typing import List

# edge length of a square tile, same as the patch size used by the focus model
TILE_SIZE = 84


def validate_format(image: np.ndarray) -> None:
    """Check that the image can be processed by the focus quality model.
    The model has been trained on raw 16-bit microscope images, so only
    2D images with an unsigned 16-bit pixel type are accepted.

    :param image: the image to check
    :type image: NumPy.Array
    :raises IOError: if the image is not 2D or not uint16
    """

    if image.ndim != 2:
        raise IOError("Can only process 2D images, not an image with " +
                      str(image.ndim) + " dimensions (" + str(list(image.shape)) + ")")

    if image.dtype != np.uint16:
        raise IOError("Can only process uint16 images. " +
                      "Please convert your image first to 16-bit.")


def normalize(image: np.ndarray) -> np.ndarray:
    """Normalize an image to float32 in range [0, 1] using the value range
    of its pixel type (not the actual min / max of the pixel data).

    :param image: input image
    :type image: NumPy.Array
    :return: normalized image
    :rtype: NumPy.Array
    """

    # get the range of the pixel type, e.g. [0, 65535] for uint16
    minvalue, maxvalue = dtype_limits(image, clip_negative=False)
    minvalue, maxvalue = float(minvalue), float(maxvalue)

    normalized = (image.astype(np.float64) - minvalue) / (maxvalue - minvalue)

    return normalized.astype(np.float32)


def tile_offset(i: int, total: int, tile_size: int, dim_size: int) -> int:
    """Get the offset of a single tile along one axis. The space which is
    not covered by tiles is distributed between and around the tiles as
    evenly as possible, so the remainder pixels do not pile up at one edge.

    :param i: index of the tile
    :type i: int
    :param total: number of tiles along the axis
    :type total: int
    :param tile_size: size of a tile along the axis
    :type tile_size: int
    :param dim_size: size of the image along the axis
    :type dim_size: int
    :return: offset of the tile
    :rtype: int
    """

    # the total amount of space needing to be distributed between tiles
    space = dim_size - tile_size * total

    if space < 0:
        raise ValueError(str(total) + " tiles of size " + str(tile_size) +
                         " do not fit into a dimension of size " + str(dim_size))

    # tile offset plus the gap offset, minimizing rounding error
    return i * tile_size + (i + 1) * space // (total + 1)


def tile_offsets(total: int, tile_size: int, dim_size: int) -> List[int]:

    return [tile_offset(i, total, tile_size, dim_size) for i in range(total)]


def tile(image: np.ndarray,
         x_tile_count: int,
         y_tile_count: int,
         x_tile_size: int = TILE_SIZE,
         y_tile_size: int = TILE_SIZE) -> np.ndarray:
    """Cut out a grid of equally spaced tiles from a 2D image [Y, X] and
    concatenate them into a single mosaic. The tiles are arranged in
    row-major order, so the mosaic has the shape
    [y_tile_count * y_tile_size, x_tile_count * x_tile_size].

    :param image: 2D image
    :type image: NumPy.Array
    :param x_tile_count: number of tiles in X
    :type x_tile_count: int
    :param y_tile_count: number of tiles in Y
    :type y_tile_count: int
    :param x_tile_size: width of a tile, defaults to TILE_SIZE
    :type x_tile_size: int, optional
    :param y_tile_size: height of a tile, defaults to TILE_SIZE
    :type y_tile_size: int, optional
    :return: mosaic with all tiles
    :rtype: NumPy.Array
    """

    if x_tile_count < 1 or y_tile_count < 1:
        raise ValueError("Tile counts must be positive, not " +
                         str((x_tile_count, y_tile_count)))

    height, width = image.shape[0], image.shape[1]
    offsets_x = tile_offsets(x_tile_count, x_tile_size, width)
    offsets_y = tile_offsets(y_tile_count, y_tile_size, height)

    strips = []
    for y in offsets_y:
        tiles = [image[y:y + y_tile_size, x:x + x_tile_size] for x in offsets_x]
        strips.append(np.concatenate(tiles, axis=1))

    return np.concatenate(strips, axis=0)
