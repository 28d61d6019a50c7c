# -*- coding: utf-8 -*-

#################################################################
# File        : patch_tools.py
# Version     : 0.1.0
# Date        : 19.10.2026
#
# Disclaimer: This code is purely experimental. Feel free to
# use it at your own risk.
#
#################################################################

from __future__ import annotations
from dataclasses import dataclass
import numpy as np
from focustools import images
from typing import Sequence, Tuple


def patch_shape_from_tensor(shape: Sequence[int]) -> Tuple[int, int, int]:
    """Validate the shape of the patches tensor [patches, height, width, 1].

    :param shape: shape of the patches tensor
    :type shape: tuple
    :return: tuple (number of patches, patch height, patch width)
    :rtype: tuple
    """

    shape = tuple(int(s) for s in shape)
    if len(shape) != 4 or shape[3] != 1:
        raise ValueError("Unexpected shape of the patches tensor: " + str(list(shape)))

    return shape[0], shape[1], shape[2]


@dataclass
class PatchLayout:
    """Position of every classified patch inside the original image.

    The origins are stored as [x, y] of the upper left corner and are in the
    same (row-major) order as the patches returned by the model.
    """

    image_shape: Tuple[int, int]
    patch_height: int
    patch_width: int
    origins: np.ndarray

    @property
    def patch_count(self) -> int:
        return len(self.origins)

    def bounds(self, p: int) -> Tuple[int, int, int, int]:

        x, y = self.origins[p]
        return int(x), int(y), self.patch_width, self.patch_height

    def check_count(self, count: int) -> None:

        if count != self.patch_count:
            raise ValueError("Model returned " + str(count) + " patches, but the image layout has " +
                             str(self.patch_count) + " patches")

    @classmethod
    def from_image(cls, image_shape: Tuple[int, int],
                   patch_height: int,
                   patch_width: int) -> PatchLayout:
        """Layout for an image which was fed into the model as a whole. The model
        cuts it into adjacent patches starting at the upper left corner, the
        remainder at the right and bottom edge is not classified.
        """

        patches_in_x = image_shape[1] // patch_width
        patches_in_y = image_shape[0] // patch_height

        ys, xs = np.mgrid[0:patches_in_y, 0:patches_in_x]
        origins = np.stack([xs.ravel() * patch_width, ys.ravel() * patch_height], axis=1)

        return cls(tuple(image_shape[:2]), patch_height, patch_width, origins.astype(int))

    @classmethod
    def from_tiles(cls, image_shape: Tuple[int, int],
                   x_tile_count: int,
                   y_tile_count: int,
                   tile_size: int,
                   patch_height: int,
                   patch_width: int) -> PatchLayout:
        """Layout for a mosaic of tiles created by images.tile. The model patches
        the mosaic, so every patch position is mapped back through the offset
        of the tile it belongs to.
        """

        if tile_size % patch_width != 0 or tile_size % patch_height != 0:
            raise ValueError("Tile size " + str(tile_size) + " is not a multiple of the patch size " +
                             str((patch_height, patch_width)))

        offsets_x = np.asarray(images.tile_offsets(x_tile_count, tile_size, image_shape[1]))
        offsets_y = np.asarray(images.tile_offsets(y_tile_count, tile_size, image_shape[0]))

        # patches of the mosaic, as if it was fed into the model as a whole
        mosaic = cls.from_image((y_tile_count * tile_size, x_tile_count * tile_size),
                                patch_height, patch_width)

        mx, my = mosaic.origins[:, 0], mosaic.origins[:, 1]
        origins = np.stack([offsets_x[mx // tile_size] + mx % tile_size,
                            offsets_y[my // tile_size] + my % tile_size], axis=1)

        return cls(tuple(image_shape[:2]), patch_height, patch_width, origins.astype(int))
