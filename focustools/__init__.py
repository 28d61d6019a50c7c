# __init__.py
# version of the focustools package
__version__ = "0.1.0"

from .images import validate_format, normalize, tile, tile_offset, tile_offsets, TILE_SIZE
from .patch_tools import PatchLayout
