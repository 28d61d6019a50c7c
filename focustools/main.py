# -*- coding: utf-8 -*-

#################################################################
# File        : main.py
# Version     : 0.1.0
# Date        : 19.10.2026
#
# Disclaimer: This code is purely experimental. Feel free to
# use it at your own risk.
#
#################################################################

"""
Test drive for the focus quality command.

Usage:
  Start napari, open an image and dock the command widget:
    focustools [image.tif]

  Run without GUI and save the results next to the image:
    focustools image.tif --headless --tiles 4 4 --solid
"""

from __future__ import annotations
import os
import logging
import argparse
import matplotlib
import matplotlib.pyplot as plt
from focustools import misc
from focustools import image_io
from focustools import tf_model
from focustools import visu_tools as vt
from focustools.classifier import ClassifierSettings, FocusQualityClassifier
from typing import List, Optional

logger = logging.getLogger(__name__)


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:

    parser = argparse.ArgumentParser(description="Microscope image focus quality classifier")
    parser.add_argument("image", nargs="?", default="",
                        help="16-bit greyscale image to classify (file dialog if omitted)")
    parser.add_argument("--model", default=tf_model.MODEL_URL,
                        help="URL, zip archive or folder of the SavedModel")
    parser.add_argument("--cache-dir", default=None,
                        help="directory for downloaded models")
    parser.add_argument("--headless", action="store_true",
                        help="run without GUI and save the results to disk")
    parser.add_argument("--no-probability-image", action="store_true",
                        help="do not create the probability image")
    parser.add_argument("--no-overlay", action="store_true",
                        help="do not create the overlay")
    parser.add_argument("--solid", action="store_true",
                        help="show patches as solid rectangles")
    parser.add_argument("--border-width", type=int, default=4,
                        help="border width of the patch boxes (1-10)")
    parser.add_argument("--tiles", type=int, nargs=2, default=(0, 0), metavar=("X", "Y"),
                        help="number of tiles in X and Y, 0 0 classifies the whole image")
    parser.add_argument("--output", default=None,
                        help="output folder for headless mode, defaults to the folder of the image")
    parser.add_argument("--log-file", default=None)
    parser.add_argument("--verbose", action="store_true")

    return parser.parse_args(argv)


def settings_from_args(args: argparse.Namespace) -> ClassifierSettings:

    return ClassifierSettings(model_source=args.model,
                              cache_dir=args.cache_dir,
                              create_probability_image=not args.no_probability_image,
                              overlay_patches=not args.no_overlay,
                              solid_patches=args.solid,
                              border_width=args.border_width,
                              tile_count_x=args.tiles[0],
                              tile_count_y=args.tiles[1])


def run_headless(filename: str, settings: ClassifierSettings, outputdir: Optional[str] = None) -> List[str]:
    """Classify an image and save the probability image and overlay figure.

    :return: list of written files
    :rtype: list
    """

    image = image_io.read_image2d(filename)
    result = FocusQualityClassifier(settings).run(image)
    if result is None:
        return []

    basename = misc.get_fname_woext(os.path.basename(filename))
    outputdir = outputdir if outputdir is not None else os.path.dirname(os.path.abspath(filename))
    os.makedirs(outputdir, exist_ok=True)
    outputs = []

    if result.probability_image is not None:
        probfile = os.path.join(outputdir, basename + "_probabilities.ome.tiff")
        outputs.append(image_io.write_probability_image(probfile, result.probability_image))

    if result.overlay is not None:
        overlayfile = os.path.join(outputdir, basename + "_focus_overlay.png")
        ax = vt.plot_overlay(image, result.overlay)
        ax.figure.savefig(overlayfile, dpi=100, bbox_inches="tight")
        plt.close(ax.figure)
        logger.info("Saved overlay: %s", overlayfile)
        outputs.append(overlayfile)

    return outputs


def run_gui(filename: str, settings: ClassifierSettings) -> None:

    import napari
    from focustools import napari_focustools as nap

    # load an image
    if not filename:
        filename = misc.openfile(directory=os.getcwd())
    if not filename:
        return

    viewer = napari.Viewer()
    image = image_io.read_image2d(filename)
    viewer.add_image(image, name=os.path.basename(filename))

    # dock the command
    widget = nap.FocusQualityWidget(viewer)
    widget.set_settings(settings)
    viewer.window.add_dock_widget(widget, name="Microscope Image Focus Quality", area="right")

    napari.run()


def main(argv: Optional[List[str]] = None) -> int:

    args = parse_args(argv)
    misc.setup_logging(logging.DEBUG if args.verbose else logging.INFO, log_file=args.log_file)

    try:
        settings = settings_from_args(args)
    except ValueError as error:
        logger.error(str(error))
        return 2

    if args.headless:
        if not args.image:
            logger.error("Headless mode requires an image")
            return 2
        matplotlib.use("Agg")
        outputs = run_headless(args.image, settings, outputdir=args.output)
        return 0 if outputs else 1

    run_gui(args.image, settings)
    return 0
