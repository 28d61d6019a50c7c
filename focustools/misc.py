# -*- coding: utf-8 -*-

#################################################################
# File        : misc.py
# Version     : 0.1.0
# Date        : 19.10.2026
#
# Disclaimer: The code is purely experimental. Feel free to
# use it at your own risk.
#
#################################################################

from __future__ import annotations
import sys
import logging
from pathlib import Path
from typing import Optional


def openfile(directory: str,
             title: str = "Open Microscope Image File",
             ftypename: str = "Image Files",
             extension: str = "*.tif *.tiff *.png") -> str:
    """ Open a simple Tk dialog to select a file.

    :param directory: default directory
    :param title: title of the dialog window
    :param ftypename: name of allowed file type
    :param extension: extension of allowed file type
    :return: filepath object for the selected
    """

    from tkinter import filedialog, Tk

    # request input image path from user
    root = Tk()
    root.withdraw()
    input_path = filedialog.askopenfile(title=title,
                                        initialdir=directory,
                                        filetypes=[(ftypename, extension)])
    root.destroy()

    if input_path is not None:
        return input_path.name
    if input_path is None:
        return ""


def get_fname_woext(filepath: str) -> str:
    """Get the complete path of a file without the extension
    It also will works for extensions like c:\\myfile.abc.xyz
    The output will be: c:\\myfile

    :param filepath: complete fiepath
    :type filepath: str
    :return: complete filepath without extension
    :rtype: str
    """
    # create empty string
    real_extension = ''

    # get all part of the file extension
    sufs = Path(filepath).suffixes
    for s in sufs:
        real_extension = real_extension + s

    # remove real extension from filepath
    filepath_woext = filepath[:len(filepath) - len(real_extension)] if real_extension else filepath

    return filepath_woext


def setup_logging(level: int = logging.INFO, log_file: Optional[str] = None) -> logging.Logger:
    """Configure the logger for the 'focustools' namespace.

    :param level: logging level, defaults to logging.INFO
    :type level: int, optional
    :param log_file: optional path to save logs to a file
    :type log_file: str, optional
    :return: the package logger
    :rtype: logging.Logger
    """

    logger = logging.getLogger("focustools")
    logger.setLevel(level)

    # avoid duplicate logs when called more than once
    if logger.hasHandlers():
        logger.handlers.clear()

    formatter = logging.Formatter('%(asctime)s - %(name)s - %(levelname)s - %(message)s',
                                  datefmt='%H:%M:%S')

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(level)
    console_handler.setFormatter(formatter)
    logger.addHandler(console_handler)

    if log_file:
        file_handler = logging.FileHandler(log_file, mode='w', encoding='utf-8')
        file_handler.setLevel(level)
        file_handler.setFormatter(formatter)
        logger.addHandler(file_handler)

    return logger
