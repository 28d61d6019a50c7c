# -*- coding: utf-8 -*-

#################################################################
# File        : tf_model.py
# Version     : 0.1.0
# Date        : 19.10.2026
#
# Disclaimer: This code is purely experimental. Feel free to
# use it at your own risk.
#
#################################################################

from __future__ import annotations
import os
import logging
import hashlib
import shutil
import zipfile
import urllib.request
from pathlib import Path
from time import perf_counter
import numpy as np
import tensorflow as tf
from tqdm import tqdm
from typing import Dict, Optional, Tuple

logger = logging.getLogger(__name__)

# silence tensorflow output
logging.getLogger("tensorflow").setLevel(logging.ERROR)

MODEL_URL = "https://storage.googleapis.com/microscope-image-quality/static/model/fiji/microscope-image-quality-model.zip"

MODEL_NAME = "microscope-image-quality"

# same as the tag used when the model was exported
MODEL_TAG = "inference"

# same as tf.saved_model.DEFAULT_SERVING_SIGNATURE_DEF_KEY
DEFAULT_SERVING_SIGNATURE_DEF_KEY = "serving_default"

# names of the signature endpoints, in sync with the model exporter
INPUT_KEY = "input"
PROBABILITIES_KEY = "probabilities"
PATCHES_KEY = "patches"

SAVED_MODEL_FILENAME = "saved_model.pb"

# written next to an unpacked model, identifies the archive it came from
SOURCE_STAMP_FILENAME = ".source"


def default_cache_dir() -> Path:

    cache_dir = os.environ.get("FOCUSTOOLS_CACHE_DIR")
    if cache_dir:
        return Path(cache_dir)

    return Path.home() / ".focustools" / "models"


def op_name(name: str) -> str:
    """The signature inputs and outputs contain names of the form
    <operation_name>:<output_index>, where for this model <output_index>
    is always 0. This function trims the :0 suffix to get the operation name.

    :param name: tensor name from the signature
    :type name: str
    :return: name of the operation
    :rtype: str
    """

    if name.endswith(":0"):
        return name[:name.rindex(":0")]

    return name


def is_url(source: str) -> bool:

    return str(source).lower().startswith(("http://", "https://"))


def download_file(url: str, target: Path) -> Path:
    """Download a file into the given target path, if it does not already exist.

    :param url: url to download from
    :type url: str
    :param target: path of the downloaded file
    :type target: Path
    :return: path to the downloaded file
    :rtype: Path
    """

    if target.exists():
        logger.info("Using cached model archive: %s", target)
        return target

    target.parent.mkdir(parents=True, exist_ok=True)
    partial = target.with_name(target.name + ".part")

    logger.info("Downloading: %s", url)
    try:
        with urllib.request.urlopen(url) as response, open(partial, "wb") as out:
            total = int(response.headers.get("Content-Length") or 0)
            with tqdm(total=total or None, unit="B", unit_scale=True, desc=target.name) as pbar:
                while True:
                    chunk = response.read(1 << 16)
                    if not chunk:
                        break
                    out.write(chunk)
                    pbar.update(len(chunk))
    except OSError as error:
        partial.unlink(missing_ok=True)
        raise IOError("Could not download model from " + url + ": " + str(error)) from error

    partial.replace(target)
    logger.info("File downloaded successfully: %s", target)

    return target


def find_saved_model_dir(folder: Path) -> Path:
    """Find the directory containing the saved_model.pb, which is either
    the folder itself or a subfolder, depending on how the archive was packed.
    """

    if (folder / SAVED_MODEL_FILENAME).is_file():
        return folder

    candidates = sorted(folder.rglob(SAVED_MODEL_FILENAME))
    if not candidates:
        raise IOError("No " + SAVED_MODEL_FILENAME + " found in " + str(folder))

    return candidates[0].parent


def cache_key(source: str, name: str = MODEL_NAME) -> str:
    """Get the name of the cache entry for a model source. Every URL and every
    local archive gets its own entry, e.g. microscope-image-quality-1a2b3c4d

    :param source: URL or path of the model archive
    :type source: str
    :param name: readable prefix of the entry, defaults to MODEL_NAME
    :type name: str, optional
    :return: name of the cache entry
    :rtype: str
    """

    if not is_url(source):
        source = str(Path(source).expanduser().resolve())

    return name + "-" + hashlib.sha1(str(source).encode("utf-8")).hexdigest()[:8]


def archive_stamp(archive: Path) -> str:

    # path, size and modification time of the archive
    stat = archive.stat()

    return "\n".join([str(archive.resolve()), str(stat.st_size), str(stat.st_mtime_ns)])


def unpack_model(archive: Path, model_dir: Path) -> Path:
    """Unpack a zipped SavedModel into model_dir. An already unpacked model
    is reused as long as it was unpacked from the very same archive, i.e. the
    path, size and modification time of the archive did not change.

    :param archive: zip archive containing the SavedModel
    :type archive: Path
    :param model_dir: directory to unpack the archive into
    :type model_dir: Path
    :return: directory containing the saved_model.pb
    :rtype: Path
    """

    stamp = archive_stamp(archive)
    stampfile = model_dir / SOURCE_STAMP_FILENAME

    if stampfile.is_file() and stampfile.read_text(encoding="utf-8") == stamp:
        try:
            return find_saved_model_dir(model_dir)
        except IOError:
            logger.warning("Cached model in %s is incomplete, unpacking again", model_dir)

    if model_dir.exists():
        shutil.rmtree(model_dir)

    try:
        with zipfile.ZipFile(archive) as zf:
            zf.extractall(model_dir)
    except zipfile.BadZipFile as error:
        raise IOError("Not a valid model archive: " + str(archive)) from error

    stampfile.write_text(stamp, encoding="utf-8")
    logger.info("Unpacked model archive %s into %s", archive, model_dir)

    return find_saved_model_dir(model_dir)


def resolve_model_dir(source: str,
                      name: str = MODEL_NAME,
                      cache_dir: Optional[Path] = None) -> Path:
    """Get the local SavedModel directory for a model source, which can be
    an URL pointing to a zip archive, a local zip archive or a local
    SavedModel directory. Downloads and unpacked archives are cached per source.
    """

    cache_dir = Path(cache_dir) if cache_dir is not None else default_cache_dir()

    if is_url(source):
        key = cache_key(source, name)
        archive = download_file(source, cache_dir / (key + ".zip"))
        return unpack_model(archive, cache_dir / key)

    path = Path(source).expanduser()
    if path.is_dir():
        return find_saved_model_dir(path)

    if path.is_file() and zipfile.is_zipfile(path):
        return unpack_model(path, cache_dir / cache_key(str(path), name))

    raise IOError("Model source is neither an URL, a zip archive nor a SavedModel folder: " + str(source))


class FocusModel:
    """A SavedModel loaded into its own graph and session, together with the
    resolved tensor names of the serving signature.
    """

    def __init__(self, session: tf.compat.v1.Session,
                 endpoints: Dict[str, str],
                 export_dir: Optional[Path] = None) -> None:

        self.session = session
        self.endpoints = endpoints
        self.export_dir = export_dir

    def tensor(self, key: str) -> tf.Tensor:

        # look up the tensor via the operation name as listed in the signature
        operation = self.session.graph.get_operation_by_name(op_name(self.endpoints[key]))

        return operation.outputs[0]

    def run(self, image: np.ndarray) -> Tuple[np.ndarray, np.ndarray]:
        """Run a normalized 2D image through the model.

        :param image: normalized float32 image [Y, X]
        :type image: NumPy.Array
        :return: tuple (probabilities [patches, classes], patches [patches, height, width, 1])
        :rtype: tuple(NumPy.Array, NumPy.Array)
        """

        probabilities, patches = self.session.run(
            [self.tensor(PROBABILITIES_KEY), self.tensor(PATCHES_KEY)],
            feed_dict={self.tensor(INPUT_KEY): image.astype(np.float32)})

        return np.asarray(probabilities), np.asarray(patches)

    def close(self) -> None:

        self.session.close()

    def __enter__(self) -> FocusModel:
        return self

    def __exit__(self, *args) -> None:
        self.close()


def load_saved_model(export_dir: Path,
                     tag: str = MODEL_TAG,
                     signature_key: str = DEFAULT_SERVING_SIGNATURE_DEF_KEY) -> FocusModel:

    graph = tf.Graph()
    session = tf.compat.v1.Session(graph=graph)

    try:
        with graph.as_default():
            meta_graph_def = tf.compat.v1.saved_model.loader.load(session, [tag], str(export_dir))

        if signature_key not in meta_graph_def.signature_def:
            raise IOError("Model has no signature named " + signature_key)

        # extract names from the model signature
        sig = meta_graph_def.signature_def[signature_key]
        endpoints = {}
        for key, infos in ((INPUT_KEY, sig.inputs),
                           (PROBABILITIES_KEY, sig.outputs),
                           (PATCHES_KEY, sig.outputs)):
            if key not in infos:
                raise IOError("Signature " + signature_key + " has no endpoint named " + key)
            endpoints[key] = infos[key].name

    except Exception:
        session.close()
        raise

    logger.debug("Model endpoints: %s", endpoints)

    return FocusModel(session, endpoints, export_dir=export_dir)


def load_model(source: str = MODEL_URL,
               name: str = MODEL_NAME,
               tag: str = MODEL_TAG,
               cache_dir: Optional[Path] = None) -> FocusModel:
    """Load the focus quality model from an URL, a zip archive or a folder.

    :param source: location of the model, defaults to MODEL_URL
    :type source: str, optional
    :param name: name of the model, used for the cache, defaults to MODEL_NAME
    :type name: str, optional
    :param tag: tag of the meta graph to load, defaults to MODEL_TAG
    :type tag: str, optional
    :param cache_dir: directory for downloaded and unpacked models
    :type cache_dir: Path, optional
    :return: the loaded model
    :rtype: FocusModel
    """

    start = perf_counter()

    export_dir = resolve_model_dir(source, name=name, cache_dir=cache_dir)
    model = load_saved_model(export_dir, tag=tag)

    end = perf_counter()
    logger.info("Loaded microscope focus image quality model in %dms", (end - start) * 1000)

    return model
