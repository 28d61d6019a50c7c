import os
import shutil
import zipfile
import numpy as np
import pytest
import tensorflow as tf
from focustools import tf_model
from focustools.classifier import ClassifierSettings, FocusQualityClassifier

PATCH_SIZE = 84


def export_focus_model(export_dir, tag=tf_model.MODEL_TAG, with_patches=True):
    """Export a tiny model with the same contract as the focus quality model:
    a 2D input, adjacent 84 x 84 patches and two classes derived from the
    mean brightness of each patch.
    """

    graph = tf.Graph()
    with graph.as_default():
        image = tf.compat.v1.placeholder(tf.float32, shape=[None, None], name="input")
        batch = image[tf.newaxis, :, :, tf.newaxis]
        patches = tf.image.extract_patches(batch,
                                           sizes=[1, PATCH_SIZE, PATCH_SIZE, 1],
                                           strides=[1, PATCH_SIZE, PATCH_SIZE, 1],
                                           rates=[1, 1, 1, 1],
                                           padding="VALID")
        patches = tf.reshape(patches, [-1, PATCH_SIZE, PATCH_SIZE, 1], name="patches")
        means = tf.reduce_mean(patches, axis=[1, 2, 3])
        probabilities = tf.identity(tf.stack([means, 1.0 - means], axis=1), name="probabilities")

        outputs = {"probabilities": probabilities}
        if with_patches:
            outputs["patches"] = patches

        signature = tf.compat.v1.saved_model.predict_signature_def(inputs={"input": image},
                                                                   outputs=outputs)

        with tf.compat.v1.Session(graph=graph) as sess:
            builder = tf.compat.v1.saved_model.Builder(str(export_dir))
            builder.add_meta_graph_and_variables(
                sess, [tag],
                signature_def_map={tf_model.DEFAULT_SERVING_SIGNATURE_DEF_KEY: signature})
            builder.save()

    return export_dir


@pytest.fixture(scope="module")
def model_dir(tmp_path_factory):

    return export_focus_model(tmp_path_factory.mktemp("export") / "focus_model")


@pytest.fixture
def model_zip(model_dir, tmp_path):

    archive = tmp_path / "focus_model.zip"
    with zipfile.ZipFile(archive, "w") as zf:
        for root, _, files in os.walk(model_dir):
            for f in files:
                path = os.path.join(root, f)
                # pack into a subfolder, like the published archive
                zf.write(path, os.path.join("model", os.path.relpath(path, model_dir)))

    return archive


def test_op_name():

    assert tf_model.op_name("probabilities:0") == "probabilities"
    assert tf_model.op_name("scope/input:0") == "scope/input"
    assert tf_model.op_name("patches:1") == "patches:1"
    assert tf_model.op_name("patches") == "patches"


def test_is_url():

    assert tf_model.is_url(tf_model.MODEL_URL)
    assert tf_model.is_url("HTTP://example.com/model.zip")
    assert not tf_model.is_url("/data/model.zip")


def test_default_cache_dir(monkeypatch, tmp_path):

    monkeypatch.setenv("FOCUSTOOLS_CACHE_DIR", str(tmp_path))
    assert tf_model.default_cache_dir() == tmp_path

    monkeypatch.delenv("FOCUSTOOLS_CACHE_DIR")
    assert tf_model.default_cache_dir().name == "models"


def test_resolve_model_dir_folder(model_dir, tmp_path):

    assert tf_model.resolve_model_dir(str(model_dir), cache_dir=tmp_path) == model_dir


def test_resolve_model_dir_zip(model_zip, tmp_path):

    cache_dir = tmp_path / "cache"
    export_dir = tf_model.resolve_model_dir(str(model_zip), name="focus", cache_dir=cache_dir)
    key = tf_model.cache_key(str(model_zip), name="focus")

    assert key.startswith("focus-")
    assert export_dir == cache_dir / key / "model"
    assert (export_dir / tf_model.SAVED_MODEL_FILENAME).is_file()

    # the unpacked model is reused
    marker = cache_dir / key / "marker"
    marker.touch()
    tf_model.resolve_model_dir(str(model_zip), name="focus", cache_dir=cache_dir)
    assert marker.exists()


def write_fake_archive(archive, content):

    with zipfile.ZipFile(archive, "w") as zf:
        zf.writestr("model/" + tf_model.SAVED_MODEL_FILENAME, content)

    return archive


def saved_model_content(export_dir):

    return (export_dir / tf_model.SAVED_MODEL_FILENAME).read_bytes()


def test_resolve_model_dir_different_archives(tmp_path):

    cache_dir = tmp_path / "cache"
    first = write_fake_archive(tmp_path / "first.zip", b"MODEL-A")
    other = write_fake_archive(tmp_path / "other_model.zip", b"MODEL-B")

    # an older archive must not be shadowed by the model unpacked before
    past = first.stat().st_mtime - 3600
    os.utime(other, (past, past))

    first_dir = tf_model.resolve_model_dir(str(first), cache_dir=cache_dir)
    other_dir = tf_model.resolve_model_dir(str(other), cache_dir=cache_dir)

    assert first_dir != other_dir
    assert saved_model_content(first_dir) == b"MODEL-A"
    assert saved_model_content(other_dir) == b"MODEL-B"


def test_resolve_model_dir_replaced_archive(tmp_path):

    cache_dir = tmp_path / "cache"
    archive = write_fake_archive(tmp_path / "model.zip", b"MODEL-A")
    assert saved_model_content(tf_model.resolve_model_dir(str(archive), cache_dir=cache_dir)) == b"MODEL-A"

    # same path, older file with new content
    write_fake_archive(archive, b"MODEL-B")
    os.utime(archive, (1000000000, 1000000000))

    assert saved_model_content(tf_model.resolve_model_dir(str(archive), cache_dir=cache_dir)) == b"MODEL-B"


def test_resolve_model_dir_url_cache(tmp_path):

    cache_dir = tmp_path / "cache"
    cache_dir.mkdir()
    url = "http://localhost:1/focus-model.zip"
    write_fake_archive(cache_dir / (tf_model.cache_key(url) + ".zip"), b"CACHED")

    assert saved_model_content(tf_model.resolve_model_dir(url, cache_dir=cache_dir)) == b"CACHED"

    # another url is downloaded, not taken from the cache of the first one
    with pytest.raises(IOError, match="download"):
        tf_model.resolve_model_dir("http://localhost:1/some-other-model.zip", cache_dir=cache_dir)


def test_resolve_model_dir_invalid(tmp_path):

    textfile = tmp_path / "model.txt"
    textfile.write_text("no model")

    with pytest.raises(IOError):
        tf_model.resolve_model_dir(str(textfile), cache_dir=tmp_path)

    with pytest.raises(IOError):
        tf_model.resolve_model_dir(str(tmp_path / "missing"), cache_dir=tmp_path)


def test_find_saved_model_dir_missing(tmp_path):

    with pytest.raises(IOError):
        tf_model.find_saved_model_dir(tmp_path)


def test_download_file_uses_cache(tmp_path):

    target = tmp_path / "model.zip"
    target.write_bytes(b"cached")

    # an existing file is not downloaded again
    assert tf_model.download_file("http://localhost:1/model.zip", target) == target
    assert target.read_bytes() == b"cached"


def test_download_file_error(tmp_path):

    target = tmp_path / "model.zip"

    with pytest.raises(IOError):
        tf_model.download_file("http://localhost:1/model.zip", target)

    assert not target.exists()
    assert not (tmp_path / "model.zip.part").exists()


def test_load_model_and_run(model_dir, tmp_path):

    image = np.zeros((200, 300), dtype=np.float32)
    image[:84, 84:168] = 1.0

    with tf_model.load_model(str(model_dir), cache_dir=tmp_path) as model:
        assert model.endpoints["input"] == "input:0"
        probabilities, patches = model.run(image)

    assert probabilities.shape == (6, 2)
    assert patches.shape == (6, PATCH_SIZE, PATCH_SIZE, 1)
    np.testing.assert_allclose(probabilities[1], [1.0, 0.0])
    np.testing.assert_allclose(probabilities[0], [0.0, 1.0])


def test_load_model_wrong_tag(model_dir, tmp_path):

    with pytest.raises(RuntimeError):
        tf_model.load_model(str(model_dir), tag="serve", cache_dir=tmp_path)


def test_load_model_missing_endpoint(tmp_path):

    export_dir = export_focus_model(tmp_path / "no_patches", with_patches=False)

    with pytest.raises(IOError, match="patches"):
        tf_model.load_model(str(export_dir), cache_dir=tmp_path)


def test_classifier_with_saved_model(model_zip, tmp_path):

    image = np.zeros((200, 300), dtype=np.uint16)
    image[84:168, :84] = 65535

    settings = ClassifierSettings(model_source=str(model_zip), cache_dir=tmp_path / "cache")
    result = FocusQualityClassifier(settings).run(image)

    assert result is not None
    assert list(result.most_likely_classes()) == [1, 1, 1, 0, 1, 1]
    np.testing.assert_allclose(result.probability_image[:, 100, 10], [1.0, 0.0])
    assert np.isnan(result.probability_image[:, 190, 10]).all()

    shutil.rmtree(tmp_path / "cache")
