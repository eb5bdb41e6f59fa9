"""Test atomic filesystem operations.

Tests for src.utils.fs:
    - Atomic writes leave no temporary files behind
    - YAML roundtrip preserves structure and key order
    - PNG previews accept uint8 and [0, 1] float arrays
    - ensure_dir creates parents

Run:
    pytest tests/test_fs.py -v
"""

import numpy as np
import pytest
import yaml
from PIL import Image

from src.utils import fs


def test_ensure_dir(tmp_path):
    new_dir = tmp_path / "a" / "b" / "c"
    assert fs.ensure_dir(new_dir) == new_dir
    assert new_dir.is_dir()
    fs.ensure_dir(new_dir)  # idempotent


def test_atomic_write_bytes(tmp_path):
    path = tmp_path / "out" / "table.bytes"
    fs.atomic_write_bytes(path, b"\x01\x02\x03")

    assert path.read_bytes() == b"\x01\x02\x03"
    assert not (tmp_path / "out" / "table.bytes.tmp").exists()


def test_atomic_write_bytes_overwrites(tmp_path):
    path = tmp_path / "table.bytes"
    fs.atomic_write_bytes(path, b"old contents")
    fs.atomic_write_bytes(path, b"new")
    assert path.read_bytes() == b"new"


def test_atomic_write_bytes_failure_cleans_up(tmp_path):
    path = tmp_path / "table.bytes"
    with pytest.raises(RuntimeError, match="atomically"):
        fs.atomic_write_bytes(path, "not bytes")
    assert list(tmp_path.iterdir()) == []


def test_read_bytes_missing(tmp_path):
    with pytest.raises(FileNotFoundError):
        fs.read_bytes(tmp_path / "missing.bytes")


def test_atomic_save_image_uint8(tmp_path):
    img = np.arange(64, dtype=np.uint8).reshape(8, 8)
    path = tmp_path / "noise.png"
    fs.atomic_save_image(img, path)

    with Image.open(path) as loaded:
        np.testing.assert_array_equal(np.asarray(loaded), img)
    assert not list(tmp_path.glob("*.tmp*"))


def test_atomic_save_image_float_scaled(tmp_path):
    img = np.array([[0.0, 0.5, 1.0, 2.0, -1.0]])
    path = tmp_path / "strip.png"
    fs.atomic_save_image(img, path)

    with Image.open(path) as loaded:
        np.testing.assert_array_equal(np.asarray(loaded)[0], [0, 128, 255, 255, 0])


def test_atomic_yaml_dump_preserves_order(tmp_path):
    data = {'schema': 'film_grain_bundle.v1', 'name': 'FilmGrain', 'lut_size': 256}
    path = tmp_path / "meta.yaml"
    fs.atomic_yaml_dump(data, path)

    assert path.read_text().splitlines()[0] == "schema: film_grain_bundle.v1"
    assert fs.load_yaml(path) == data


def test_load_yaml_empty_file(tmp_path):
    path = tmp_path / "empty.yaml"
    path.write_text("")
    assert fs.load_yaml(path) == {}


def test_load_yaml_missing(tmp_path):
    with pytest.raises(FileNotFoundError):
        fs.load_yaml(tmp_path / "missing.yaml")


def test_load_yaml_invalid(tmp_path):
    path = tmp_path / "bad.yaml"
    path.write_text("grain: [unclosed\n")
    with pytest.raises(yaml.YAMLError, match="bad.yaml"):
        fs.load_yaml(path)
