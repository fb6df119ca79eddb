"""
Tests for the Pillow-backed image codec.
"""

import io

import pytest
import torch
from PIL import Image

from detaug.data.codec import decode, encode, sample_from_bytes
from detaug.data.sample import Annotation
from detaug.errors import InvalidArgument


def _png_bytes(mode: str, size=(30, 20), color=0) -> bytes:
    buffer = io.BytesIO()
    Image.new(mode, size, color).save(buffer, format="PNG")
    return buffer.getvalue()


class TestCodec:
    """Tests for decode and encode."""

    def test_png_round_trip(self, make_image):
        image = make_image(3, 20, 30)

        assert torch.equal(decode(encode(image)), image)

    def test_grayscale_round_trip(self, make_image):
        image = make_image(1, 20, 30)

        decoded = decode(encode(image))

        assert decoded.shape == (1, 20, 30)
        assert torch.equal(decoded, image)

    def test_rgba_converted_to_rgb(self):
        decoded = decode(_png_bytes("RGBA", color=(10, 20, 30, 255)))

        assert decoded.shape == (3, 20, 30)
        assert decoded[:, 0, 0].tolist() == [10, 20, 30]

    def test_explicit_mode(self):
        decoded = decode(_png_bytes("RGB", color=(50, 50, 50)), mode="L")

        assert decoded.shape == (1, 20, 30)

    def test_invalid_bytes_raise(self):
        with pytest.raises(InvalidArgument):
            decode(b"not an image")

    def test_encode_rejects_float(self):
        with pytest.raises(InvalidArgument):
            encode(torch.zeros(3, 4, 4))

    def test_encode_rejects_four_channels(self, make_image):
        with pytest.raises(InvalidArgument):
            encode(make_image(4, 4, 4))

    def test_sample_from_bytes(self, make_image):
        annotations = [Annotation(0.1, 0.2, 0.3, 0.4, label=2)]

        sample = sample_from_bytes(encode(make_image(3, 20, 30)), annotations, label=4)

        assert sample.image.shape == (3, 20, 30)
        assert sample.annotations == annotations
        assert sample.label == 4
