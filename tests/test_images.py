import base64
import io

import pytest
from PIL import Image

from relaychat import images
from relaychat.errors import ImageConversionFailed
from relaychat.images import EncodedImage, encode_image, jpeg_data, png_data, preview_data


class TestEncoders:
    def test_jpeg_data(self, small_image):
        data = jpeg_data(small_image, 70)
        assert data is not None
        assert data[:2] == b"\xff\xd8"

    def test_jpeg_data_converts_alpha(self):
        image = Image.new("RGBA", (8, 8), color=(0, 0, 255, 128))
        data = jpeg_data(image, 70)
        assert data is not None
        assert data[:2] == b"\xff\xd8"

    def test_png_data(self, small_image):
        data = png_data(small_image)
        assert data is not None
        assert data[:8] == b"\x89PNG\r\n\x1a\n"

    def test_preview_is_bounded(self):
        big = Image.new("RGB", (1024, 512), color=(10, 10, 10))
        data = preview_data(big, max_side=64)
        assert data is not None
        with Image.open(io.BytesIO(data)) as preview:
            assert max(preview.size) <= 64

    def test_encoded_image_data_url(self):
        encoded = EncodedImage(data=b"abc", mime_type="image/png")
        assert encoded.data_url() == "data:image/png;base64," + base64.b64encode(b"abc").decode()


class TestEncodeImage:
    def test_small_image_is_jpeg(self, small_image):
        encoded = encode_image(small_image)
        assert encoded.mime_type == "image/jpeg"
        assert encoded.data[:2] == b"\xff\xd8"

    def test_png_fallback_when_jpeg_fails(self, small_image, monkeypatch):
        monkeypatch.setattr(images, "jpeg_data", lambda image, quality: None)
        encoded = encode_image(small_image)
        assert encoded.mime_type == "image/png"
        assert encoded.data[:4] == b"\x89PNG"

    def test_both_encoders_fail(self, small_image, monkeypatch):
        monkeypatch.setattr(images, "jpeg_data", lambda image, quality: None)
        monkeypatch.setattr(images, "png_data", lambda image: None)
        with pytest.raises(ImageConversionFailed):
            encode_image(small_image)

    def test_oversized_retries_at_lower_quality(self, small_image, monkeypatch):
        qualities = []

        def fake_jpeg(image, quality):
            qualities.append(quality)
            return b"x" * 11 if quality == 70 else b"y" * 5

        monkeypatch.setattr(images, "jpeg_data", fake_jpeg)
        encoded = encode_image(small_image, max_bytes=10)

        assert qualities == [70, 50]
        assert encoded == EncodedImage(data=b"y" * 5, mime_type="image/jpeg")

    def test_still_oversized_fails(self, small_image, monkeypatch):
        monkeypatch.setattr(images, "jpeg_data", lambda image, quality: b"z" * 11)
        with pytest.raises(ImageConversionFailed):
            encode_image(small_image, max_bytes=10)

    def test_oversized_png_fallback_cannot_recompress(self, small_image, monkeypatch):
        monkeypatch.setattr(images, "jpeg_data", lambda image, quality: None)
        monkeypatch.setattr(images, "png_data", lambda image: b"p" * 11)
        with pytest.raises(ImageConversionFailed):
            encode_image(small_image, max_bytes=10)

    def test_limit_is_inclusive(self, small_image, monkeypatch):
        monkeypatch.setattr(images, "jpeg_data", lambda image, quality: b"x" * 10)
        assert encode_image(small_image, max_bytes=10).data == b"x" * 10
