# -*- coding: utf-8 -*-
# Copyright (c) 2024 OSU Natural Language Processing Group
#
# Licensed under the OpenRAIL-S License;
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     https://www.licenses.ai/ai-pubs-open-rails-vz1
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.
import base64
import io
import logging
import os

from PIL import Image

from replayact.errors import BridgeError, CaptureError

# Maximum image size accepted by the vision models (5MB)
MAX_IMAGE_SIZE_BYTES = 5 * 1024 * 1024

logger = logging.getLogger(__name__)


def get_base64_size(base64_string):
    """Get the size of a base64 encoded string in bytes."""
    return len(base64_string.encode('utf-8'))


def split_data_url(data_url):
    """Return (mime_type, base64_payload) for a ``data:<mime>;base64,...`` URL."""
    if not data_url.startswith("data:") or ";base64," not in data_url:
        raise ValueError("Not a base64 data URL")
    header, payload = data_url.split(",", 1)
    return header[len("data:"):].split(";", 1)[0], payload


def compress_image_to_limit(image_bytes, max_size_bytes=MAX_IMAGE_SIZE_BYTES, quality_start=85, min_quality=20):
    """
    Re-encode an image as JPEG until its base64 form fits ``max_size_bytes``.

    Quality is lowered first, then the dimensions. Returns the base64 string.

    Raises:
        ValueError: If the image cannot be compressed to fit within the limit
    """
    with Image.open(io.BytesIO(image_bytes)) as img:
        # JPEG has no alpha; flatten onto white
        if img.mode in ('RGBA', 'LA', 'P'):
            background = Image.new('RGB', img.size, (255, 255, 255))
            if img.mode == 'P':
                img = img.convert('RGBA')
            background.paste(img, mask=img.split()[-1])
            img = background
        elif img.mode != 'RGB':
            img = img.convert('RGB')

        quality = quality_start
        while quality >= min_quality:
            buffer = io.BytesIO()
            img.save(buffer, format='JPEG', quality=quality, optimize=True)
            base64_string = base64.b64encode(buffer.getvalue()).decode('utf-8')
            size = get_base64_size(base64_string)
            logger.debug(f"Quality {quality}: {size / (1024*1024):.2f} MB")
            if size <= max_size_bytes:
                logger.info(f"Compressed image to {size / (1024*1024):.2f} MB at quality {quality}")
                return base64_string
            quality -= 10

        logger.warning("Quality reduction insufficient, trying dimension reduction")
        scale_factor = 0.9
        while scale_factor >= 0.3:
            new_size = (int(img.width * scale_factor), int(img.height * scale_factor))
            resized = img.resize(new_size, Image.Resampling.LANCZOS)
            buffer = io.BytesIO()
            resized.save(buffer, format='JPEG', quality=70, optimize=True)
            base64_string = base64.b64encode(buffer.getvalue()).decode('utf-8')
            size = get_base64_size(base64_string)
            if size <= max_size_bytes:
                logger.info(f"Compressed image to {size / (1024*1024):.2f} MB with {scale_factor:.1f}x scale")
                return base64_string
            scale_factor -= 0.1

    raise ValueError(f"Unable to compress image to fit within {max_size_bytes / (1024*1024):.1f} MB limit")


def fit_data_url(data_url, max_size_bytes=MAX_IMAGE_SIZE_BYTES):
    """Return ``data_url`` unchanged when it fits, else a compressed JPEG data URL."""
    mime, payload = split_data_url(data_url)
    if get_base64_size(payload) <= max_size_bytes:
        return data_url
    logger.info(f"Screenshot too large ({get_base64_size(payload) / (1024*1024):.2f} MB), compressing...")
    compressed = compress_image_to_limit(base64.b64decode(payload), max_size_bytes)
    return f"data:image/jpeg;base64,{compressed}"


def save_data_url(data_url, path):
    os.makedirs(os.path.dirname(os.path.abspath(path)), exist_ok=True)
    _, payload = split_data_url(data_url)
    with open(path, "wb") as f:
        f.write(base64.b64decode(payload))
    return path


class PerceptionCapture:
    """
    Viewport snapshot of the current page as a PNG data URL.

    Single shot: a missing or closed page raises ``CaptureError`` and the
    caller decides whether to try again.
    """

    def __init__(self, bridge, save_dir=None):
        self.bridge = bridge
        self.save_dir = save_dir
        self.count = 0

    async def capture(self):
        if not self.bridge.available:
            raise CaptureError("No active page to capture")
        try:
            reply = await self.bridge.request({"type": "capture_screenshot"})
        except BridgeError as e:
            raise CaptureError(f"Screenshot failed: {e}") from e
        data_url = reply.get("data")
        if not isinstance(data_url, str) or not data_url.startswith("data:image/"):
            raise CaptureError("Screenshot reply carried no image")
        self.count += 1
        if self.save_dir:
            save_data_url(data_url, os.path.join(self.save_dir, f"screen_{self.count}.png"))
        return data_url
