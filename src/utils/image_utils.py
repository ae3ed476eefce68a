"""
Image Utility Functions

This module provides the image conversions used for thumbnails: decoding
image file bytes, bounding their size, converting pixel arrays to images and
encoding images as PNG data URLs.

Inputs:
    - Raw image file bytes (PNG, GIF, JPEG)
    - NumPy pixel arrays
    - PIL Image objects

Outputs:
    - PIL Images
    - PNG data URL strings

Requirements:
    - PIL/Pillow for image handling
    - numpy for array operations
"""

import base64
import io
from typing import Optional

import numpy as np
from PIL import Image, UnidentifiedImageError


def array_to_image(array: np.ndarray) -> Optional[Image.Image]:
    """
    Convert NumPy array to PIL Image.

    Args:
        array: NumPy array (2D for grayscale, 3D for RGB)

    Returns:
        PIL Image or None if conversion fails
    """
    try:
        # Ensure array is in correct format
        if array.dtype != np.uint8:
            # Normalize to 0-255
            array = array.astype(np.float64)
            if array.max() > array.min():
                array = ((array - array.min()) / (array.max() - array.min()) * 255.0).astype(np.uint8)
            else:
                array = np.zeros_like(array, dtype=np.uint8)

        # 2D grayscale or 3D RGB
        if len(array.shape) in (2, 3):
            return Image.fromarray(array)
        return None
    except (ValueError, TypeError) as e:
        print(f"Error converting array to image: {e}")
        return None


def bytes_to_image(data: bytes) -> Optional[Image.Image]:
    """
    Decode image file bytes.

    Args:
        data: Contents of a PNG, GIF or JPEG file

    Returns:
        PIL Image (first frame for animations) or None if undecodable
    """
    try:
        image = Image.open(io.BytesIO(data))
        image.load()
        return image
    except (UnidentifiedImageError, OSError, ValueError) as e:
        print(f"Error decoding image: {e}")
        return None


def image_to_data_url(image: Image.Image) -> str:
    """
    Encode an image as a PNG data URL.

    Args:
        image: PIL Image

    Returns:
        'data:image/png;base64,...' string
    """
    if image.mode not in ("L", "RGB", "RGBA"):
        image = image.convert("RGBA" if "A" in image.getbands() else "RGB")
    buffered = io.BytesIO()
    image.save(buffered, format="PNG")
    return "data:image/png;base64," + base64.b64encode(buffered.getvalue()).decode()


def normalize_thumbnail(data: bytes, max_size: int) -> Optional[str]:
    """
    Turn thumbnail file bytes into a PNG data URL no larger than max_size.

    Args:
        data: Image file contents
        max_size: Maximum width and height in pixels

    Returns:
        PNG data URL, or None if the image cannot be decoded
    """
    image = bytes_to_image(data)
    if image is None:
        return None
    image.thumbnail((max_size, max_size), Image.Resampling.LANCZOS)
    return image_to_data_url(image)
