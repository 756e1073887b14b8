"""
Image Processor Module.

Prepares raster images for OCR:
    - EXIF orientation correction and RGB normalization on load
    - Grayscale conversion
    - Adaptive binarization with Otsu's method

Binarization is a pure function of the input image, so the same page always
produces the same black-and-white image and the same OCR input.

Author: ML Engineering Team
"""

from typing import Sequence, Union

import numpy as np
from PIL import Image, ImageOps

from invoice_pipeline.utils.logger import get_logger

# Initialize module logger
logger = get_logger(__name__)

HISTOGRAM_BINS = 256
WHITE = 255
BLACK = 0


def compute_histogram(gray: Image.Image) -> np.ndarray:
    """
    Build the 256-bin intensity histogram of a grayscale image.

    Args:
        gray: Image in mode 'L'.

    Returns:
        Array of 256 pixel counts.
    """
    pixels = np.asarray(gray, dtype=np.uint8).ravel()
    return np.bincount(pixels, minlength=HISTOGRAM_BINS)


def otsu_threshold(histogram: Union[Sequence[int], np.ndarray]) -> int:
    """
    Choose the threshold that maximizes between-class variance.

    Every candidate t splits the histogram into a background class
    (intensities <= t) and a foreground class (intensities > t). The score
    is ``wB * wF * (meanB - meanF) ** 2`` with wB/wF the pixel counts of the
    two classes. Candidates with an empty background are skipped, the scan
    stops once the foreground is empty, and only a strictly larger score
    replaces the current best, so ties keep the lowest threshold.

    Args:
        histogram: 256 pixel counts indexed by intensity.

    Returns:
        Threshold in [0, 255]; 0 for a flat (single-intensity) histogram.

    Example:
        >>> hist = [0] * 256
        >>> hist[0], hist[255] = 10, 30
        >>> otsu_threshold(hist)
        0
    """
    counts = np.asarray(histogram, dtype=np.float64)
    total = counts.sum()
    weighted_total = float(np.dot(np.arange(HISTOGRAM_BINS), counts))

    background_weight = 0.0
    background_sum = 0.0
    best_variance = 0.0
    threshold = 0

    for t in range(HISTOGRAM_BINS):
        background_weight += counts[t]
        if background_weight == 0:
            continue

        foreground_weight = total - background_weight
        if foreground_weight == 0:
            break

        background_sum += t * counts[t]
        mean_background = background_sum / background_weight
        mean_foreground = (weighted_total - background_sum) / foreground_weight

        variance = (
            background_weight * foreground_weight
            * (mean_background - mean_foreground) ** 2
        )
        if variance > best_variance:
            best_variance = variance
            threshold = t

    return threshold


class ImagePreprocessor:
    """
    Grayscale + Otsu binarization for a single page image.

    Example:
        >>> preprocessor = ImagePreprocessor()
        >>> binary = preprocessor.preprocess(page_image)
        >>> binary.mode
        'L'
    """

    def to_grayscale(self, image: Image.Image) -> Image.Image:
        """Convert any PIL mode to single-channel 'L'."""
        if image.mode == 'L':
            return image
        if image.mode in ('RGBA', 'LA', 'P'):
            image = flatten_alpha(image)
        return image.convert('L')

    def binarize(self, gray: Image.Image, threshold: int) -> Image.Image:
        """
        Map intensities above the threshold to white, the rest to black.

        Args:
            gray: Grayscale image.
            threshold: Cut-off intensity.

        Returns:
            New 'L' image containing only 0 and 255.
        """
        pixels = np.asarray(gray, dtype=np.uint8)
        binary = np.where(pixels > threshold, WHITE, BLACK).astype(np.uint8)
        return Image.fromarray(binary)

    def compute_threshold(self, image: Image.Image) -> int:
        """Otsu threshold of an image in any mode."""
        return otsu_threshold(compute_histogram(self.to_grayscale(image)))

    def preprocess(self, image: Image.Image) -> Image.Image:
        """
        Produce the binarized image handed to the OCR engine.

        Args:
            image: Page image in any PIL mode.

        Returns:
            Black-and-white 'L' image.
        """
        gray = self.to_grayscale(image)
        threshold = otsu_threshold(compute_histogram(gray))
        logger.debug(f"Otsu threshold {threshold} for {gray.width}x{gray.height} image")
        return self.binarize(gray, threshold)


def flatten_alpha(image: Image.Image) -> Image.Image:
    """
    Paste an image with transparency onto a white RGB background.

    Args:
        image: Image in any mode.

    Returns:
        RGB image.
    """
    if image.mode == 'P':
        image = image.convert('RGBA')
    if image.mode in ('RGBA', 'LA'):
        rgba = image.convert('RGBA')
        background = Image.new('RGB', rgba.size, (255, 255, 255))
        background.paste(rgba, mask=rgba.split()[3])
        return background
    return image.convert('RGB')


def normalize_image(image: Image.Image) -> Image.Image:
    """
    Apply EXIF orientation and convert to RGB.

    Cameras often store rotation in EXIF rather than rotating pixels; OCR
    needs upright text.

    Args:
        image: Freshly decoded image.

    Returns:
        Upright RGB image.
    """
    image = ImageOps.exif_transpose(image)
    if image.mode == 'RGB':
        return image

    original_mode = image.mode
    image = flatten_alpha(image)
    logger.debug(f"Converted image from {original_mode} to RGB")
    return image
