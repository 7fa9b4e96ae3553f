"""
Image signals: classifier scores for NSFW and violence plus an algorithmic
quality score built from resolution, sharpness, exposure and noise.

The quality sub-scores are pure functions of the pixel buffer and always
land in [0, 1], including for degenerate images such as 1x1 buffers.
"""

import asyncio
import functools
import time
from concurrent.futures import Executor
from typing import Optional

import numpy as np

from moderation_engine.clients.classifier_client import (
    NSFW_MODEL,
    VIOLENCE_MODEL,
    ClassifierRegistry,
)
from moderation_engine.core.logger import logger
from moderation_engine.core.signals import attempt_signal
from moderation_engine.models.analysis import ImageFlag, ImageOutcome
from moderation_engine.models.content import PixelBuffer
from moderation_engine.models.verdict import ImageViolation

UNDEREXPOSED_LUMINANCE = 25
OVEREXPOSED_LUMINANCE = 230
NOISE_SAMPLE_STEP = 10


def _pixel_array(buffer: PixelBuffer) -> np.ndarray:
    buffer.validate()
    pixels = np.frombuffer(bytes(buffer.data), dtype=np.uint8)
    return pixels.reshape(buffer.height, buffer.width, buffer.channels).astype(np.float64)


def luminance(pixels: np.ndarray) -> np.ndarray:
    """Per-pixel luminance (0.299R + 0.587G + 0.114B); grayscale passes through."""
    if pixels.shape[2] < 3:
        return pixels[:, :, 0]
    return 0.299 * pixels[:, :, 0] + 0.587 * pixels[:, :, 1] + 0.114 * pixels[:, :, 2]


def resolution_score(buffer: PixelBuffer) -> float:
    total = buffer.pixel_count
    if total >= 2_000_000:
        return 1.0
    if total >= 1_000_000:
        return 0.8
    if total >= 300_000:
        return 0.6
    if total >= 100_000:
        return 0.4
    return 0.2


def sharpness_score(pixels: np.ndarray) -> float:
    """
    Mean absolute 4-neighbour Laplacian of the first channel over the
    interior, divided by 100. Images without interior pixels score 0.
    """
    channel = pixels[:, :, 0]
    if channel.shape[0] < 3 or channel.shape[1] < 3:
        return 0.0
    laplacian = (
        -4 * channel[1:-1, 1:-1]
        + channel[:-2, 1:-1]
        + channel[2:, 1:-1]
        + channel[1:-1, :-2]
        + channel[1:-1, 2:]
    )
    return float(min(np.abs(laplacian).mean() / 100.0, 1.0))


def exposure_score(lum: np.ndarray) -> float:
    mean_brightness = float(lum.mean())
    underexposed_ratio = float((lum < UNDEREXPOSED_LUMINANCE).mean())
    overexposed_ratio = float((lum > OVEREXPOSED_LUMINANCE).mean())

    score = 1.0
    if mean_brightness < 50 or mean_brightness > 200:
        score *= 0.5
    if underexposed_ratio > 0.1 or overexposed_ratio > 0.1:
        score *= 0.7
    return score


def noise_score(lum: np.ndarray, step: int = NOISE_SAMPLE_STEP) -> float:
    """
    One minus the mean 3x3 luminance variance (over 1000) sampled every
    ``step`` pixels. Images too small to sample score 1.
    """
    height, width = lum.shape
    ys = np.arange(step, height - step, step)
    xs = np.arange(step, width - step, step)
    if ys.size == 0 or xs.size == 0:
        return 1.0

    windows = np.stack([
        lum[np.ix_(ys + dy, xs + dx)]
        for dy in (-1, 0, 1)
        for dx in (-1, 0, 1)
    ])
    mean_variance = float(windows.var(axis=0).mean())
    return max(0.0, 1.0 - mean_variance / 1000.0)


def quality_score(buffer: PixelBuffer) -> float:
    """Equal-weight blend of resolution, sharpness, exposure and noise."""
    pixels = _pixel_array(buffer)
    lum = luminance(pixels)
    score = (
        0.25 * resolution_score(buffer)
        + 0.25 * sharpness_score(pixels)
        + 0.25 * exposure_score(lum)
        + 0.25 * noise_score(lum)
    )
    return min(max(score, 0.0), 1.0)


class ImageAnalyzer:
    """
    Runs the NSFW, violence and quality signals for an image concurrently.

    Args:
        classifiers: Registry of loaded image classifiers
        nsfw_threshold: NSFW score above which the image is flagged
        violence_threshold: Violence score above which the image is flagged
        quality_threshold: Quality score below which the image is flagged
        executor: Executor for the blocking work (default loop executor)
    """

    def __init__(
        self,
        classifiers: Optional[ClassifierRegistry] = None,
        nsfw_threshold: float = 0.7,
        violence_threshold: float = 0.8,
        quality_threshold: float = 0.3,
        executor: Optional[Executor] = None,
    ):
        self.classifiers = classifiers or ClassifierRegistry()
        self.nsfw_threshold = nsfw_threshold
        self.violence_threshold = violence_threshold
        self.quality_threshold = quality_threshold
        self._executor = executor

        for model in (NSFW_MODEL, VIOLENCE_MODEL):
            if not self.classifiers.is_loaded(model):
                logger.warning(f"{model} classifier not loaded, signal will be unavailable")
        logger.info("Image analyzer initialized")

    quality_score = staticmethod(quality_score)

    def detect_nsfw(self, buffer: PixelBuffer) -> Optional[float]:
        return attempt_signal(NSFW_MODEL, self.classifiers.score, NSFW_MODEL, buffer)

    def detect_violence(self, buffer: PixelBuffer) -> Optional[float]:
        return attempt_signal(VIOLENCE_MODEL, self.classifiers.score, VIOLENCE_MODEL, buffer)

    def assess_quality(self, buffer: PixelBuffer) -> Optional[float]:
        return attempt_signal("quality", quality_score, buffer)

    async def analyze(self, buffer: PixelBuffer) -> ImageOutcome:
        """
        Analyze an image.

        Raises:
            InvalidInputException: If the pixel buffer is malformed
        """
        buffer.validate()
        start_time = time.perf_counter()
        loop = asyncio.get_running_loop()

        nsfw, violence, quality = await asyncio.gather(
            loop.run_in_executor(self._executor, functools.partial(self.detect_nsfw, buffer)),
            loop.run_in_executor(self._executor, functools.partial(self.detect_violence, buffer)),
            loop.run_in_executor(self._executor, functools.partial(self.assess_quality, buffer)),
        )

        outcome = ImageOutcome(nsfw_score=nsfw, violence_score=violence, quality_score=quality)
        outcome.degraded_signals = [
            name for name, value in (
                (NSFW_MODEL, nsfw), (VIOLENCE_MODEL, violence), ("quality", quality)
            ) if value is None
        ]
        outcome.flags = self.determine_flags(outcome)
        outcome.confidence = self.overall_confidence(outcome)
        outcome.processing_time = time.perf_counter() - start_time

        logger.debug(
            f"Image analysis completed in {outcome.processing_time:.3f}s",
            extra={"degraded": outcome.degraded_signals}
        )
        return outcome

    def determine_flags(self, outcome: ImageOutcome) -> list:
        flags = []
        if outcome.nsfw_score is not None and outcome.nsfw_score > self.nsfw_threshold:
            flags.append(ImageFlag(ImageViolation.nsfw, outcome.nsfw_score))
        if outcome.violence_score is not None and outcome.violence_score > self.violence_threshold:
            flags.append(ImageFlag(ImageViolation.violence, outcome.violence_score))
        if outcome.quality_score is not None and outcome.quality_score < self.quality_threshold:
            flags.append(ImageFlag(ImageViolation.low_quality, 1.0 - outcome.quality_score))
        return flags

    @staticmethod
    def overall_confidence(outcome: ImageOutcome) -> float:
        scores = [
            score for score in (outcome.nsfw_score, outcome.violence_score, outcome.quality_score)
            if score is not None
        ]
        return sum(scores) / len(scores) if scores else 0.0
