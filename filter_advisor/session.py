"""
Per-user session state for the Image Filter Advisor.

The session owns everything tied to the current upload (decoded image,
metrics, recommendation, filtered output) plus the filter parameters, and
drives the display state machine:

    NO_IMAGE -> UPLOADED -> [SUGGESTED] -> APPLIED -> UPLOADED (on any
    parameter change) ... -> NO_IMAGE (on reset)

Every new upload or reset bumps ``generation``; a recommendation computed
for an older generation is dropped when it arrives.
"""
import logging
from concurrent.futures import TimeoutError as FuturesTimeoutError
from typing import Optional, Union

import numpy as np

from filter_advisor.analysis import AnalysisTask, RecommendationService
from filter_advisor.config import AdvisorConfig
from filter_advisor.errors import ApplicationError, ExtractionError
from filter_advisor.filter_store import FilterParameterStore
from filter_advisor.filters import FilterPipeline
from filter_advisor.image_handler import ImageUploadHandler, decode_upload
from filter_advisor.metrics import MetricsExtractor, build_extractor
from filter_advisor.models import (
    DisplayState,
    FilterDescriptor,
    FilterType,
    ImageInfo,
    ImageMetrics,
    ImageUpload,
    Recommendation,
    TransformedImage,
)
from filter_advisor.recommender import RuleBasedAdvisor

logger = logging.getLogger(__name__)


class FilterSession:
    """State of one active user session."""

    def __init__(self, extractor: MetricsExtractor, service: RecommendationService,
                 pipeline: FilterPipeline = None,
                 max_file_size: int = ImageUploadHandler.MAX_FILE_SIZE,
                 max_processing_size: int = 1024):
        self.extractor = extractor
        self.service = service
        self.pipeline = pipeline or FilterPipeline()
        self.max_file_size = max_file_size
        self.max_processing_size = max_processing_size

        self.store = FilterParameterStore(on_change=self._parameters_changed)
        self.state = DisplayState.NO_IMAGE
        self.generation = 0
        self.upload: Optional[ImageUpload] = None
        self.image: Optional[np.ndarray] = None
        self.info: Optional[ImageInfo] = None
        self.metrics: Optional[ImageMetrics] = None
        self.recommendation: Optional[Recommendation] = None
        self.output: Optional[TransformedImage] = None
        self.pending: Optional[AnalysisTask] = None

    @property
    def descriptor(self) -> FilterDescriptor:
        return self.store.descriptor

    @property
    def is_analyzing(self) -> bool:
        return self.pending is not None and not self.pending.done()

    # ------------------------------------------------------------------ upload

    def load(self, upload: ImageUpload) -> ImageMetrics:
        """
        Replace the current image with a new upload.

        Args:
            upload: Uploaded image bytes and declared MIME type

        Returns:
            Metrics of the new image

        Raises:
            UnsupportedMediaError: Upload rejected; the session is left unchanged
            ExtractionError: Metrics could not be computed; the session is left without an image
        """
        ImageUploadHandler.validate_upload(upload, self.max_file_size)

        # A new upload supersedes anything still in flight for the previous image
        self._cancel_pending()
        self.generation += 1
        self._clear_image()
        self.state = DisplayState.NO_IMAGE

        try:
            image, pixels = decode_upload(upload, max_size=self.max_processing_size)
            info = ImageUploadHandler.get_image_info(image, upload)
            metrics = self.extractor.extract_from_array(pixels)
        except ExtractionError:
            logger.warning("Upload %s failed, no image loaded", upload.filename)
            raise

        self.upload = upload
        self.image = pixels
        self.info = info
        self.metrics = metrics
        self.state = DisplayState.UPLOADED
        logger.info("Loaded %s (%dx%d), generation %d: blur=%.2f brightness=%.2f contrast=%.2f",
                    upload.filename, info.width, info.height, self.generation,
                    metrics.blur, metrics.brightness, metrics.contrast)
        return metrics

    # ---------------------------------------------------------- recommendation

    def request_recommendation(self) -> AnalysisTask:
        """
        Start analyzing the current metrics in the background.

        Returns:
            The pending AnalysisTask; pass it to ``deliver`` once it is done
        """
        if self.metrics is None:
            raise RuntimeError("No image loaded")
        self._cancel_pending()
        self.pending = self.service.submit(self.metrics, self.generation)
        return self.pending

    def deliver(self, task: AnalysisTask, timeout: Optional[float] = None) -> Optional[Recommendation]:
        """
        Wait for a task and store its recommendation if it is still current.

        Returns:
            The stored recommendation, or None if the result was stale or cancelled
        """
        recommendation = task.result(timeout=timeout)
        if task is self.pending:
            self.pending = None

        if recommendation is None or task.cancelled or task.generation != self.generation:
            logger.info("Discarding recommendation for generation %d (current %d)",
                        task.generation, self.generation)
            return None

        self.recommendation = recommendation
        if self.state == DisplayState.UPLOADED:
            self.state = DisplayState.SUGGESTED
        logger.info("Recommendation: %s (%s)", recommendation.filter_type.value,
                    recommendation.rationale_class.value)
        return recommendation

    def deliver_pending(self, timeout: Optional[float] = 0) -> Optional[Recommendation]:
        """
        Deliver the task started by ``request_recommendation`` if it has finished.

        A UI rerun can interrupt the wait in ``deliver``; the task then stays
        pending and is picked up here on a later run.

        Args:
            timeout: Seconds to wait for an unfinished task; None waits until it is done

        Returns:
            The stored recommendation, or None if nothing was delivered
        """
        task = self.pending
        if task is None:
            return None
        if not task.done() and timeout is not None and timeout <= 0:
            return None
        try:
            return self.deliver(task, timeout=timeout)
        except FuturesTimeoutError:
            return None

    def accept_recommendation(self) -> FilterDescriptor:
        if self.recommendation is None:
            raise RuntimeError("No recommendation to accept")
        return self.store.accept_recommendation(self.recommendation)

    # -------------------------------------------------------------- parameters

    def set_filter_type(self, filter_type: Union[FilterType, str]) -> FilterDescriptor:
        return self.store.set_filter_type(filter_type)

    def set_kernel_size(self, kernel_size: int) -> FilterDescriptor:
        return self.store.set_kernel_size(kernel_size)

    def _parameters_changed(self) -> None:
        # Output no longer matches the parameters; hide it, do not recompute
        self.output = None
        if self.state == DisplayState.APPLIED:
            self.state = DisplayState.UPLOADED

    # ------------------------------------------------------------------- apply

    def apply(self) -> TransformedImage:
        """
        Apply the current filter parameters to the current image.

        Raises:
            ApplicationError: The filter failed; the display state is not advanced
        """
        if self.image is None:
            raise ApplicationError("No image loaded")
        self.output = self.pipeline.apply(self.image, self.store.descriptor)
        self.state = DisplayState.APPLIED
        return self.output

    def download(self) -> Optional[bytes]:
        """PNG bytes of the applied output, or None when nothing is applied."""
        if self.state != DisplayState.APPLIED or self.output is None:
            return None
        return self.output.png_bytes

    def download_name(self) -> Optional[str]:
        if self.output is None or self.upload is None:
            return None
        return self.output.download_name(self.upload.filename)

    # ------------------------------------------------------------------- reset

    def reset(self) -> None:
        """Drop the current image and restore default filter parameters."""
        self._cancel_pending()
        self.generation += 1
        self._clear_image()
        self.store.reset()
        self.state = DisplayState.NO_IMAGE
        logger.info("Session reset, generation %d", self.generation)

    def close(self) -> None:
        self._cancel_pending()
        self.service.shutdown()

    def _clear_image(self) -> None:
        self.upload = None
        self.image = None
        self.info = None
        self.metrics = None
        self.recommendation = None
        self.output = None

    def _cancel_pending(self) -> None:
        if self.pending is not None:
            self.pending.cancel()
            self.pending = None


def create_session(config: AdvisorConfig = None) -> FilterSession:
    """Build a session wired with the default extractor, advisor and pipeline."""
    config = config or AdvisorConfig()
    return FilterSession(
        extractor=build_extractor(config),
        service=RecommendationService(RuleBasedAdvisor(), delay=config.analysis_delay),
        pipeline=FilterPipeline(),
        max_file_size=config.max_file_size,
        max_processing_size=config.max_processing_size,
    )
