"""
Holds the currently selected filter type and kernel size.
"""
import logging
from typing import Callable, Optional, Union

from filter_advisor.models import (
    DEFAULT_KERNEL_SIZE,
    KERNEL_SIZE_MAX,
    KERNEL_SIZE_MIN,
    FilterDescriptor,
    FilterType,
    Recommendation,
)

logger = logging.getLogger(__name__)


def normalize_kernel_size(n: int) -> int:
    """
    Map any integer onto a valid kernel size.

    The value is clamped to [1, 31] and an even result is bumped to the next
    odd number, so 6 -> 7, 32 -> 31 and 0 -> 1. Applying it twice gives the
    same result as applying it once.

    Args:
        n: Requested kernel size

    Returns:
        Odd kernel size within [1, 31]
    """
    if isinstance(n, bool) or not isinstance(n, int):
        raise TypeError(f"kernel size must be an integer, got {n!r}")
    n = max(KERNEL_SIZE_MIN, min(KERNEL_SIZE_MAX, n))
    if n % 2 == 0:
        n += 1
    return n


class FilterParameterStore:
    """
    Current FilterDescriptor, mutated by direct user choice or by accepting a
    recommendation.

    ``on_change`` is called after every mutation; the session uses it to
    mark the previously applied output as stale.
    """

    def __init__(self, on_change: Optional[Callable[[], None]] = None):
        self._descriptor = FilterDescriptor()
        self._on_change = on_change

    @property
    def descriptor(self) -> FilterDescriptor:
        return self._descriptor

    @property
    def filter_type(self) -> FilterType:
        return self._descriptor.filter_type

    @property
    def kernel_size(self) -> int:
        return self._descriptor.kernel_size

    def set_filter_type(self, filter_type: Union[FilterType, str]) -> FilterDescriptor:
        filter_type = FilterType(filter_type)
        self._replace(FilterDescriptor(filter_type, self._descriptor.kernel_size))
        return self._descriptor

    def set_kernel_size(self, n: int) -> FilterDescriptor:
        self._replace(FilterDescriptor(self._descriptor.filter_type, normalize_kernel_size(n)))
        return self._descriptor

    def accept_recommendation(self, recommendation: Recommendation) -> FilterDescriptor:
        """Adopt the recommended filter type, keeping the kernel size."""
        return self.set_filter_type(recommendation.filter_type)

    def reset(self) -> FilterDescriptor:
        self._replace(FilterDescriptor(FilterType.GAUSSIAN, DEFAULT_KERNEL_SIZE))
        return self._descriptor

    def _replace(self, descriptor: FilterDescriptor) -> None:
        logger.debug("Filter parameters: %s -> %s", self._descriptor, descriptor)
        self._descriptor = descriptor
        if self._on_change is not None:
            self._on_change()
