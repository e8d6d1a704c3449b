"""Exceptions raised by hwwatch."""

from hwwatch.models import Category


class HwWatchError(Exception):
    """Base class for hwwatch errors."""


class CollectionError(HwWatchError):
    """Collecting one category failed or timed out."""

    def __init__(self, category: Category, cause: str) -> None:
        super().__init__(f"{category.value}: {cause}")
        self.category = category
        self.cause = cause


class StaleDataError(CollectionError):
    """A collector returned output that could not be parsed.

    The engine treats it exactly like a CollectionError.
    """


class DeliveryError(HwWatchError):
    """An event sink failed to deliver an entry."""

    def __init__(self, sink: str, cause: str) -> None:
        super().__init__(f"{sink}: {cause}")
        self.sink = sink
        self.cause = cause
