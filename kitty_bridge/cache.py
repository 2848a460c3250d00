"""Bounded image-size cache used to repair virtual placements."""

from collections import OrderedDict
from typing import Iterator, Optional

from .png import ImageSize

DEFAULT_IMAGE_CACHE_SIZE = 1024


class ImageSizeCache:
    """Least-recently-used map of image id to pixel size.

    A shell session may transmit an unbounded number of distinct ids;
    once ``capacity`` is reached the id not stored or looked up for the
    longest time is evicted.
    """

    def __init__(self, capacity: int = DEFAULT_IMAGE_CACHE_SIZE):
        if capacity < 1:
            raise ValueError(f"capacity must be positive, got {capacity}")
        self.capacity = capacity
        self._entries: "OrderedDict[int, ImageSize]" = OrderedDict()

    def get(self, image_id: int) -> Optional[ImageSize]:
        size = self._entries.get(image_id)
        if size is not None:
            self._entries.move_to_end(image_id)
        return size

    def put(self, image_id: int, size: ImageSize) -> None:
        self._entries[image_id] = size
        self._entries.move_to_end(image_id)
        while len(self._entries) > self.capacity:
            self._entries.popitem(last=False)

    def __contains__(self, image_id: object) -> bool:
        return image_id in self._entries

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self) -> Iterator[int]:
        return iter(self._entries)
