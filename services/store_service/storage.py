"""Product image storage.

The core only ever asks storage to forget a file when its product is gone;
uploads are handled outside this service.
"""

from abc import ABC, abstractmethod
from pathlib import Path

from libs.common.logging import get_logger

logger = get_logger(__name__)


class ImageStorage(ABC):
    @abstractmethod
    def delete_image(self, filename: str) -> bool:
        """Remove a stored image. Returns False when nothing was removed."""


class LocalImageStorage(ImageStorage):
    """Images kept as plain files under one directory."""

    def __init__(self, base_path: str) -> None:
        self.base_path = Path(base_path)

    def delete_image(self, filename: str) -> bool:
        # Never follow a name outside the upload directory
        path = (self.base_path / filename).resolve()
        if self.base_path.resolve() not in path.parents:
            logger.warning("Refusing to delete image outside upload dir: %s", filename)
            return False
        try:
            path.unlink()
        except FileNotFoundError:
            return False
        except OSError:
            logger.exception("Failed to delete image %s", filename)
            return False
        return True
