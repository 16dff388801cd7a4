"""Fixed-size preview images for image uploads."""

import logging
import os
from pathlib import Path
from typing import Iterable, Optional

from PIL import Image, ImageOps

from filestore_api.errors import CodecError
from filestore_api.storage.upload_gate import normalize_media_type

logger = logging.getLogger(__name__)


class ThumbnailGenerator:
    """
    Renders cover-fit, re-encoded JPEG previews.

    The generator only knows source and destination paths; where a thumbnail
    lives (same stored name, the category's hidden thumbnail directory) is the
    file store's business.
    """

    def __init__(self, image_media_types: Iterable[str], size: int = 200, quality: int = 80):
        self.image_media_types = frozenset(normalize_media_type(t) for t in image_media_types)
        self.size = size
        self.quality = quality

    def applies_to(self, media_type: Optional[str]) -> bool:
        return normalize_media_type(media_type) in self.image_media_types

    def render(self, source_path: Path, destination: Path) -> Path:
        """
        Write the thumbnail for ``source_path`` to ``destination``.

        The image is written to a sibling temp file and renamed into place, so a
        half-written thumbnail is never visible.

        Raises:
            CodecError: the source could not be decoded or the preview encoded
        """
        tmp_path = destination.with_name(f".{destination.name}.part")
        try:
            with Image.open(source_path) as image:
                image = ImageOps.exif_transpose(image)
                preview = ImageOps.fit(image, (self.size, self.size), method=Image.Resampling.LANCZOS)
                if preview.mode != "RGB":
                    preview = preview.convert("RGB")
                preview.save(tmp_path, format="JPEG", quality=self.quality)
            os.replace(tmp_path, destination)
        except (OSError, ValueError, Image.DecompressionBombError) as e:
            if tmp_path.exists():
                tmp_path.unlink()
            raise CodecError(f"Thumbnail generation failed for {source_path.name}: {e}") from e
        return destination

    def generate(self, source_path: Path, destination: Path, media_type: Optional[str]) -> Optional[Path]:
        """
        Render a thumbnail when ``media_type`` is an image type.

        Returns the thumbnail path, or ``None`` for non-image inputs and for
        images the codec could not handle. Never raises for codec failures.
        """
        if not self.applies_to(media_type):
            return None
        try:
            return self.render(source_path, destination)
        except CodecError as e:
            logger.warning(e.message)
            return None
