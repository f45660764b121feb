"""Lossless image optimisation stage (Pillow)."""

import io
import posixpath
from typing import Any, Dict, Optional

from PIL import Image, UnidentifiedImageError

from ..exceptions import TransformError
from .stages import Stage

_FORMATS = {
    '.png': 'PNG',
    '.jpg': 'JPEG',
    '.jpeg': 'JPEG',
    '.gif': 'GIF',
}


def optimize_image(content: bytes, extension: str, progressive: bool = True,
                   interlaced: bool = True) -> bytes:
    """Re-encode an image with optimisation enabled.

    Formats Pillow can't re-encode losslessly (svg, webp, ico, ...) are
    returned unchanged, and so is any image whose re-encoded form is not
    smaller than the original.
    """
    fmt = _FORMATS.get(extension.lower())
    if fmt is None:
        return content

    save_kwargs: Dict[str, Any] = {'format': fmt, 'optimize': True}
    if fmt == 'JPEG':
        save_kwargs.update(quality='keep', progressive=progressive)
    elif fmt == 'GIF':
        save_kwargs.update(interlace=interlaced)

    buf = io.BytesIO()
    with Image.open(io.BytesIO(content)) as im:
        im.save(buf, **save_kwargs)

    optimized = buf.getvalue()
    return optimized if len(optimized) < len(content) else content


class ImageOptimizeStage(Stage):
    """Run optimize_image over each artifact."""

    name = 'imagemin'

    def __init__(self, options: Optional[Dict[str, Any]] = None):
        self.options = dict(options or {})

    def apply(self, artifacts, context):
        result = []
        for artifact in artifacts:
            extension = posixpath.splitext(artifact.path)[1]
            try:
                content = optimize_image(artifact.content, extension, **self.options)
            except (UnidentifiedImageError, OSError, ValueError) as e:
                raise TransformError(
                    f"imagemin failed on '{artifact.path}': {e}",
                    stage=self.name, path=artifact.path,
                ) from e
            result.append(artifact.with_content(content))
        return result
