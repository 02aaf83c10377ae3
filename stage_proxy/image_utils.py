"""Image utilities: MIME sniffing, resize dimension math, resizing, metadata synthesis."""
import hashlib
import os
import tempfile
from io import BytesIO
from pathlib import Path
from PIL import Image, ImageOps, UnidentifiedImageError
from typing import Dict, Optional, Tuple

from stage_proxy.errors import ImageProcessingError
from stage_proxy.schemas import ImageMetadata, ResizeDescriptor, SizeEntry, SizeSpec

FORMAT_MIME = {
    "JPEG": "image/jpeg",
    "PNG": "image/png",
    "GIF": "image/gif",
    "WEBP": "image/webp",
}


def compute_request_hash(raw_uri: str) -> str:
    """Stable hash of a request identity (for cache keys)."""
    return hashlib.md5(raw_uri.encode("utf-8")).hexdigest()


def sniff_mime(data: bytes) -> Optional[str]:
    """MIME type from the image header, or None when Pillow does not recognise it."""
    try:
        with Image.open(BytesIO(data)) as img:
            fmt = (img.format or "").upper()
    except (UnidentifiedImageError, OSError):
        return None
    return FORMAT_MIME.get(fmt)


def open_image(path: str) -> Image.Image:
    """
    Open and fully decode an image file.

    Raises:
        ImageProcessingError: If the file is missing, corrupt or not an image
    """
    try:
        img = Image.open(path)
        img.load()
        return img
    except (UnidentifiedImageError, OSError, ValueError) as e:
        raise ImageProcessingError(f"Cannot open image {path}: {e}") from e


def constrain_dimensions(
    current_width: int,
    current_height: int,
    max_width: int = 0,
    max_height: int = 0
) -> Tuple[int, int]:
    """
    Scale (current_width, current_height) down to fit inside the max box,
    keeping the aspect ratio. A max of 0 leaves that side unconstrained.
    """
    if not max_width and not max_height:
        return current_width, current_height

    width_ratio = 1.0
    height_ratio = 1.0

    if max_width > 0 and current_width > 0 and current_width > max_width:
        width_ratio = max_width / current_width

    if max_height > 0 and current_height > 0 and current_height > max_height:
        height_ratio = max_height / current_height

    smaller_ratio = min(width_ratio, height_ratio)
    larger_ratio = max(width_ratio, height_ratio)

    if (round(current_width * larger_ratio) > max_width
            or round(current_height * larger_ratio) > max_height):
        ratio = smaller_ratio
    else:
        ratio = larger_ratio

    return max(1, round(current_width * ratio)), max(1, round(current_height * ratio))


def resize_dimensions(
    orig_width: int,
    orig_height: int,
    dest_width: int,
    dest_height: int,
    crop: bool = False
) -> Optional[Tuple[int, int]]:
    """
    Output size of resizing an image to a registered size.

    Cropped sizes take the exact box (clamped to the original); uncropped sizes fit
    inside it. Returns None when the result would not be smaller than the original.
    """
    if orig_width <= 0 or orig_height <= 0:
        return None
    if dest_width <= 0 and dest_height <= 0:
        return None

    if crop:
        aspect_ratio = orig_width / orig_height
        new_width = min(dest_width, orig_width)
        new_height = min(dest_height, orig_height)
        if not new_width:
            new_width = round(new_height * aspect_ratio)
        if not new_height:
            new_height = round(new_width / aspect_ratio)
    else:
        new_width, new_height = constrain_dimensions(orig_width, orig_height, dest_width, dest_height)

    if new_width >= orig_width and new_height >= orig_height:
        return None

    return new_width, new_height


def _save_atomic(img: Image.Image, path: Path) -> None:
    fmt = Image.registered_extensions().get(path.suffix.lower())
    if fmt == "JPEG" and img.mode not in ("RGB", "L"):
        img = img.convert("RGB")

    fd, tmp_name = tempfile.mkstemp(dir=path.parent, prefix=".sfp-", suffix=".part")
    try:
        with os.fdopen(fd, "wb") as f:
            img.save(f, format=fmt)
        os.replace(tmp_name, path)
    except BaseException:
        if os.path.exists(tmp_name):
            os.unlink(tmp_name)
        raise


def resize_image(basefile: str, resize: ResizeDescriptor) -> str:
    """
    Create the requested variant next to `basefile` and return its path.

    The variant keeps basefile's name and extension with the descriptor's suffix,
    e.g. a.jpg + 300x200c -> a-300x200c.jpg.

    Raises:
        ImageProcessingError: If basefile cannot be read or the variant cannot be written
    """
    source = Path(basefile)
    img = open_image(str(source))

    dimensions = resize_dimensions(img.width, img.height, resize.width, resize.height, resize.crop)
    if dimensions is not None:
        if resize.crop:
            img = ImageOps.fit(img, dimensions, Image.Resampling.LANCZOS)
        else:
            img = img.resize(dimensions, Image.Resampling.LANCZOS)

    target = source.with_name(f"{source.stem}-{resize.suffix}{source.suffix}")
    try:
        _save_atomic(img, target)
    except (OSError, ValueError, KeyError) as e:
        raise ImageProcessingError(f"Cannot save resized image {target}: {e}") from e

    return str(target)


def synthesize_size_metadata(
    metadata: ImageMetadata,
    requested_sizes: Dict[str, SizeSpec]
) -> ImageMetadata:
    """
    Pretend every requested size was generated on upload.

    Returns a copy of `metadata` whose `sizes` holds one retina-tagged entry per
    size the image can produce; variants are created on first request instead.
    """
    stem, dot, ext = Path(metadata.file).name.rpartition(".")
    if not dot:
        stem, ext = ext, ""

    sizes = dict(metadata.sizes)
    for size_name, size in requested_sizes.items():
        dimensions = resize_dimensions(metadata.width, metadata.height, size.width, size.height, size.crop)
        if not dimensions:
            continue

        width, height = dimensions
        suffix = f"r-{width}x{height}"
        if size.crop:
            suffix += "c"

        filename = f"{stem}-{suffix}.{ext}" if ext else f"{stem}-{suffix}"
        sizes[size_name] = SizeEntry(file=filename, width=width, height=height)

    return metadata.model_copy(update={"sizes": sizes})
