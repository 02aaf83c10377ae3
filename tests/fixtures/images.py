"""Generate small sample images for testing."""
from io import BytesIO
from pathlib import Path
from PIL import Image


def make_image(width: int = 400, height: int = 300, fmt: str = "JPEG") -> bytes:
    """Patterned RGB image encoded as `fmt`."""
    img = Image.new("RGB", (width, height), color="red")
    # Add some variation to make it interesting
    pixels = img.load()
    for i in range(width):
        for j in range(height):
            pixels[i, j] = (i % 255, j % 255, (i + j) % 255)

    output = BytesIO()
    img.save(output, format=fmt)
    return output.getvalue()


def write_image(path: Path, width: int = 400, height: int = 300, fmt: str = "JPEG") -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(make_image(width, height, fmt))
    return path
