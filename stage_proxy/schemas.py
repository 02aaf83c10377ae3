"""Pydantic schemas for configuration values, parsed keys and request/response validation."""
from enum import Enum
from pydantic import BaseModel, ConfigDict
from typing import Dict, List, Optional


class ProxyMode(str, Enum):
    """How a missing upload is resolved. Values are the stored option values."""
    HEADER = "header"
    DOWNLOAD = "download"
    PHOTON = "photon"
    LOCAL = "local"
    LOREMPIXEL = "lorempixel"

    @classmethod
    def _missing_(cls, value):
        # Descriptive names accepted as aliases
        aliases = {
            "redirect": cls.HEADER,
            "photon-style": cls.PHOTON,
            "local-fallback": cls.LOCAL,
            "placeholder-service": cls.LOREMPIXEL,
        }
        if not isinstance(value, str):
            return None
        key = value.strip().lower()
        for member in cls:
            if member.value == key:
                return member
        return aliases.get(key)


class ProxyConfig(BaseModel):
    """Resolved configuration, built once per request scope and never mutated."""
    model_config = ConfigDict(frozen=True)

    remote_base: str  # scheme://host[:port][/site-path], may be empty
    mode: ProxyMode
    local_dir: str


class RemoteOrigin(BaseModel):
    """Remote base plus the canonical asset root under it."""
    model_config = ConfigDict(frozen=True)

    base: str
    asset_root: str

    def url_for(self, key: str) -> str:
        return self.base.rstrip("/") + self.asset_root + "/" + key.lstrip("/")


class ResizeDescriptor(BaseModel):
    """A `<basename>[-r]-<w>x<h>[c].<ext>` request, parsed."""
    model_config = ConfigDict(frozen=True)

    basename: str  # includes any directory part, e.g. "2024/05/a"
    extension: str
    width: int
    height: int
    crop: bool = False
    retina: bool = False

    @property
    def original_key(self) -> str:
        return f"{self.basename}.{self.extension}"

    @property
    def suffix(self) -> str:
        suffix = f"{self.width}x{self.height}"
        if self.crop:
            suffix += "c"
        if self.retina:
            suffix = "r-" + suffix
        return suffix


class SizeSpec(BaseModel):
    """A registered image size."""
    width: int = 0
    height: int = 0
    crop: bool = False


class SizeEntry(BaseModel):
    """One generated (or pretended) size in image metadata."""
    file: str
    width: int
    height: int


class ImageMetadata(BaseModel):
    """Attachment metadata as the host stores it."""
    file: str  # relative to the uploads root, e.g. "2024/05/a.jpg"
    width: int = 0
    height: int = 0
    sizes: Dict[str, SizeEntry] = {}


class SrcsetSource(BaseModel):
    """One candidate of a responsive source list."""
    url: str
    descriptor: str = "w"
    value: int


class SettingsIn(BaseModel):
    """Settings update request."""
    url: Optional[str] = None
    mode: Optional[str] = None
    local_dir: Optional[str] = None


class SettingsOut(BaseModel):
    """Effective settings and which of them are pinned by the environment."""
    url: str
    mode: ProxyMode
    local_dir: str
    overridden: List[str]


class RewriteRequest(BaseModel):
    """Content rewrite request."""
    content: str
    is_admin: bool = False


class RewriteResponse(BaseModel):
    """Content rewrite response."""
    content: str


class UrlRewriteRequest(BaseModel):
    url: str


class UrlRewriteResponse(BaseModel):
    url: str


class MetadataRequest(BaseModel):
    """Metadata synthesis request; registered sizes are used when `sizes` is omitted."""
    metadata: ImageMetadata
    sizes: Optional[Dict[str, SizeSpec]] = None


class SrcsetRequest(BaseModel):
    """Responsive sources for one image; registered sizes are used."""
    image_src: str
    metadata: ImageMetadata
    sources: List[SrcsetSource] = []
