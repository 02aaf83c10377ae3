"""Path and URL algebra between request URIs, asset keys, local files and remote URLs."""
import re
from pathlib import Path
from typing import Optional
from urllib.parse import urlparse, urlsplit

from stage_proxy.logger import get_logger
from stage_proxy.schemas import RemoteOrigin, ResizeDescriptor
from stage_proxy.topology import Topology

log = get_logger("paths")

# Everything from this segment on is stripped from a configured origin
ROOT_MARKER = "/wp-content"

RESIZE_RE = re.compile(
    r"^(?P<basename>.+?)(?P<retina>-r)?-(?P<width>[0-9]+)x(?P<height>[0-9]+)(?P<crop>c)?"
    r"\.(?P<ext>jpe?g|png|gif)$",
    re.IGNORECASE,
)

# Multi-tenant safety net when the configured uploads path is not found verbatim
UPLOADS_FALLBACK_RE = re.compile(r".*/wp-content/uploads(/sites/\d+)?/", re.IGNORECASE)
LEADING_TENANT_RE = re.compile(r"^/?sites/\d+(?=/|$)")


def _strip_query(value: str) -> str:
    return value.split("#", 1)[0].split("?", 1)[0]


def extract_origin_domain(raw: str) -> str:
    """
    Reduce a configured origin to scheme://host[:port] plus any site path that
    precedes the uploads root.

    Examples:
        'https://example.com/wp-content/uploads/'        -> 'https://example.com'
        'https://example.com/blog/wp-content/uploads/sites/2' -> 'https://example.com/blog'
        'https://example.com/'                           -> 'https://example.com'

    Input that does not parse as an absolute URL comes back with trailing slashes
    trimmed; deciding whether that is usable is left to the caller.
    """
    if not raw:
        return ""

    try:
        parsed = urlparse(raw.strip())
        port = parsed.port
    except ValueError:
        return raw.rstrip("/")

    if not parsed.scheme or not parsed.hostname:
        return raw.rstrip("/")

    host = parsed.netloc.rsplit("@", 1)[-1]
    if port is not None:
        host = host.rsplit(":", 1)[0]
    clean_url = f"{parsed.scheme}://{host}"
    if port is not None:
        clean_url += f":{port}"

    path = parsed.path
    if path:
        marker_pos = path.lower().find(ROOT_MARKER)
        if marker_pos != -1:
            before = path[:marker_pos]
            if before and before != "/":
                clean_url += before.rstrip("/")
        else:
            clean_url += path.rstrip("/")

    return clean_url


def resize_descriptor_from_key(key: str) -> Optional[ResizeDescriptor]:
    """Parse a resized-variant key; None means the original was requested."""
    match = RESIZE_RE.match(key)
    if not match:
        return None
    return ResizeDescriptor(
        basename=match.group("basename"),
        extension=match.group("ext"),
        width=int(match.group("width")),
        height=int(match.group("height")),
        crop=bool(match.group("crop")),
        retina=bool(match.group("retina")),
    )


def variant_filename(path: str, width: int, height: int, crop: bool = False, retina: bool = False) -> str:
    """`dir/name.ext` -> `dir/name-[r-]WxH[c].ext`."""
    suffix = f"{width}x{height}"
    if crop:
        suffix += "c"
    if retina:
        suffix = "r-" + suffix
    stem, dot, ext = path.rpartition(".")
    if not dot or "/" in ext:
        return f"{path}-{suffix}"
    return f"{stem}-{suffix}.{ext}"


class UrlCodec:
    """Conversions bound to one topology and one configured remote base."""

    def __init__(self, topology: Topology, remote_base: str = ""):
        self.topology = topology
        self.remote_base = remote_base

    @property
    def origin(self) -> RemoteOrigin:
        return RemoteOrigin(base=self.remote_base, asset_root=self.topology.canonical_asset_root)

    @property
    def local_base_url(self) -> str:
        return self.topology.uploads_base_url.rstrip("/")

    def relative_key_from_request(self, raw_uri: str) -> str:
        """
        Asset key for a raw request URI.

        Strips the local sub-path, then the uploads root, then a sites/<id> segment.
        A URI without any uploads marker is returned sub-path-stripped but otherwise
        unchanged.
        """
        uri = _strip_query(raw_uri)

        subpath = self.topology.local_subpath_to_strip()
        if subpath and uri.startswith(subpath):
            uri = uri[len(subpath):]

        uploads_path = self.topology.uploads_path
        position = uri.find(uploads_path)
        if position != -1:
            rest = uri[position + len(uploads_path):]
            rest = LEADING_TENANT_RE.sub("", rest)
            return rest.lstrip("/")

        stripped = UPLOADS_FALLBACK_RE.sub("", uri, count=1)
        if stripped == uri:
            log.warning(f"No uploads root found in request path: {raw_uri}")
        return stripped

    def remote_url_from_key(self, key: str) -> str:
        """Remote URL for an asset key, or "" when no origin is configured."""
        if not self.remote_base:
            return ""
        return self.origin.url_for(key)

    def local_path_for_key(self, key: str) -> Path:
        return Path(self.topology.uploads_base_dir) / key.lstrip("/")

    def local_path_for_url(self, url: str) -> Path:
        """Filesystem path a local uploads URL would be served from."""
        base_url = self.local_base_url
        if url.startswith(base_url):
            relative = url[len(base_url):]
        else:
            relative = urlparse(url).path
        return self.local_path_for_key(_strip_query(relative))

    def is_local_url(self, url: str) -> bool:
        """True for the local uploads base URL and anything below it."""
        base_url = self.local_base_url
        if not base_url or not url.startswith(base_url):
            return False
        # "uploads-archive/..." shares the prefix but is not under the uploads root
        return len(url) == len(base_url) or url[len(base_url)] in "/?#"

    def rewrite_local_to_remote(self, url: str) -> str:
        """
        Point a local uploads URL at the remote origin, keeping query and fragment.

        URLs outside the local uploads namespace, or an unconfigured origin, leave
        the URL untouched.
        """
        if not self.remote_base or not self.is_local_url(url):
            return url

        parts = urlsplit(url)
        local_path = self.topology.uploads_base_path
        relative = ""
        if parts.path.startswith(local_path):
            relative = parts.path[len(local_path):]

        new_url = self.remote_base.rstrip("/") + self.topology.canonical_asset_root + relative
        if parts.query:
            new_url += "?" + parts.query
        if parts.fragment:
            new_url += "#" + parts.fragment
        return new_url
