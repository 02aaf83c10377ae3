"""Deployment topology: how local request paths relate to the canonical remote layout."""
import re
from functools import lru_cache
from pydantic import BaseModel, ConfigDict
from urllib.parse import urlparse

from stage_proxy.settings import Settings, settings

# Multi-tenant uploads live under <uploads root>/sites/<id>
TENANT_SEGMENT_RE = re.compile(r"/sites/(\d+)")


def _url_path(url: str) -> str:
    return urlparse(url).path or ""


def _trailingslashit(path: str) -> str:
    return path.rstrip("/") + "/" if path else "/"


class Topology(BaseModel):
    """
    Local install layout.

    home_path is the path of the public site root (e.g. "/" or "/us/"),
    site_path the path the application itself is served from (e.g. "/wp/").
    """
    model_config = ConfigDict(frozen=True)

    home_path: str = "/"
    site_path: str = "/"
    multisite: bool = False
    subdomain_install: bool = False
    uploads_path: str = "/wp-content/uploads"
    uploads_base_url: str
    uploads_base_dir: str

    @classmethod
    def from_settings(cls, config: Settings) -> "Topology":
        return cls(
            home_path=_url_path(config.HOME_URL),
            site_path=_url_path(config.SITE_URL),
            multisite=config.MULTISITE,
            subdomain_install=config.SUBDOMAIN_INSTALL,
            uploads_path="/" + config.UPLOADS_PATH.strip("/"),
            uploads_base_url=config.uploads_base_url,
            uploads_base_dir=config.UPLOADS_BASE_DIR,
        )

    def local_subpath_to_strip(self) -> str:
        """
        Path segment that separates the public root from the asset-serving root.

        Returns "" for a root install, the application path for a single site
        installed below its home, or the home path for a multi-tenant sub-path site.
        """
        home = _trailingslashit(self.home_path)
        subpath = ""

        if not self.multisite:
            site = _trailingslashit(self.site_path)
            if len(site) > len(home):
                subpath = site.rstrip("/")

        if not subpath and home != "/":
            subpath = home.rstrip("/")

        return subpath

    @property
    def uploads_base_path(self) -> str:
        """Path component of the local uploads base URL."""
        return _url_path(self.uploads_base_url).rstrip("/")

    @property
    def canonical_asset_root(self) -> str:
        """
        Asset root on the remote origin.

        Only multi-tenant sub-path installs keep their /sites/<id> segment; sub-domain
        networks and single sites share the plain uploads root.
        """
        root = self.uploads_path
        if self.multisite and not self.subdomain_install:
            match = re.search(re.escape(root) + TENANT_SEGMENT_RE.pattern, self.uploads_base_path)
            if match:
                root = f"{root}/sites/{match.group(1)}"
        return root


@lru_cache()
def get_topology() -> Topology:
    """Process-wide topology, computed on first use."""
    return Topology.from_settings(settings)
