"""
Request resolution for missing uploads.

A request runs through at most two passes. The first pass may only fetch the
original of a resized variant; it then asks for a second pass, which finds the
original on disk and produces the variant. A third pass is never taken.
"""
from pathlib import Path
from pydantic import BaseModel
from typing import Optional, Union
from urllib.parse import urlencode

from stage_proxy.errors import ConfigurationError, RemoteUnavailableError, ResolutionError
from stage_proxy.fallback import FallbackPicker
from stage_proxy.image_utils import compute_request_hash, resize_image
from stage_proxy.logger import get_logger
from stage_proxy.paths import UrlCodec, resize_descriptor_from_key
from stage_proxy.remote import RemoteFetcher, RemoteResponse
from stage_proxy.schemas import ProxyConfig, ProxyMode, ResizeDescriptor
from stage_proxy.settings import Settings, settings
from stage_proxy.storage import StorageAdapter
from stage_proxy.transients import TransientStore

log = get_logger("engine")

MAX_PASSES = 2
DECISION_TRANSIENT_PREFIX = "sfp_image_"
PLACEHOLDER_DEFAULT_SIZE = (800, 600)


class Redirect(BaseModel):
    url: str
    status_code: int = 302


class Serve(BaseModel):
    path: str


class Reenter(BaseModel):
    """Continuation: the original is now local, run the pass again for `key`."""
    key: str


Outcome = Union[Redirect, Serve]


class ResolutionEngine:
    """Decides and performs the retrieval action for one missing upload."""

    def __init__(
        self,
        config: ProxyConfig,
        codec: UrlCodec,
        storage: StorageAdapter,
        fetcher: RemoteFetcher,
        transients: TransientStore,
        picker: FallbackPicker = None,
        options: Settings = settings,
        timeout: float = None,
    ):
        self.config = config
        self.codec = codec
        self.storage = storage
        self.fetcher = fetcher
        self.transients = transients
        self.picker = picker or FallbackPicker(transients, ttl=options.FALLBACK_POOL_TTL)
        self.options = options
        self.timeout = timeout if timeout is not None else options.REMOTE_TIMEOUT

    async def resolve(self, raw_uri: str) -> Outcome:
        """
        Resolve a raw request URI to a redirect or a local file to serve.

        Raises:
            ProxyError: Any condition that ends the request without a usable response
        """
        if not self.config.remote_base and self.config.mode != ProxyMode.LOCAL:
            raise ConfigurationError("No remote origin configured")

        key = self.codec.relative_key_from_request(raw_uri)
        log.debug(f"Resolving {raw_uri} as {key} in {self.config.mode.value} mode")

        for pass_number in range(1, MAX_PASSES + 1):
            outcome = await self._run_pass(key, raw_uri, reentry=pass_number > 1)
            if not isinstance(outcome, Reenter):
                return outcome
            log.info(f"Original for {key} fetched, resizing on pass {pass_number + 1}")
            key = outcome.key

        raise ResolutionError(f"{key} still missing its original after {MAX_PASSES} passes")

    async def _run_pass(self, key: str, raw_uri: str, reentry: bool = False) -> Union[Outcome, Reenter]:
        """One dispatch. A re-entry pass only resizes an original already on disk."""
        mode = self.config.mode

        if mode == ProxyMode.HEADER:
            return Redirect(url=self.codec.remote_url_from_key(key))

        resize = resize_descriptor_from_key(key)
        fetch_key = key
        if resize is not None:
            if mode == ProxyMode.PHOTON:
                return Redirect(url=self._photon_url(resize))

            if await self.storage.exists(resize.original_key):
                original = self.storage.path_for(resize.original_key)
                return Serve(path=resize_image(str(original), resize))

            if reentry:
                # The fetch is never repeated
                raise ResolutionError(f"Original {resize.original_key} still missing after it was fetched")

            # Fetch the original now, resize on the next pass
            fetch_key = resize.original_key
        elif mode == ProxyMode.PHOTON:
            return Redirect(url=self.codec.remote_url_from_key(key))

        response = await self._fetch(self.codec.remote_url_from_key(fetch_key))
        if response is None:
            return await self._degrade(raw_uri, resize)

        path = await self.storage.save(fetch_key, response.body)
        if resize is not None:
            return Reenter(key=key)
        return Serve(path=path)

    async def _fetch(self, url: str) -> Optional[RemoteResponse]:
        """Remote response, or None when the origin could not deliver."""
        if not url:
            return None

        try:
            response = await self.fetcher.get(url, timeout=self.timeout)
        except RemoteUnavailableError:
            return None

        if response.status >= self.options.REMOTE_ERROR_STATUS:
            log.warning(f"Remote returned {response.status} for {url}")
            return None

        return response

    async def _degrade(self, raw_uri: str, resize: Optional[ResizeDescriptor]) -> Outcome:
        mode = self.config.mode

        if mode == ProxyMode.LOCAL:
            basefile = await self._fallback_for(raw_uri)
            if basefile is None:
                raise ConfigurationError("No local fallback images available")
            if resize is not None:
                return Serve(path=resize_image(basefile, resize))
            return Serve(path=basefile)

        if mode == ProxyMode.LOREMPIXEL:
            width, height = PLACEHOLDER_DEFAULT_SIZE
            if resize is not None:
                width = resize.width or width
                height = resize.height or height
            return Redirect(url=f"{self.options.PLACEHOLDER_URL.rstrip('/')}/{width}/{height}")

        raise RemoteUnavailableError(f"Remote could not serve {raw_uri}")

    async def _fallback_for(self, raw_uri: str) -> Optional[str]:
        """
        Fallback file for this request identity.

        The pick is remembered per raw URI so repeat requests get the same file
        until the decision expires.
        """
        cache_key = DECISION_TRANSIENT_PREFIX + compute_request_hash(raw_uri)
        basefile = await self.transients.get(cache_key)
        if basefile and Path(basefile).is_file():
            return basefile

        picked = await self.picker.pick(Path(self.options.THEME_DIR) / self.config.local_dir)
        if picked is None:
            return None

        basefile = str(picked)
        await self.transients.set(cache_key, basefile, self.options.DECISION_CACHE_TTL)
        log.info(f"Serving fallback {basefile} for {raw_uri}")
        return basefile

    def _photon_url(self, resize: ResizeDescriptor) -> str:
        params = {"w": resize.width, "h": resize.height}
        if resize.crop:
            params["resize"] = f"{resize.width},{resize.height}"
        base = self.codec.remote_url_from_key(resize.original_key)
        separator = "&" if "?" in base else "?"
        return base + separator + urlencode(params)
