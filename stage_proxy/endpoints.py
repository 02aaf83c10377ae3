"""API endpoints: the uploads proxy, settings, and content rewriting."""
from fastapi import APIRouter, Depends, HTTPException, Request, status
from fastapi.responses import RedirectResponse, Response
from sqlalchemy.ext.asyncio import AsyncSession
from typing import List

from stage_proxy.config import (
    OPTION_LOCAL_DIR, OPTION_MODE, OPTION_URL,
    load_options, overridden_options, registered_sizes, resolve_config,
    sanitize_origin_url, save_options
)
from stage_proxy.db import get_db
from stage_proxy.engine import Redirect, ResolutionEngine
from stage_proxy.errors import ProxyError
from stage_proxy.fallback import FallbackPicker
from stage_proxy.image_utils import synthesize_size_metadata
from stage_proxy.logger import get_logger
from stage_proxy.paths import UrlCodec
from stage_proxy.remote import RemoteFetcher, get_fetcher
from stage_proxy.rewriter import ContentRewriter
from stage_proxy.schemas import (
    ImageMetadata, MetadataRequest, ProxyConfig, ProxyMode,
    RewriteRequest, RewriteResponse, SettingsIn, SettingsOut,
    SrcsetRequest, SrcsetSource, UrlRewriteRequest, UrlRewriteResponse
)
from stage_proxy.settings import Settings, settings
from stage_proxy.storage import StorageAdapter, get_storage_adapter
from stage_proxy.topology import Topology, get_topology
from stage_proxy.transients import TransientStore

log = get_logger("endpoints")

ERROR_DETAIL = "SFP tried to load, but encountered an error"

router = APIRouter(prefix=settings.API_V1_PREFIX)
proxy_router = APIRouter()


def get_settings() -> Settings:
    """Dependency for the process settings."""
    return settings


async def get_proxy_config(
    db: AsyncSession = Depends(get_db),
    config: Settings = Depends(get_settings)
) -> ProxyConfig:
    """Config for this request: environment overrides over stored options."""
    return resolve_config(config, await load_options(db))


def get_codec(
    topology: Topology = Depends(get_topology),
    proxy_config: ProxyConfig = Depends(get_proxy_config)
) -> UrlCodec:
    return UrlCodec(topology, proxy_config.remote_base)


def get_storage(config: Settings = Depends(get_settings)) -> StorageAdapter:
    return get_storage_adapter(config.UPLOADS_BASE_DIR)


def get_engine(
    proxy_config: ProxyConfig = Depends(get_proxy_config),
    codec: UrlCodec = Depends(get_codec),
    storage: StorageAdapter = Depends(get_storage),
    fetcher: RemoteFetcher = Depends(get_fetcher),
    db: AsyncSession = Depends(get_db),
    config: Settings = Depends(get_settings)
) -> ResolutionEngine:
    transients = TransientStore(db)
    return ResolutionEngine(
        config=proxy_config,
        codec=codec,
        storage=storage,
        fetcher=fetcher,
        transients=transients,
        picker=FallbackPicker(transients, ttl=config.FALLBACK_POOL_TTL),
        options=config,
    )


def get_rewriter(codec: UrlCodec = Depends(get_codec)) -> ContentRewriter:
    return ContentRewriter(codec)


def _settings_out(proxy_config: ProxyConfig, config: Settings) -> SettingsOut:
    return SettingsOut(
        url=proxy_config.remote_base,
        mode=proxy_config.mode,
        local_dir=proxy_config.local_dir,
        overridden=overridden_options(config),
    )


@router.get("/settings", response_model=SettingsOut)
async def read_settings(
    proxy_config: ProxyConfig = Depends(get_proxy_config),
    config: Settings = Depends(get_settings)
):
    """Effective proxy settings."""
    return _settings_out(proxy_config, config)


@router.put("/settings", response_model=SettingsOut)
async def update_settings(
    request: SettingsIn,
    db: AsyncSession = Depends(get_db),
    config: Settings = Depends(get_settings)
):
    """
    Store proxy settings.

    The URL is validated and reduced to its domain. Values pinned by environment
    overrides are stored but stay inactive while the override is set.
    """
    values = {}

    if request.url is not None:
        try:
            values[OPTION_URL] = sanitize_origin_url(request.url)
        except ValueError as e:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))

    if request.mode is not None:
        try:
            values[OPTION_MODE] = ProxyMode(request.mode).value
        except ValueError:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail=f"Unknown mode: {request.mode}"
            )

    if request.local_dir is not None:
        values[OPTION_LOCAL_DIR] = request.local_dir.strip().strip("/")

    await save_options(db, values)
    proxy_config = resolve_config(config, await load_options(db))
    return _settings_out(proxy_config, config)


@router.post("/rewrite", response_model=RewriteResponse)
async def rewrite_content(
    request: RewriteRequest,
    rewriter: ContentRewriter = Depends(get_rewriter)
):
    """Rewrite rendered content so missing uploads load from the origin."""
    return RewriteResponse(content=rewriter.rewrite(request.content, is_admin=request.is_admin))


@router.post("/rewrite/url", response_model=UrlRewriteResponse)
async def rewrite_url(
    request: UrlRewriteRequest,
    rewriter: ContentRewriter = Depends(get_rewriter)
):
    """Rewrite a single attachment URL."""
    return UrlRewriteResponse(url=rewriter.rewrite_attachment_url(request.url))


@router.post("/rewrite/srcset", response_model=List[SrcsetSource])
async def rewrite_srcset(
    request: SrcsetRequest,
    rewriter: ContentRewriter = Depends(get_rewriter),
    config: Settings = Depends(get_settings)
):
    """Responsive sources for an image, with registered sizes pointed at the origin."""
    sources = {source.value: source for source in request.sources}
    merged = rewriter.remote_srcset_sources(
        sources, request.image_src, request.metadata, registered_sizes(config)
    )
    return [merged[width] for width in sorted(merged)]


@router.post("/metadata", response_model=ImageMetadata)
async def synthesize_metadata(
    request: MetadataRequest,
    config: Settings = Depends(get_settings)
):
    """Metadata that lists every requested size as already generated."""
    sizes = request.sizes if request.sizes is not None else registered_sizes(config)
    return synthesize_size_metadata(request.metadata, sizes)


async def _serve_file(storage: StorageAdapter, path: str) -> Response:
    try:
        stored = await storage.read_file(path)
    except OSError as e:
        log.error(f"Cannot read {path}: {e}")
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=ERROR_DETAIL)

    return Response(
        content=stored.data,
        media_type=stored.mime_type,
        headers={"Content-Length": str(stored.size)},
    )


@proxy_router.get("/{path:path}", include_in_schema=False)
async def serve_upload(
    path: str,
    request: Request,
    config: Settings = Depends(get_settings),
    codec: UrlCodec = Depends(get_codec),
    storage: StorageAdapter = Depends(get_storage),
    engine: ResolutionEngine = Depends(get_engine)
):
    """
    Serve an upload, fetching or redirecting when it is missing locally.

    Only paths under the uploads root are handled; everything else is a 404.
    """
    raw_uri = request.url.path
    if request.url.query:
        raw_uri += "?" + request.url.query

    if config.UPLOADS_PATH.rstrip("/").lower() + "/" not in raw_uri.lower():
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Not Found")

    key = codec.relative_key_from_request(raw_uri)
    if key and await storage.exists(key):
        return await _serve_file(storage, str(storage.path_for(key)))

    try:
        outcome = await engine.resolve(raw_uri)
    except ProxyError as e:
        log.error(f"Could not resolve {raw_uri}: {e}")
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=ERROR_DETAIL)

    if isinstance(outcome, Redirect):
        return RedirectResponse(url=outcome.url, status_code=outcome.status_code)

    return await _serve_file(storage, outcome.path)
