"""Resolved proxy configuration: environment override > stored option > default."""
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from typing import Dict, List
from urllib.parse import urlparse

from stage_proxy.logger import get_logger
from stage_proxy.models import Option
from stage_proxy.paths import extract_origin_domain
from stage_proxy.schemas import ProxyConfig, ProxyMode, SizeSpec
from stage_proxy.settings import Settings

log = get_logger("config")

OPTION_URL = "sfp_url"
OPTION_MODE = "sfp_mode"
OPTION_LOCAL_DIR = "sfp_local_dir"

DEFAULT_MODE = ProxyMode.HEADER
DEFAULT_LOCAL_DIR = "sfp-images"


def parse_mode(value: str) -> ProxyMode:
    """Mode from a configured string; unknown or empty values give the default."""
    if not value:
        return DEFAULT_MODE
    try:
        return ProxyMode(value)
    except ValueError:
        log.warning(f"Unknown proxy mode {value!r}, using {DEFAULT_MODE.value}")
        return DEFAULT_MODE


def overridden_options(config: Settings) -> List[str]:
    """Names of the options pinned by environment overrides."""
    pinned = []
    if config.STAGE_FILE_PROXY_URL is not None:
        pinned.append("url")
    if config.STAGE_FILE_PROXY_MODE is not None:
        pinned.append("mode")
    if config.STAGE_FILE_PROXY_LOCAL_DIR is not None:
        pinned.append("local_dir")
    return pinned


def resolve_config(config: Settings, stored: Dict[str, str]) -> ProxyConfig:
    """Build the immutable config for one request scope."""
    if config.STAGE_FILE_PROXY_URL is not None:
        remote_base = extract_origin_domain(config.STAGE_FILE_PROXY_URL)
    else:
        # Stored URLs were reduced to their domain when saved
        remote_base = stored.get(OPTION_URL) or ""

    if config.STAGE_FILE_PROXY_MODE is not None:
        mode = parse_mode(config.STAGE_FILE_PROXY_MODE)
    else:
        mode = parse_mode(stored.get(OPTION_MODE))

    if config.STAGE_FILE_PROXY_LOCAL_DIR is not None:
        local_dir = config.STAGE_FILE_PROXY_LOCAL_DIR
    else:
        local_dir = stored.get(OPTION_LOCAL_DIR)

    return ProxyConfig(
        remote_base=remote_base,
        mode=mode,
        local_dir=local_dir or DEFAULT_LOCAL_DIR,
    )


async def load_options(db: AsyncSession) -> Dict[str, str]:
    """All stored options."""
    result = await db.execute(select(Option))
    return {option.name: option.value for option in result.scalars().all()}


async def save_options(db: AsyncSession, values: Dict[str, str]) -> None:
    """Upsert stored options."""
    for name, value in values.items():
        await db.merge(Option(name=name, value=value))
    await db.commit()


def sanitize_origin_url(value: str) -> str:
    """
    Validate a submitted origin URL and reduce it to its domain part.

    Raises:
        ValueError: If the value is not an absolute http(s) URL
    """
    value = value.strip()
    if not value:
        return ""

    parsed = urlparse(value)
    if parsed.scheme.lower() not in ("http", "https") or not parsed.netloc:
        raise ValueError("Please enter a valid, complete URL (including http:// or https://).")

    return extract_origin_domain(value)


def registered_sizes(config: Settings) -> Dict[str, SizeSpec]:
    """IMAGE_SIZES as SizeSpec models."""
    return {
        name: SizeSpec(width=width, height=height, crop=crop)
        for name, (width, height, crop) in config.IMAGE_SIZES.items()
    }
