"""Local fallback pool: substitute images served when the origin cannot deliver."""
import random
import re
from pathlib import Path
from typing import List, Optional

from stage_proxy.logger import get_logger
from stage_proxy.settings import settings
from stage_proxy.transients import TransientStore

log = get_logger("fallback")

POOL_TRANSIENT = "sfp-replacement-images"

# Variants created by earlier resizes are not originals
RESIZED_NAME_RE = re.compile(r".+[0-9]+x[0-9]+c?\.(jpe?g|png|gif)$", re.IGNORECASE)


def list_pool(pool_directory: Path) -> List[str]:
    """Eligible file names in the pool directory, sorted."""
    if not pool_directory.is_dir():
        return []
    return sorted(
        entry.name
        for entry in pool_directory.iterdir()
        if entry.is_file() and not RESIZED_NAME_RE.match(entry.name)
    )


class FallbackPicker:
    """Uniformly random pick from a cached pool listing."""

    def __init__(self, transients: TransientStore, ttl: int = None, rng: random.Random = None):
        self.transients = transients
        self.ttl = ttl if ttl is not None else settings.FALLBACK_POOL_TTL
        self.rng = rng or random.Random()

    async def pool(self, pool_directory: Path) -> List[str]:
        cache_key = f"{POOL_TRANSIENT}:{pool_directory}"
        images = await self.transients.get(cache_key)
        if images is None:
            images = list_pool(pool_directory)
            # Empty listings are not cached so a newly filled pool is seen at once
            if images:
                await self.transients.set(cache_key, images, self.ttl)
        return images

    async def pick(self, pool_directory: Path) -> Optional[Path]:
        images = await self.pool(pool_directory)
        if not images:
            log.warning(f"No fallback images in {pool_directory}")
            return None
        return pool_directory / self.rng.choice(images)
