"""Outbound content rewriting: point missing local uploads at the remote origin."""
import html
import re
from pathlib import Path
from typing import Callable, Dict, Tuple

from stage_proxy.image_utils import resize_dimensions
from stage_proxy.paths import UrlCodec, variant_filename
from stage_proxy.schemas import ImageMetadata, SizeSpec, SrcsetSource

IMG_TAG_RE = re.compile(r"(<img)([^>]*?)(src=)([\"'])([^\"']+)\4([^>]*?)>", re.IGNORECASE)
SRCSET_ATTR_RE = re.compile(r"(\ssrcset=)([\"'])([^\"']*)\2", re.IGNORECASE)
CSS_BACKGROUND_RE = re.compile(
    r"\bbackground(?:-image)?\s*:\s*url\(\s*([\"']?)([^\"')]+)\1\s*\)", re.IGNORECASE
)

# (width, height, crop) buckets for synthesized srcsets
SRCSET_SIZES: Tuple[Tuple[int, int, bool], ...] = (
    (150, 150, True),
    (300, 300, False),
    (768, 768, False),
    (1024, 1024, False),
)
ASSUMED_ORIGINAL_WIDTH = 1200
DEFAULT_SIZES_ATTR = "(max-width: 768px) 100vw, (max-width: 1024px) 50vw, 33vw"


def generate_srcset_from_url(image_url: str) -> list:
    """Srcset candidates built from the variant naming scheme, original last."""
    candidates = [
        f"{variant_filename(image_url, width, height, crop)} {width}w"
        for width, height, crop in SRCSET_SIZES
    ]
    candidates.append(f"{image_url} {ASSUMED_ORIGINAL_WIDTH}w")
    return candidates


class ContentRewriter:
    """
    Rewrites references to local uploads that do not exist on disk.

    References outside the local uploads URL, and files that do exist, are left
    byte-for-byte alone, so running the rewriter twice changes nothing more.
    """

    def __init__(self, codec: UrlCodec, file_exists: Callable[[Path], bool] = None):
        self.codec = codec
        self.file_exists = file_exists or (lambda path: path.is_file())

    def is_missing(self, url: str) -> bool:
        return self.codec.is_local_url(url) and not self.file_exists(self.codec.local_path_for_url(url))

    def rewrite_attachment_url(self, url: str) -> str:
        """Remote URL for a missing local upload, else the URL unchanged."""
        if self.is_missing(url):
            return self.codec.rewrite_local_to_remote(url)
        return url

    def rewrite(self, content: str, is_admin: bool = False) -> str:
        """Rewrite front-end content; admin output is never touched."""
        if is_admin or not content:
            return content

        content = IMG_TAG_RE.sub(self._rewrite_img_tag, content)
        content = CSS_BACKGROUND_RE.sub(self._rewrite_background, content)
        return content

    def _rewrite_img_tag(self, match: re.Match) -> str:
        open_tag, before_src, src_attr, quote, src, after_src = match.groups()

        # Existing srcset candidates are checked one by one
        before_src = SRCSET_ATTR_RE.sub(self._rewrite_srcset_attr, before_src)
        after_src = SRCSET_ATTR_RE.sub(self._rewrite_srcset_attr, after_src)

        if not self.is_missing(src):
            return f"{open_tag}{before_src}{src_attr}{quote}{src}{quote}{after_src}>"

        new_src = self.codec.rewrite_local_to_remote(src)
        attributes = (before_src + after_src).lower()
        has_srcset = "srcset" in attributes
        has_sizes = "sizes" in attributes

        extra = ""
        if not has_srcset:
            extra += f' srcset="{html.escape(", ".join(generate_srcset_from_url(new_src)))}"'
            if not has_sizes:
                extra += f' sizes="{DEFAULT_SIZES_ATTR}"'

        after_src = self._append_attributes(after_src, extra)
        return f'{open_tag}{before_src}src="{new_src}"{after_src}>'

    @staticmethod
    def _append_attributes(after_src: str, extra: str) -> str:
        if not extra:
            return after_src
        stripped = after_src.rstrip()
        if stripped.endswith("/"):
            # Keep the self-closing slash last
            return stripped[:-1].rstrip() + extra + " /"
        return after_src + extra

    def _rewrite_srcset_attr(self, match: re.Match) -> str:
        candidates = match.group(3).split(",")
        rewritten = []
        for candidate in candidates:
            leading = candidate[:len(candidate) - len(candidate.lstrip())]
            parts = candidate.strip().split(None, 1)
            if parts and self.is_missing(html.unescape(parts[0])):
                url = self.codec.rewrite_local_to_remote(html.unescape(parts[0]))
                candidate = leading + " ".join([html.escape(url)] + parts[1:])
            rewritten.append(candidate)
        return f"{match.group(1)}{match.group(2)}{','.join(rewritten)}{match.group(2)}"

    def _rewrite_background(self, match: re.Match) -> str:
        full = match.group(0)
        # Encoded quotes sometimes survive attribute escaping
        src = match.group(2).replace("&#039;", "").replace("&#39;", "")

        if self.is_missing(src):
            full = full.replace(src, self.codec.rewrite_local_to_remote(src))
        return full

    def remote_srcset_sources(
        self,
        sources: Dict[int, SrcsetSource],
        image_src: str,
        metadata: ImageMetadata,
        image_sizes: Dict[str, SizeSpec]
    ) -> Dict[int, SrcsetSource]:
        """
        Add a source per registered size for an image that is missing locally.

        Each generated variant URL points at the remote origin unless that variant
        happens to exist locally. Generated entries win over existing ones.
        """
        if not image_src or not self.is_missing(image_src):
            return sources
        if not metadata.width or not metadata.height:
            return sources

        new_sources = {}
        for size in image_sizes.values():
            if not size.width and not size.height:
                continue

            dimensions = resize_dimensions(metadata.width, metadata.height, size.width, size.height, size.crop)
            if not dimensions:
                continue

            width, height = dimensions
            variant_url = self.rewrite_attachment_url(variant_filename(image_src, width, height, size.crop))
            new_sources[width] = SrcsetSource(url=variant_url, descriptor="w", value=width)

        merged = dict(sources)
        merged.update(new_sources)
        return merged
