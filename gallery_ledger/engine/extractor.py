"""Catalog extraction: lift item blocks out of the gallery markup.

Block boundaries are found with a small state machine over element
open/close markers rather than a DOM parse, so that each block's source
text can be written back verbatim. ``selectolax`` is only used inside an
already isolated block to find its first image.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from enum import Enum
from typing import Iterator

import structlog
from selectolax.parser import HTMLParser

from ..config import CatalogConfig
from ..errors import ExtractionIncomplete
from .models import CatalogBlock


class ScanState(str, Enum):
    SCANNING = "scanning"
    IN_BLOCK = "in_block"


@dataclass(frozen=True, slots=True)
class GalleryRegion:
    """Location of the gallery section inside the full markup."""

    start: int
    end: int
    open_tag: str
    content: str
    close_tag: str


def _attr_pattern(name: str) -> re.Pattern[str]:
    return re.compile(
        rf"(?<![\w-]){re.escape(name)}\s*=\s*[\"']([^\"']*)[\"']",
        re.IGNORECASE,
    )


def _has_class(open_tag: str, class_name: str) -> bool:
    match = _attr_pattern("class").search(open_tag)
    if not match:
        return False
    return class_name.lower() in match.group(1).lower().split()


class CatalogExtractor:
    """Find the gallery region and the qualifying item blocks inside it."""

    def __init__(
        self,
        config: CatalogConfig | None = None,
        element: str = "div",
        logger: structlog.BoundLogger | None = None,
    ) -> None:
        self.config = config or CatalogConfig()
        self.element = element
        self.logger = logger or structlog.get_logger("gallery_ledger.extractor")
        self._marker = re.compile(rf"<(/?){re.escape(element)}\b[^>]*>", re.IGNORECASE)
        self._id_attr = _attr_pattern(self.config.id_attribute)
        self._gallery = re.compile(
            r"(<section\b[^>]*>)(.*?)(</section\s*>)",
            re.IGNORECASE | re.DOTALL,
        )

    # ------------------------------------------------------------------
    def find_gallery(self, markup: str) -> GalleryRegion | None:
        for match in self._gallery.finditer(markup):
            if _has_class(match.group(1), self.config.gallery_class):
                return GalleryRegion(
                    start=match.start(),
                    end=match.end(),
                    open_tag=match.group(1),
                    content=match.group(2),
                    close_tag=match.group(3),
                )
        return None

    def extract(self, markup: str) -> list[CatalogBlock]:
        """Return the blocks of the gallery region in document order."""

        region = self.find_gallery(markup)
        if region is None:
            self.logger.info("gallery_missing", gallery_class=self.config.gallery_class)
            return []
        return self.extract_blocks(region.content)

    def extract_blocks(self, text: str) -> list[CatalogBlock]:
        blocks: list[CatalogBlock] = []
        try:
            for block in self._scan(text):
                blocks.append(block)
        except ExtractionIncomplete as exc:
            self.logger.warning("block_unterminated", item=exc.block_id, offset=exc.offset)
        return blocks

    def scan_ids(self, markup: str) -> list[str]:
        """Every non-empty identifier attribute value in the markup, in order."""

        return [value for value in self._id_attr.findall(markup) if value]

    # ------------------------------------------------------------------
    def _qualifying_id(self, open_tag: str) -> str | None:
        if not _has_class(open_tag, self.config.block_class):
            return None
        match = self._id_attr.search(open_tag)
        if not match or not match.group(1):
            return None
        return match.group(1)

    def _scan(self, text: str) -> Iterator[CatalogBlock]:
        state = ScanState.SCANNING
        depth = 0
        start = 0
        block_id = ""
        for marker in self._marker.finditer(text):
            closing = marker.group(1) == "/"
            if state is ScanState.SCANNING:
                if closing:
                    continue
                candidate = self._qualifying_id(marker.group(0))
                if candidate is None:
                    continue
                state, depth, start, block_id = ScanState.IN_BLOCK, 1, marker.start(), candidate
                continue
            depth += -1 if closing else 1
            if depth == 0:
                raw = text[start : marker.end()]
                yield CatalogBlock(id=block_id, raw_content=raw, image_source=self.first_image(raw))
                state = ScanState.SCANNING
        if state is ScanState.IN_BLOCK:
            raise ExtractionIncomplete(block_id, start)

    @staticmethod
    def first_image(fragment: str) -> str:
        """Return the first non-empty ``img`` source inside ``fragment``."""

        for node in HTMLParser(fragment).css("img"):
            src = (node.attributes.get("src") or "").strip()
            if src:
                return src
        return ""


__all__ = ["CatalogExtractor", "GalleryRegion", "ScanState"]
