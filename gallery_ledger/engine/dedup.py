"""Deduplication of catalog blocks by identifier and normalised image source."""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Iterable
from urllib.parse import urlsplit, urlunsplit

import structlog

from .models import CatalogBlock
from .prober import ProbeResult, Prober, is_network_source
from .thread_pool import ThreadPoolManager

_QUERY_TAIL = re.compile(r"\?.*$", re.DOTALL)


class DedupReason(str, Enum):
    DUPLICATE_ID = "duplicate-id"
    DUPLICATE_SRC = "duplicate-src"
    NO_SRC = "no-src"
    LOCAL = "local"
    REACHABLE = "reachable"
    UNREACHABLE = "unreachable"


KEEP_REASONS = frozenset({DedupReason.LOCAL, DedupReason.REACHABLE})


def normalize_source(source: str | None) -> str:
    """Canonical form used to compare image sources.

    Absolute URLs lose their query string and a single trailing slash and are
    case-folded; anything that does not parse as an absolute URL gets the same
    treatment textually.
    """

    if not source:
        return ""
    source = source.strip()
    try:
        parts = urlsplit(source)
    except ValueError:
        parts = None
    if parts is not None and parts.scheme and parts.netloc:
        text = urlunsplit((parts.scheme, parts.netloc, parts.path, "", parts.fragment))
    else:
        text = _QUERY_TAIL.sub("", source)
    if text.endswith("/"):
        text = text[:-1]
    return text.casefold()


@dataclass(frozen=True, slots=True)
class DedupDecision:
    block: CatalogBlock
    reason: DedupReason
    probe: ProbeResult | None = None

    @property
    def kept(self) -> bool:
        return self.reason in KEEP_REASONS


@dataclass
class DedupReport:
    """Every decision in document order."""

    decisions: list[DedupDecision] = field(default_factory=list)

    @property
    def kept(self) -> list[CatalogBlock]:
        return [decision.block for decision in self.decisions if decision.kept]

    @property
    def dropped(self) -> list[DedupDecision]:
        return [decision for decision in self.decisions if not decision.kept]

    @property
    def kept_ids(self) -> list[str]:
        return [block.id for block in self.kept]

    def count(self, reason: DedupReason) -> int:
        return sum(1 for decision in self.decisions if decision.reason is reason)


class Deduplicator:
    """Single pass over the block sequence keeping the first of each id/source."""

    def __init__(
        self,
        prober: Prober,
        thread_pool: ThreadPoolManager | None = None,
        timeout: float | None = None,
        logger: structlog.BoundLogger | None = None,
    ) -> None:
        self.prober = prober
        self.thread_pool = thread_pool or ThreadPoolManager(default_workers=1)
        self.timeout = timeout
        self.logger = logger or structlog.get_logger("gallery_ledger.dedup")

    def run(self, blocks: Iterable[CatalogBlock]) -> DedupReport:
        seen_ids: set[str] = set()
        seen_sources: set[str] = set()
        decisions: list[DedupDecision | None] = []
        pending: list[tuple[int, CatalogBlock]] = []

        for block in blocks:
            normalized = normalize_source(block.image_source)
            if block.id in seen_ids:
                decisions.append(DedupDecision(block, DedupReason.DUPLICATE_ID))
                continue
            seen_ids.add(block.id)
            if normalized and normalized in seen_sources:
                decisions.append(DedupDecision(block, DedupReason.DUPLICATE_SRC))
                continue
            if not normalized:
                decisions.append(DedupDecision(block, DedupReason.NO_SRC))
                continue
            seen_sources.add(normalized)
            if not is_network_source(block.image_source):
                decisions.append(DedupDecision(block, DedupReason.LOCAL))
                continue
            pending.append((len(decisions), block))
            decisions.append(None)

        results = self.thread_pool.map_ordered(
            lambda item: self.prober.probe(item[1].image_source.strip(), self.timeout), pending
        )
        for (index, block), result in zip(pending, results):
            reason = DedupReason.REACHABLE if result.ok else DedupReason.UNREACHABLE
            decisions[index] = DedupDecision(block, reason, probe=result)

        report = DedupReport(decisions=[decision for decision in decisions if decision is not None])
        for decision in report.decisions:
            self._log(decision)
        self.logger.info(
            "dedup_finished",
            scanned=len(report.decisions),
            kept=len(report.kept),
            dropped=len(report.dropped),
        )
        return report

    def _log(self, decision: DedupDecision) -> None:
        event = "block_kept" if decision.kept else "block_dropped"
        extra = {}
        if decision.probe is not None:
            extra = {"status": decision.probe.status, "content_type": decision.probe.content_type}
        self.logger.info(
            event,
            item=decision.block.id,
            reason=decision.reason.value,
            src=decision.block.image_source,
            **extra,
        )


__all__ = [
    "DedupDecision",
    "DedupReason",
    "DedupReport",
    "Deduplicator",
    "KEEP_REASONS",
    "normalize_source",
]
