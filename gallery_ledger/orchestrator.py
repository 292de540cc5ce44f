"""Catalog reconciliation: prune the gallery markup and align the ledger with it."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path

import structlog

from .engine import CatalogExtractor, DedupReport, Deduplicator, EngagementLedger


@dataclass(slots=True)
class ReconcileSummary:
    scanned: int = 0
    added: list[str] = field(default_factory=list)
    removed: list[str] = field(default_factory=list)

    def as_dict(self) -> dict[str, int]:
        return {"scanned": self.scanned, "added": len(self.added), "removed": len(self.removed)}


@dataclass(slots=True)
class ReconcileResult:
    markup: str
    summary: ReconcileSummary
    report: DedupReport
    gallery_found: bool = True
    applied: bool = False
    skipped: str | None = None

    @property
    def kept_ids(self) -> list[str]:
        return self.report.kept_ids


class CatalogReconciler:
    """Offline maintenance step; assumes exclusive access to catalog and ledger."""

    def __init__(
        self,
        ledger: EngagementLedger,
        extractor: CatalogExtractor,
        deduplicator: Deduplicator,
        logger: structlog.BoundLogger | None = None,
    ) -> None:
        self.ledger = ledger
        self.extractor = extractor
        self.deduplicator = deduplicator
        self.logger = logger or structlog.get_logger("gallery_ledger.reconciler")

    def reconcile(self, markup: str, dry_run: bool = False) -> ReconcileResult:
        """Prune the gallery and resynchronise the ledger entry set.

        With ``dry_run`` the ledger is left alone and the summary lists the
        ids that would be added or removed. When the markup has no gallery
        region, or the region yields no complete block, nothing is touched.
        """

        region = self.extractor.find_gallery(markup)
        if region is None:
            return self._skip(markup, "gallery_missing", gallery_found=False)

        blocks = self.extractor.extract_blocks(region.content)
        if not blocks:
            return self._skip(markup, "no_blocks")
        report = self.deduplicator.run(blocks)
        kept_ids = report.kept_ids

        content = "\n" + "\n".join(block.raw_content for block in report.kept) + "\n"
        pruned = markup[: region.start] + region.open_tag + content + region.close_tag + markup[region.end :]

        if dry_run:
            current = self.ledger.ids()
            existing, wanted = set(current), set(kept_ids)
            summary = ReconcileSummary(
                scanned=len(blocks),
                added=[item_id for item_id in kept_ids if item_id not in existing],
                removed=[item_id for item_id in current if item_id not in wanted],
            )
        else:
            added, removed = self.ledger.synchronize(kept_ids)
            summary = ReconcileSummary(scanned=len(blocks), added=added, removed=removed)

        self.logger.info(
            "reconcile_finished",
            dry_run=dry_run,
            kept=len(kept_ids),
            dropped=len(report.dropped),
            **summary.as_dict(),
        )
        return ReconcileResult(markup=pruned, summary=summary, report=report, applied=not dry_run)

    def reconcile_file(self, path: Path, dry_run: bool = False) -> ReconcileResult:
        markup = path.read_text(encoding="utf-8")
        result = self.reconcile(markup, dry_run=dry_run)
        if result.applied and result.markup != markup:
            path.write_text(result.markup, encoding="utf-8")
            self.logger.info("catalog_rewritten", path=str(path))
        return result

    def _skip(self, markup: str, reason: str, gallery_found: bool = True) -> ReconcileResult:
        self.logger.warning("reconcile_skipped", reason=reason)
        return ReconcileResult(
            markup=markup,
            summary=ReconcileSummary(),
            report=DedupReport(),
            gallery_found=gallery_found,
            skipped=reason,
        )

    def sync_ids(self, markup: str) -> ReconcileSummary:
        """Align the ledger with every identifier in the markup, without pruning."""

        ids = self.extractor.scan_ids(markup)
        added, removed = self.ledger.synchronize(ids)
        summary = ReconcileSummary(scanned=len(ids), added=added, removed=removed)
        self.logger.info("sync_finished", **summary.as_dict())
        return summary


__all__ = ["CatalogReconciler", "ReconcileResult", "ReconcileSummary"]
