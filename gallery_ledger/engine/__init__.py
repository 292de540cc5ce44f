"""Engine components: extract → dedup/probe → ledger."""

from .dedup import DedupDecision, DedupReason, DedupReport, Deduplicator, normalize_source
from .extractor import CatalogExtractor, GalleryRegion
from .ledger import EngagementLedger, UserDirectory
from .models import CatalogBlock, EngagementCounts, LedgerEntry, UserRecord
from .prober import ProbeResult, ReachabilityProber, is_network_source
from .thread_pool import ThreadPoolManager

__all__ = [
    "CatalogBlock",
    "CatalogExtractor",
    "DedupDecision",
    "DedupReason",
    "DedupReport",
    "Deduplicator",
    "EngagementCounts",
    "EngagementLedger",
    "GalleryRegion",
    "LedgerEntry",
    "ProbeResult",
    "ReachabilityProber",
    "ThreadPoolManager",
    "UserDirectory",
    "UserRecord",
    "is_network_source",
    "normalize_source",
]
