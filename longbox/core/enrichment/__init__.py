"""Reference enrichment from the local GCD dump and the ComicVine API."""

from .gcd import GcdDatabaseService, GcdIssueDetails, GcdSeriesResult
from .remote import ComicVineLookup, RemoteIssue
from .service import EnrichmentResult, ReferenceEnrichment

__all__ = [
    "ComicVineLookup",
    "EnrichmentResult",
    "GcdDatabaseService",
    "GcdIssueDetails",
    "GcdSeriesResult",
    "ReferenceEnrichment",
    "RemoteIssue",
]
