"""CelesTrak GP element-set client.

Fetches element sets in text form from the public CelesTrak GP feed, with a
fallback host, and loads them into an object store.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

import requests

from astrashield.core.tle import parse_element_sets_detailed
from astrashield.data.store import ObjectStore
from astrashield.utils.errors import FetchError

logger = logging.getLogger(__name__)


@dataclass
class IngestSummary:
    """Counts from loading a feed into a store."""

    inserted: int
    updated: int
    total: int
    skipped: int = 0


@dataclass
class CelesTrakClient:
    """Client for the CelesTrak GP text feed.

    No account is required.

    Attributes:
        timeout: Per-request timeout in seconds.
        user_agent: User-Agent header sent with each request.
    """

    timeout: float = 30.0
    user_agent: str = "AstraShield/1.0"
    _session: requests.Session = field(default_factory=requests.Session, repr=False)

    PRIMARY_URL = "https://celestrak.org/NORAD/elements/gp.php"
    FALLBACK_URL = "https://www.celestrak.org/NORAD/elements/gp.php"

    def _get(self, url: str, group: str) -> str:
        response = self._session.get(
            url,
            params={"GROUP": group, "FORMAT": "tle"},
            headers={"User-Agent": self.user_agent},
            timeout=self.timeout,
        )
        response.raise_for_status()
        return response.text

    def fetch_element_sets(self, group: str = "active") -> str:
        """Download the element-set text for a CelesTrak group.

        Args:
            group: CelesTrak group name, e.g. "active" or "stations".

        Returns:
            Raw element-set text.

        Raises:
            FetchError: If both the primary and the fallback host fail.
        """
        logger.info("Fetching element sets for group %r from CelesTrak", group)
        try:
            return self._get(self.PRIMARY_URL, group)
        except requests.RequestException as primary_error:
            logger.warning("Primary element-set source unavailable (%s), trying fallback", primary_error)
            try:
                return self._get(self.FALLBACK_URL, group)
            except requests.RequestException as fallback_error:
                logger.error(
                    "All element-set sources failed: %s / %s", primary_error, fallback_error
                )
                raise FetchError(f"Element-set fetch failed: {primary_error}") from fallback_error

    def ingest(self, store: ObjectStore, group: str = "active") -> IngestSummary:
        """Fetch a group and upsert every parsed object into the store.

        Raises:
            FetchError: If the feed cannot be fetched or yields no objects.
        """
        report = parse_element_sets_detailed(self.fetch_element_sets(group))
        if not report.objects:
            raise FetchError("No valid element sets parsed from feed")

        existing = sum(1 for obj in report.objects if store.find_by_id(obj.catalog_id) is not None)
        store.bulk_upsert_objects(report.objects)

        summary = IngestSummary(
            inserted=len(report.objects) - existing,
            updated=existing,
            total=len(report.objects),
            skipped=report.skipped,
        )
        logger.info(
            "Element-set update complete: %d inserted, %d updated, %d skipped",
            summary.inserted, summary.updated, summary.skipped,
        )
        return summary
