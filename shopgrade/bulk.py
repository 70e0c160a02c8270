"""Bulk listing grader.

Grade many listings from CSV/JSON input in one batch.
"""
import csv
import io
import json
import logging
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Optional

from shopgrade.seo_grader import (
    ListingData, ListingImage, ListingReviews, SEOGrade, SEOGrader, split_list,
)

logger = logging.getLogger(__name__)


class BulkStatus(str, Enum):
    PENDING = "pending"
    DONE = "done"
    FAILED = "failed"


@dataclass
class BulkItem:
    listing: ListingData
    status: BulkStatus = BulkStatus.PENDING
    grade: Optional[SEOGrade] = None
    error: str = ""
    duration_ms: int = 0


@dataclass
class BulkResult:
    items: list[BulkItem] = field(default_factory=list)
    total_graded: int = 0
    total_failed: int = 0
    total_truncated: int = 0
    elapsed_ms: int = 0

    @property
    def grades(self) -> dict[int, SEOGrade]:
        return {i.listing.listing_id: i.grade for i in self.items if i.grade is not None}

    @property
    def average_score(self) -> float:
        scores = [g.score for g in self.grades.values()]
        return sum(scores) / len(scores) if scores else 0.0

    def summary(self) -> str:
        lines = [
            f"📦 Bulk Grading Complete",
            f"   Total listings: {len(self.items)}",
            f"   ✅ Graded: {self.total_graded}",
            f"   ❌ Failed: {self.total_failed}",
            f"   📊 Average score: {self.average_score:.1f}",
            f"   ⏱️  Time: {self.elapsed_ms / 1000:.1f}s",
        ]
        if self.total_truncated:
            lines.append(f"   ⏭️  Not processed (over limit): {self.total_truncated}")
        return "\n".join(lines)


def parse_csv(csv_text: str) -> list[ListingData]:
    """Parse CSV text into listings.

    Columns (case-insensitive): listing_id, title, description, tags,
    images, price, reviews_count, reviews_average, favorites, views,
    category. Tags and image URLs are ``|`` or ``,`` separated. Rows
    without a listing id are skipped.
    """
    reader = csv.DictReader(io.StringIO(csv_text))
    listings = []
    for row in reader:
        normalized = {k.strip().lower(): v.strip() for k, v in row.items() if k and v}
        listing_id = normalized.get("listing_id") or normalized.get("id") or ""
        if not listing_id.isdigit():
            continue
        try:
            listings.append(ListingData(
                listing_id=int(listing_id),
                title=normalized.get("title", ""),
                description=normalized.get("description", "").replace("\\n", "\n"),
                tags=split_list(normalized.get("tags", "")),
                images=[ListingImage(url=u) for u in split_list(normalized.get("images", ""))],
                price=float(normalized.get("price") or 0),
                currency=normalized.get("currency", "USD"),
                reviews=ListingReviews(
                    count=int(normalized.get("reviews_count") or 0),
                    average=float(normalized.get("reviews_average") or 0),
                ),
                favorites=int(normalized.get("favorites") or 0),
                views=int(normalized.get("views") or 0),
                category=normalized.get("category", ""),
            ))
        except ValueError as e:
            logger.warning("Skipping CSV row for listing %s: %s", listing_id, e)
    return listings


def parse_json(json_text: str) -> list[ListingData]:
    """Parse JSON text into listings.

    Accepts an array of listing objects or {"listings": [...]}.
    """
    data = json.loads(json_text)
    if isinstance(data, dict):
        data = data.get("listings", data.get("items", []))
    if not isinstance(data, list):
        raise ValueError("JSON must be an array or contain a 'listings' array")
    listings = []
    for item in data:
        if not isinstance(item, dict):
            continue
        try:
            listings.append(ListingData.from_dict(item))
        except (ValueError, TypeError, AttributeError) as e:
            listing_id = item.get("listing_id", item.get("listingId"))
            logger.warning("Skipping JSON record for listing %s: %s", listing_id, e)
    return listings


def parse_input(text: str) -> list[ListingData]:
    """Auto-detect format (CSV or JSON) and parse."""
    stripped = text.strip()
    if stripped.startswith("[") or stripped.startswith("{"):
        return parse_json(stripped)
    return parse_csv(stripped)


def process_bulk(
    listings: list[ListingData],
    grader: SEOGrader,
    on_progress: Optional[Callable[[int, int, int], None]] = None,
    max_items: int = 50,
) -> BulkResult:
    """Grade a batch of listings.

    Args:
        listings: Parsed listings.
        grader: SEOGrader used for every item.
        on_progress: Optional callback(current, total, listing_id).
        max_items: Safety limit on batch size.

    Returns:
        BulkResult with all items and stats.
    """
    result = BulkResult()
    start = time.time()

    if len(listings) > max_items:
        result.total_truncated = len(listings) - max_items
        logger.warning("Batch of %d listings truncated to %d", len(listings), max_items)
        listings = listings[:max_items]

    seen = set()
    for i, listing in enumerate(listings):
        item = BulkItem(listing=listing)
        if on_progress:
            on_progress(i + 1, len(listings), listing.listing_id)

        if listing.listing_id in seen:
            logger.warning("Duplicate listing %s in batch, skipped", listing.listing_id)
            item.error = "Duplicate listing id"
            item.status = BulkStatus.FAILED
            result.total_failed += 1
            result.items.append(item)
            continue
        seen.add(listing.listing_id)

        item_start = time.time()
        try:
            item.grade = grader.grade_listing(listing)
            item.status = BulkStatus.DONE
            result.total_graded += 1
        except Exception as e:
            logger.exception("Error grading listing %s", listing.listing_id)
            item.error = str(e)
            item.status = BulkStatus.FAILED
            result.total_failed += 1
        item.duration_ms = int((time.time() - item_start) * 1000)
        result.items.append(item)

    result.elapsed_ms = int((time.time() - start) * 1000)
    return result
