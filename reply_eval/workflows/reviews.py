"""
Review CSV ingestion and export.

Review exports carry one review per row with at least these columns:
brand_name, store_name, review_title, review_comment, locale, rating, reply.
Missing cells become None; locale and rating fall back to defaults.
"""

import csv
import logging
from dataclasses import asdict, dataclass
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence

from utils.exceptions import ConfigError

logger = logging.getLogger(__name__)

DEFAULT_LOCALE = "Japanese"

REVIEW_FIELDS = (
    "brand_name",
    "store_name",
    "review_title",
    "review_comment",
    "locale",
    "rating",
    "reply",
)


@dataclass
class Review:
    """One customer review and its (optional) reply."""

    brand_name: Optional[str] = None
    store_name: Optional[str] = None
    review_title: Optional[str] = None
    review_comment: Optional[str] = None
    locale: str = DEFAULT_LOCALE
    rating: float = 0
    reply: Optional[str] = None
    raw_reply: Optional[str] = None
    refined_reply: Optional[str] = None

    @classmethod
    def from_row(cls, row: Dict[str, Any]) -> "Review":
        def text(name: str) -> Optional[str]:
            value = row.get(name)
            return value if value not in (None, "") else None

        return cls(
            brand_name=text("brand_name"),
            store_name=text("store_name"),
            review_title=text("review_title"),
            review_comment=text("review_comment"),
            locale=text("locale") or DEFAULT_LOCALE,
            rating=_parse_rating(row.get("rating")),
            reply=text("reply"),
        )

    def to_row(self, include_generated: bool = True) -> Dict[str, Any]:
        row = asdict(self)
        if not include_generated:
            row.pop("raw_reply")
            row.pop("refined_reply")
        return row


def _parse_rating(value: Any) -> float:
    # Unparseable ratings count as 0 (unknown)
    try:
        rating = float(value)
    except (TypeError, ValueError):
        return 0
    return int(rating) if rating.is_integer() else rating


def read_rows(path: Path) -> List[Dict[str, str]]:
    """Read a CSV file into a list of raw dict rows (header -> cell).

    Raises:
        ConfigError: If the file does not exist.
    """
    path = Path(path)
    if not path.exists():
        raise ConfigError(f"CSV file not found: {path}")

    # utf-8-sig strips the BOM spreadsheet exports often prepend
    with open(path, newline="", encoding="utf-8-sig") as f:
        rows = list(csv.DictReader(f, restval=""))

    logger.info(f"Read {len(rows)} rows from {path}")
    return rows


def load_reviews(path: Path) -> List[Review]:
    """Load reviews from a CSV export."""
    return [Review.from_row(row) for row in read_rows(path)]


def write_reviews_csv(reviews: Sequence[Review], path: Path, include_generated: bool = True) -> Path:
    """Write reviews to CSV. Strings are quoted, None becomes an empty cell."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)

    rows = [r.to_row(include_generated) for r in reviews]
    fieldnames = list(rows[0]) if rows else list(REVIEW_FIELDS)

    with open(path, "w", newline="", encoding="utf-8") as f:
        writer = csv.DictWriter(f, fieldnames=fieldnames, quoting=csv.QUOTE_NONNUMERIC)
        writer.writeheader()
        for row in rows:
            writer.writerow({k: ("" if v is None else v) for k, v in row.items()})

    logger.info(f"Wrote {len(rows)} reviews to {path}")
    return path
