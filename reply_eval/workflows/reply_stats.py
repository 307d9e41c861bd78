"""
Reply statistics: length and emoji usage across existing replies.

Used to ground a generated style guide in measurable numbers (typical reply
length, whether emoji are used and which ones).
"""

import logging
from dataclasses import asdict, dataclass, field
from typing import Any, Dict, List, Sequence, Tuple

import emoji
import numpy as np

from .reviews import Review

logger = logging.getLogger(__name__)

FREQUENT_EMOJI_SHARE = 0.05  # Emoji used in at least this share of replies

STAT_LABELS = {
    "median_reply_length": "Median characters per reply",
    "stddev_reply_length": "Standard deviation of characters per reply",
    "median_emoji_count": "Median emoji per reply",
    "stddev_emoji_count": "Standard deviation of emoji per reply",
    "frequently_used_emojis": "Emoji used in at least 5% of replies",
    "reply_length_interval": "Reply length range (median ± stddev)",
    "emoji_count_interval": "Emoji count range (median ± stddev)",
    "emoji_usage_rate": "Emoji usage rate (%)",
}


def find_emojis(text: str) -> List[str]:
    """Whole emoji in `text`, in order. ZWJ, skin-tone and flag sequences count once."""
    return [match["emoji"] for match in emoji.emoji_list(text)]


@dataclass
class ReplyStats:
    """Summary statistics over the non-empty replies of a review set."""

    median_reply_length: float = 0.0
    stddev_reply_length: float = 0.0
    median_emoji_count: float = 0.0
    stddev_emoji_count: float = 0.0
    frequently_used_emojis: List[str] = field(default_factory=list)
    reply_length_interval: Tuple[float, float] = (0.0, 0.0)
    emoji_count_interval: Tuple[float, float] = (0.0, 0.0)
    emoji_usage_rate: float = 0.0
    reply_count: int = 0

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["reply_length_interval"] = list(self.reply_length_interval)
        data["emoji_count_interval"] = list(self.emoji_count_interval)
        return data

    def describe(self) -> str:
        """Bullet list of labelled statistics, for prompts and console output."""
        lines = []
        for key, label in STAT_LABELS.items():
            value = getattr(self, key)
            if isinstance(value, tuple):
                value = f"{value[0]:g}-{value[1]:g}"
            elif isinstance(value, list):
                value = " ".join(value) if value else "none"
            elif isinstance(value, float):
                value = f"{value:g}"
            lines.append(f"- {label}: {value}")
        return "\n".join(lines)


def _interval(center: float, spread: float) -> Tuple[float, float]:
    return (max(0.0, center - spread), center + spread)


def compute_reply_stats(reviews: Sequence[Review]) -> ReplyStats:
    """Compute length and emoji statistics over reviews that have a reply."""
    replies = [r.reply for r in reviews if r.reply]
    if not replies:
        logger.warning("No replies to compute statistics from")
        return ReplyStats()

    lengths = np.array([len(reply) for reply in replies], dtype=float)
    emojis_per_reply = [find_emojis(reply) for reply in replies]
    emoji_counts = np.array([len(e) for e in emojis_per_reply], dtype=float)

    # Number of replies each emoji appears in
    reply_counts: Dict[str, int] = {}
    for emojis in emojis_per_reply:
        for char in dict.fromkeys(emojis):
            reply_counts[char] = reply_counts.get(char, 0) + 1

    total = len(replies)
    frequent = [e for e, n in reply_counts.items() if n / total >= FREQUENT_EMOJI_SHARE]

    median_length = float(np.median(lengths))
    stddev_length = float(np.std(lengths))
    median_emoji = float(np.median(emoji_counts))
    stddev_emoji = float(np.std(emoji_counts))

    stats = ReplyStats(
        median_reply_length=median_length,
        stddev_reply_length=stddev_length,
        median_emoji_count=median_emoji,
        stddev_emoji_count=stddev_emoji,
        frequently_used_emojis=frequent,
        reply_length_interval=_interval(median_length, stddev_length),
        emoji_count_interval=_interval(median_emoji, stddev_emoji),
        emoji_usage_rate=sum(1 for e in emojis_per_reply if e) / total * 100,
        reply_count=total,
    )
    logger.debug(f"Reply stats: {stats.to_dict()}")
    return stats
