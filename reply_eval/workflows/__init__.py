"""
Workflows Module

Review reply workflows around the compliance scorer: CSV ingestion, reply
statistics, style guide generation, and styled reply generation.
"""

from .reply_generator import ReplyGenerator, styled_output_path
from .reply_stats import ReplyStats, compute_reply_stats, find_emojis
from .reviews import Review, load_reviews, read_rows, write_reviews_csv
from .style_guide import StyleGuide, StyleGuideGenerator, default_output_path

__all__ = [
    "Review",
    "load_reviews",
    "read_rows",
    "write_reviews_csv",
    "ReplyStats",
    "compute_reply_stats",
    "find_emojis",
    "StyleGuide",
    "StyleGuideGenerator",
    "default_output_path",
    "ReplyGenerator",
    "styled_output_path",
]
