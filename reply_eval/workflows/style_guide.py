"""
Style Guide Generator

Derives a brand reply style guide from existing review/reply pairs in two
stages:

1. Extraction: reviews are sent in batches of 25; for each batch the model
   returns tone, pronoun, paragraph, phrases, signature and cta notes as
   JSON (null where replies vary too much to generalize). Failed batches
   are logged and skipped.
2. Summary: all extractions plus the reply statistics are merged into one
   markdown style guide.
"""

import json
import logging
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence

from utils.exceptions import ProcessingError

from ..providers.base import BaseProvider, GenerationConfig, Message
from .reply_stats import ReplyStats, compute_reply_stats
from .reviews import Review

logger = logging.getLogger(__name__)

BATCH_SIZE = 25

EXTRACTION_FIELDS = ("tone", "pronoun", "paragraph", "phrases", "signature", "cta")

EXTRACTION_SCHEMA: Dict[str, Any] = {
    "type": "object",
    "properties": {name: {"type": ["string", "null"]} for name in EXTRACTION_FIELDS},
    "required": list(EXTRACTION_FIELDS),
    "additionalProperties": False,
}

STYLE_GUIDE_SCHEMA: Dict[str, Any] = {
    "type": "object",
    "properties": {"style_guide": {"type": "string"}},
    "required": ["style_guide"],
    "additionalProperties": False,
}

EXTRACTION_INSTRUCTIONS = """\
You are an expert at writing style guides for replies to customer reviews.

You receive a list of past replies. Describe the brand's reply style so that
anyone applying it would interpret it the same way, with concrete examples.

Items:
1. tone: politeness and formality level, sentence endings, honorific usage,
   rhythm of short and long sentences.
2. pronoun: how the business refers to itself, to the customer and to others.
3. paragraph: paragraph structure, typical length, order of thanks, apology,
   invitation to return and other parts.
4. phrases: recurring set phrases, with several variations per situation
   (thanks, invitation to return, apology).
5. signature: sign-off format (name, department, contact details).
6. cta: call-to-action wording and when it is used.

Constraints:
- Return null for an item that varies widely between replies.
- Use concrete wording that leaves no room for interpretation.
- Write markdown.
- Capture this brand's own voice, not generic best practice.
"""

SUMMARIZER_INSTRUCTIONS = """\
You are an expert at writing style guides for replies to customer reviews.
You receive style notes written by several analysts. Merge them into one final
style guide in markdown.

Conditions:
- Use concrete wording that leaves no room for interpretation.
- Capture this brand's own voice, not generic best practice.
- Always include a target reply length, whether emoji may be used, and the
  emoji that are commonly used.
- Give several variations per situation for paragraph structure, set phrases
  and calls to action so replies do not become monotonous.
"""


@dataclass
class StyleGuide:
    """A generated style guide and the material it was built from."""

    markdown: str
    stats: ReplyStats
    extractions: List[Dict[str, Optional[str]]] = field(default_factory=list)
    failed_batches: List[int] = field(default_factory=list)

    def save(self, path: Path) -> Path:
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(self.markdown, encoding="utf-8")
        logger.info(f"Style guide written to {path}")
        return path


def default_output_path(csv_path: Path, output_dir: Optional[Path] = None) -> Path:
    """style-guide-<csv name>-<timestamp>.md next to the CSV (or in output_dir)."""
    csv_path = Path(csv_path)
    stamp = datetime.now().strftime("%Y%m%d_%H%M%S")
    return (output_dir or csv_path.parent) / f"style-guide-{csv_path.stem}-{stamp}.md"


def _parse_extraction(text: str) -> Dict[str, Optional[str]]:
    data = json.loads(text)
    if not isinstance(data, dict):
        raise ValueError("extraction is not a JSON object")
    extraction = {}
    for name in EXTRACTION_FIELDS:
        value = data.get(name)
        if value is not None and not isinstance(value, str):
            raise ValueError(f"{name} must be a string or null")
        extraction[name] = value
    return extraction


class StyleGuideGenerator:
    """Builds a markdown style guide from review/reply pairs."""

    def __init__(
        self,
        provider: BaseProvider,
        batch_size: int = BATCH_SIZE,
        extraction_max_tokens: int = 4096,
        summary_max_tokens: int = 8192,
    ):
        self.provider = provider
        self.batch_size = batch_size
        self.extraction_max_tokens = extraction_max_tokens
        self.summary_max_tokens = summary_max_tokens

    async def extract_batch(self, batch: Sequence[Review]) -> Dict[str, Optional[str]]:
        """Run the extraction call for one batch.

        Raises:
            ProcessingError: If the call fails or returns invalid JSON.
        """
        payload = [
            {
                "brand_name": r.brand_name,
                "store_name": r.store_name,
                "review_title": r.review_title,
                "review_comment": r.review_comment,
                "reply": r.reply,
            }
            for r in batch
        ]
        prompt = (
            "Extract the features shared by the following review replies, "
            "such as tone and structure.\n\n"
            + json.dumps(payload, ensure_ascii=False, indent=2)
        )
        response = await self.provider.generate_chat(
            [Message("system", EXTRACTION_INSTRUCTIONS), Message("user", prompt)],
            config=GenerationConfig(
                max_tokens=self.extraction_max_tokens,
                response_schema=EXTRACTION_SCHEMA,
                schema_name="reply_style_extraction",
            ),
        )
        if response.error:
            raise ProcessingError(f"Extraction call failed: {response.error}")
        try:
            return _parse_extraction(response.text)
        except ValueError as e:
            raise ProcessingError(f"Invalid extraction response: {e}") from e

    async def summarize(
        self, extractions: List[Dict[str, Optional[str]]], stats: ReplyStats
    ) -> str:
        """Merge extractions and statistics into the final markdown guide."""
        prompt = (
            "Using the statistics and style notes below, write the brand's own "
            "review reply style guide in markdown.\n"
            f"## Statistics:\n{stats.describe()}\n"
            f"## Style notes:\n{json.dumps(extractions, ensure_ascii=False, indent=2)}"
        )
        response = await self.provider.generate_chat(
            [Message("system", SUMMARIZER_INSTRUCTIONS), Message("user", prompt)],
            config=GenerationConfig(
                max_tokens=self.summary_max_tokens,
                response_schema=STYLE_GUIDE_SCHEMA,
                schema_name="style_guide",
            ),
        )
        if response.error:
            raise ProcessingError(f"Style guide summary failed: {response.error}")
        try:
            data = json.loads(response.text)
        except ValueError as e:
            raise ProcessingError(f"Invalid style guide response: {e}") from e
        if not isinstance(data, dict) or not isinstance(data.get("style_guide"), str):
            raise ProcessingError("Style guide response has no style_guide string")
        return data["style_guide"]

    async def generate(self, reviews: Sequence[Review]) -> StyleGuide:
        """Run extraction over all batches, then summarize.

        Raises:
            ProcessingError: If no batch could be extracted or the summary fails.
        """
        stats = compute_reply_stats(reviews)

        extractions: List[Dict[str, Optional[str]]] = []
        failed: List[int] = []
        for index, start in enumerate(range(0, len(reviews), self.batch_size)):
            batch = reviews[start : start + self.batch_size]
            try:
                extractions.append(await self.extract_batch(batch))
            except ProcessingError as e:
                logger.warning(f"Batch {index} error: {e}")
                failed.append(index)

        if not extractions:
            raise ProcessingError("No batch could be extracted; cannot build a style guide")

        logger.info(f"Extracted style notes from {len(extractions)} batches ({len(failed)} failed)")
        markdown = await self.summarize(extractions, stats)
        return StyleGuide(
            markdown=markdown, stats=stats, extractions=extractions, failed_batches=failed
        )
