"""
Reply Generator

Two-pass reply writing for customer reviews:

1. generate_raw: a plain reply from the review alone, primed with a one-shot
   example.
2. refine: the raw reply rewritten to follow a brand style guide.

process() runs both passes for many reviews concurrently under an
AdmissionGate and returns copies with raw_reply and refined_reply filled in.
"""

import asyncio
import logging
from dataclasses import replace
from pathlib import Path
from typing import List, Optional, Sequence

from utils.admission_gate import DEFAULT_LIMIT, AdmissionGate
from utils.exceptions import ProcessingError

from ..providers.base import BaseProvider, GenerationConfig, Message
from .reviews import DEFAULT_LOCALE, Review

logger = logging.getLogger(__name__)

GENERATOR_SYSTEM_PROMPT = """\
Write a reply to the customer's review.
Understand the content and sentiment of the review and write a reply that
raises customer satisfaction. Use line breaks where appropriate.

# Prohibited
- Writing any personal name, including the reviewer, owners or staff
- Signing off with the store name (e.g. "From the ... store")

# Output Format
- Keep the reply concise and easy to read.
- Write the reply in the specified language.
"""

EXAMPLE_USER_PROMPT = """
Language:
Japanese

Rating (1-5):
5

Review:
Delicious.
"""

EXAMPLE_ASSISTANT_REPLY = """
Thank you very much for visiting us. We are delighted that you enjoyed your meal. \
We look forward to welcoming you again.
"""

REFINER_SYSTEM_PROMPT = """\
Improve the reply to a customer review so that it follows the style guide.
The review, the brand and the store name are provided; use them as needed.
Output only the improved reply, with no extra text or symbols.
"""


def styled_output_path(csv_path: Path) -> Path:
    """<dir>/<stem>_with_styled.csv for an input CSV path."""
    csv_path = Path(csv_path)
    return csv_path.parent / f"{csv_path.stem}_with_styled.csv"


class ReplyGenerator:
    """Generates and style-refines review replies."""

    def __init__(
        self,
        provider: BaseProvider,
        gate: Optional[AdmissionGate] = None,
        max_tokens: int = 1024,
    ):
        self.provider = provider
        self.gate = gate or AdmissionGate(DEFAULT_LIMIT)
        self.max_tokens = max_tokens

    async def _complete(self, messages: List[Message], step: str) -> str:
        response = await self.provider.generate_chat(
            messages, config=GenerationConfig(max_tokens=self.max_tokens)
        )
        if response.error:
            raise ProcessingError(f"{step} failed: {response.error}")
        text = response.text.strip()
        if not text:
            raise ProcessingError(f"{step} returned an empty reply")
        return text

    async def generate_raw(self, review: Review) -> str:
        """Write a reply from the review alone."""
        user_prompt = (
            f"\nLanguage:\n{review.locale or DEFAULT_LOCALE}\n\n"
            f"Rating (1-5):\n{review.rating or 0}\n\n"
            f"Review:\n{review.review_comment or ''}\n"
        )
        messages = [
            Message("system", GENERATOR_SYSTEM_PROMPT),
            Message("user", EXAMPLE_USER_PROMPT),
            Message("assistant", EXAMPLE_ASSISTANT_REPLY),
            Message("user", user_prompt),
        ]
        return await self._complete(messages, "Reply generation")

    async def refine(self, review: Review, raw_reply: str, style_guide: str) -> str:
        """Rewrite a reply so it follows the style guide."""
        prompt = (
            "\nImprove the reply so that it follows the style guide.\n\n"
            f"Brand name:\n{review.brand_name or ''}\n\n"
            f"Store name:\n{review.store_name or ''}\n\n"
            f"Customer review:\n{review.review_comment or ''}\n\n"
            f"Reply before improvement:\n{raw_reply}\n\n"
            f"********** Style guide **********\n{style_guide}\n"
        )
        messages = [Message("system", REFINER_SYSTEM_PROMPT), Message("user", prompt)]
        return await self._complete(messages, "Reply refinement")

    async def _process_one(self, review: Review, style_guide: str) -> Review:
        async with self.gate:
            raw_reply = await self.generate_raw(review)
        async with self.gate:
            refined = await self.refine(review, raw_reply, style_guide)
        return replace(review, raw_reply=raw_reply, refined_reply=refined)

    async def process(self, reviews: Sequence[Review], style_guide: str) -> List[Review]:
        """Generate and refine replies for all reviews, preserving input order.

        Raises:
            ProcessingError: If any generation or refinement fails.
        """
        logger.info(f"Generating replies for {len(reviews)} reviews (limit {self.gate.limit})")
        results = await asyncio.gather(*(self._process_one(r, style_guide) for r in reviews))
        logger.info(f"Generated {len(results)} replies (peak in flight {self.gate.peak_in_flight})")
        return list(results)
