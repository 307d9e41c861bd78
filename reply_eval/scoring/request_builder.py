"""
Scoring Request Builder

Builds the two-message request (system + user) sent to the judge model for
instruction compliance scoring. The model must answer with JSON matching one
of two fixed schemas: a single score, or one score per guideline.

Instruction and target text are embedded verbatim between separator lines so
the model can tell instruction boundaries from content; nothing is truncated
or escaped. The requested scale is always integers 0-10; normalization to
[0, 1] happens in the metrics.
"""

from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Sequence

from ..providers.base import GenerationConfig, Message
from .guidelines import Guideline

SEPARATOR = "===SEPARATOR==="

SCORE_MIN = 0
SCORE_MAX = 10

SINGLE_SCORE_SCHEMA: Dict[str, Any] = {
    "type": "object",
    "properties": {
        "score": {"type": "number", "minimum": SCORE_MIN, "maximum": SCORE_MAX},
        "reasons": {"type": "array", "items": {"type": "string"}},
    },
    "required": ["score", "reasons"],
    "additionalProperties": False,
}

MULTI_SCORE_SCHEMA: Dict[str, Any] = {
    "type": "object",
    "properties": {
        "results": {
            "type": "array",
            "items": {
                "type": "object",
                "properties": {
                    "title": {"type": "string"},
                    "score": {"type": "number", "minimum": SCORE_MIN, "maximum": SCORE_MAX},
                    "reasons": {"type": "array", "items": {"type": "string"}},
                },
                "required": ["title", "score", "reasons"],
                "additionalProperties": False,
            },
        }
    },
    "required": ["results"],
    "additionalProperties": False,
}

SINGLE_SYSTEM_PROMPT = (
    "Rate how well the target text complies with the instruction below on a scale "
    "of 0 (does not follow the instruction at all) to 10 (follows the instruction "
    "completely), and explain why. Respond in JSON only, with exactly two keys: "
    '"score" (an integer from 0 to 10) and "reasons" (an array of strings).'
)

MULTI_SYSTEM_PROMPT = (
    "For each instruction in the list below, rate how well the target text complies "
    "with it on a scale of 0 (does not follow it at all) to 10 (follows it completely), "
    "and explain why. "
    'Respond in the form {"results":[{"title":string,"score":number,"reasons":[string]}]}. '
    "Evaluate every item in the instruction list and include each one in results. "
    'Output strictly the JSON object {"results": [...]} with no other text. '
    "Each title must exactly match the item name in the instruction list. "
    "score must be an integer from 0 to 10, and reasons should contain several reasons."
)


@dataclass
class ScoringRequest:
    """A complete judge call: messages plus output constraints."""

    messages: List[Message]
    schema: Dict[str, Any]
    schema_name: str
    max_tokens: int
    temperature: Optional[float] = None
    schema_description: str = ""

    def generation_config(self) -> GenerationConfig:
        return GenerationConfig(
            temperature=self.temperature,
            max_tokens=self.max_tokens,
            response_schema=self.schema,
            schema_name=self.schema_name,
            schema_description=self.schema_description,
        )


class ScoringRequestBuilder:
    """Deterministic prompt construction for compliance scoring."""

    def __init__(
        self,
        single_max_tokens: int = 200,
        multi_max_tokens: int = 1000,
        multi_temperature: float = 0.1,
    ):
        """
        Args:
            single_max_tokens: Output cap for single-instruction scoring.
            multi_max_tokens: Output cap for multi-guideline scoring.
            multi_temperature: Sampling temperature for multi-guideline scoring.
        """
        self.single_max_tokens = single_max_tokens
        self.multi_max_tokens = multi_max_tokens
        self.multi_temperature = multi_temperature

    def build_single(self, instruction: str, target_text: str) -> ScoringRequest:
        """Request a single 0-10 score for one instruction."""
        user_text = (
            f"{SEPARATOR}\n"
            f"Instruction:\n{instruction}\n"
            f"{SEPARATOR}\n"
            f"Target text:\n{target_text}\n"
            f"{SEPARATOR}"
        )
        return ScoringRequest(
            messages=[Message("system", SINGLE_SYSTEM_PROMPT), Message("user", user_text)],
            schema=SINGLE_SCORE_SCHEMA,
            schema_name="instruction_compliance",
            schema_description="Instruction compliance score (0-10) with reasons",
            max_tokens=self.single_max_tokens,
        )

    def build_multi(self, guidelines: Sequence[Guideline], target_text: str) -> ScoringRequest:
        """Request one 0-10 score per guideline in a single call."""
        listing = "\n".join(
            f"{i + 1}. {g.title}: {g.instruction}" for i, g in enumerate(guidelines)
        )
        user_text = (
            f"{SEPARATOR}\n"
            f"Instruction list:\n{listing}\n"
            f"{SEPARATOR}\n"
            f"Target text:\n{target_text}\n"
            f"{SEPARATOR}\n"
        )
        return ScoringRequest(
            messages=[Message("system", MULTI_SYSTEM_PROMPT), Message("user", user_text)],
            schema=MULTI_SCORE_SCHEMA,
            schema_name="multi_guideline_compliance",
            schema_description="Compliance scores for several guidelines at once",
            max_tokens=self.multi_max_tokens,
            temperature=self.multi_temperature,
        )
