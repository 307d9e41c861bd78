"""
reply-eval: guideline compliance scoring for customer review replies.

An LLM judge scores how well a reply follows natural-language guidelines;
the batch evaluator aggregates those scores over CSV exports.
"""

__version__ = "0.1.0"
