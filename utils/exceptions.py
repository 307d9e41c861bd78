"""
Custom exception hierarchy for review-reply-eval.

All project-specific exceptions inherit from ReplyEvalError.
"""


class ReplyEvalError(Exception):
    """Base exception for review-reply-eval."""

    pass


class ConfigError(ReplyEvalError):
    """Invalid or missing configuration (guidelines, CSV files, columns)."""

    pass


class ProcessingError(ReplyEvalError):
    """Error during a workflow step (style guide or reply generation)."""

    pass


class ProviderError(ReplyEvalError):
    """A language model provider could not be constructed or reached."""

    pass


class ReportingError(ReplyEvalError):
    """Error while writing evaluation reports."""

    pass
