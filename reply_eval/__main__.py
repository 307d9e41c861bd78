"""
Entry point for running reply-eval as a module.

Usage:
    python -m reply_eval measure --instruction "..." --text "..."
    python -m reply_eval evaluate --config configs/eval_request_example.yaml
"""

import sys

from .cli import main

if __name__ == "__main__":
    sys.exit(main())
