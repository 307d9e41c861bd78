"""
reply-eval CLI

Command-line interface for scoring review replies against guidelines and for
the reply workflows.

Usage:
    # Score one text against one instruction
    python -m reply_eval measure --instruction "Do not use emoji." --text "Thanks! 😊"

    # Batch evaluation from a request config
    python -m reply_eval evaluate --config configs/eval_request_example.yaml

    # Reply statistics for a review export
    python -m reply_eval reply-stats --csv data/reviews.csv

    # Style guide from existing replies, then styled replies
    python -m reply_eval style-guide --csv data/reviews.csv --output guide.md
    python -m reply_eval generate-replies --csv data/reviews.csv --style-guide guide.md
"""

import argparse
import asyncio
import json
import math
import sys
from pathlib import Path
from typing import List, Optional

from rich.console import Console
from rich.table import Table

import config as settings
from utils.exceptions import ReplyEvalError
from utils.logging_config import setup_logging

console = Console()


def _create_provider(provider_name: str, model: Optional[str]):
    from .providers import ProviderFactory

    provider_config = settings.provider_config_from_env(provider_name, model)
    return ProviderFactory.create(provider_name, provider_config)


def _fmt(value: float) -> str:
    return "n/a" if math.isnan(value) else f"{value:.3f}"


async def cmd_measure(args: argparse.Namespace) -> int:
    """Score a single text against one instruction."""
    from .scoring import GuidelinesComplianceMetric, InstructionComplianceMetric

    provider = _create_provider(args.provider, args.model)
    metric_cls = GuidelinesComplianceMetric if args.multi else InstructionComplianceMetric
    result = await metric_cls(provider).measure(args.instruction, args.text)

    if args.json:
        console.print_json(json.dumps(result.to_dict(), ensure_ascii=False))
        return 0 if not result.failed else 1

    if result.failed:
        console.print(f"[yellow]Scoring failed:[/yellow] {result.error}")
    console.print(f"[bold]Score:[/bold] {result.score:.2f}")
    for reason in result.reasons:
        console.print(f"  - {reason}")
    return 0 if not result.failed else 1


async def cmd_evaluate(args: argparse.Namespace) -> int:
    """Run a batch compliance evaluation from a request config."""
    from .evaluation import (
        EvalRequestConfig,
        EvaluationReportGenerator,
        EvaluationRunner,
        ReportConfig,
    )

    config = EvalRequestConfig.from_yaml(Path(args.config))
    provider_name = config.provider or args.provider
    provider = _create_provider(provider_name, config.model or args.model)

    console.print(f"[cyan]Evaluation: {config.request_id}[/cyan]")
    console.print(f"[dim]Files: {', '.join(p.name for p in config.csv_files)}[/dim]")
    console.print(f"[dim]Columns: {', '.join(config.columns)}[/dim]")
    console.print(f"[dim]Guidelines: {len(config.guidelines)} ({config.mode} mode)[/dim]")

    run = await EvaluationRunner(provider).run(config)

    for file_name, report in run.reports.items():
        for column, cells in report.table.items():
            table = Table(title=f"{file_name} / {column}")
            table.add_column("Guideline", style="cyan")
            table.add_column("Average", justify="right")
            table.add_column("Std dev", justify="right")
            table.add_column("n", justify="right")
            for title, stats in cells.items():
                table.add_row(title, _fmt(stats.average), _fmt(stats.stddev), str(stats.count))
            console.print(table)
        if report.failure_count:
            console.print(f"[yellow]{report.failure_count} failed measurements[/yellow]")

    if not args.no_report:
        report_dir = Path(args.report_dir) if args.report_dir else config.report_dir
        generator = EvaluationReportGenerator(
            ReportConfig(report_dir=report_dir, formats=config.formats)
        )
        for fmt, path in generator.generate(run).items():
            console.print(f"[green]{fmt} report saved to {path}[/green]")

    return 0


async def cmd_reply_stats(args: argparse.Namespace) -> int:
    """Show reply length and emoji statistics."""
    from .workflows import compute_reply_stats, load_reviews

    stats = compute_reply_stats(load_reviews(Path(args.csv)))

    if args.json:
        console.print_json(json.dumps(stats.to_dict(), ensure_ascii=False))
        return 0

    console.print(f"[bold]Replies:[/bold] {stats.reply_count}")
    console.print(stats.describe())
    return 0


async def cmd_style_guide(args: argparse.Namespace) -> int:
    """Generate a markdown style guide from existing replies."""
    from .workflows import StyleGuideGenerator, default_output_path, load_reviews

    csv_path = Path(args.csv)
    reviews = load_reviews(csv_path)
    provider = _create_provider(args.provider, args.model)

    console.print(f"[cyan]Style guide from {len(reviews)} reviews[/cyan]")
    guide = await StyleGuideGenerator(provider, batch_size=args.batch_size).generate(reviews)
    if guide.failed_batches:
        console.print(f"[yellow]Skipped batches: {guide.failed_batches}[/yellow]")

    output = Path(args.output) if args.output else default_output_path(csv_path)
    guide.save(output)
    console.print(f"[green]Style guide written to {output}[/green]")
    return 0


async def cmd_generate_replies(args: argparse.Namespace) -> int:
    """Generate style-refined replies for every review in a CSV."""
    from utils.admission_gate import AdmissionGate

    from .workflows import ReplyGenerator, load_reviews, styled_output_path, write_reviews_csv

    csv_path = Path(args.csv)
    style_guide_path = Path(args.style_guide)
    if not style_guide_path.exists():
        raise FileNotFoundError(f"Style guide not found: {style_guide_path}")

    reviews = load_reviews(csv_path)
    provider = _create_provider(args.provider, args.model)
    generator = ReplyGenerator(provider, gate=AdmissionGate(args.concurrency))

    console.print(f"[cyan]Generating replies for {len(reviews)} reviews[/cyan]")
    updated = await generator.process(reviews, style_guide_path.read_text(encoding="utf-8"))

    output = Path(args.output) if args.output else styled_output_path(csv_path)
    write_reviews_csv(updated, output)
    console.print(f"[green]Replies written to {output}[/green]")
    return 0


COMMANDS = {
    "measure": cmd_measure,
    "evaluate": cmd_evaluate,
    "reply-stats": cmd_reply_stats,
    "style-guide": cmd_style_guide,
    "generate-replies": cmd_generate_replies,
}


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="reply-eval",
        description="Guideline compliance scoring for review replies",
    )
    parser.add_argument("--log-level", default=settings.LOG_LEVEL, help="Log level")
    parser.add_argument("--log-dir", help="Log file directory")
    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    def add_provider_args(sub: argparse.ArgumentParser) -> None:
        sub.add_argument(
            "--provider",
            "-p",
            default=settings.DEFAULT_PROVIDER,
            help="Provider (openai, ollama, google)",
        )
        sub.add_argument("--model", "-m", default=None, help="Model name")

    # measure
    measure_parser = subparsers.add_parser("measure", help="Score one text against one instruction")
    measure_parser.add_argument("--instruction", "-i", required=True, help="Instruction text")
    measure_parser.add_argument("--text", "-t", required=True, help="Text to score")
    measure_parser.add_argument(
        "--multi", action="store_true", help="Use the multi-guideline metric"
    )
    measure_parser.add_argument("--json", action="store_true", help="Print JSON")
    add_provider_args(measure_parser)

    # evaluate
    eval_parser = subparsers.add_parser("evaluate", help="Batch evaluation from request config")
    eval_parser.add_argument("--config", "-c", required=True, help="Path to evaluation request YAML")
    eval_parser.add_argument("--no-report", action="store_true", help="Skip report generation")
    eval_parser.add_argument("--report-dir", help="Report output directory")
    add_provider_args(eval_parser)

    # reply-stats
    stats_parser = subparsers.add_parser("reply-stats", help="Reply length and emoji statistics")
    stats_parser.add_argument("--csv", required=True, help="Review CSV file")
    stats_parser.add_argument("--json", action="store_true", help="Print JSON")

    # style-guide
    guide_parser = subparsers.add_parser("style-guide", help="Generate a reply style guide")
    guide_parser.add_argument("--csv", required=True, help="Review CSV file")
    guide_parser.add_argument("--output", "-o", help="Output markdown path")
    guide_parser.add_argument("--batch-size", type=int, default=25, help="Reviews per extraction")
    add_provider_args(guide_parser)

    # generate-replies
    gen_parser = subparsers.add_parser("generate-replies", help="Generate styled replies")
    gen_parser.add_argument("--csv", required=True, help="Review CSV file")
    gen_parser.add_argument("--style-guide", "-s", required=True, help="Style guide markdown")
    gen_parser.add_argument("--output", "-o", help="Output CSV path")
    gen_parser.add_argument(
        "--concurrency", type=int, default=settings.DEFAULT_CONCURRENCY, help="Max calls in flight"
    )
    add_provider_args(gen_parser)

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    """Main CLI entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        return 0

    if args.log_dir is None:
        settings.validate_config()
    setup_logging(
        level=args.log_level,
        log_dir=Path(args.log_dir) if args.log_dir else settings.LOG_DIR,
    )

    try:
        return asyncio.run(COMMANDS[args.command](args))
    except (ReplyEvalError, FileNotFoundError) as e:
        console.print(f"[red]Error: {e}[/red]")
        return 1


if __name__ == "__main__":
    sys.exit(main())
