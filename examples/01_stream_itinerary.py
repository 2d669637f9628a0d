#!/usr/bin/env python3
"""Example 1: Streaming an Itinerary Through the Cascade.

Streams a Paris itinerary to the terminal, clearing partial text whenever a
tier fails part way, then prints the attempt trace.

Requires GROQ_API_KEY.

Usage:
    python examples/01_stream_itinerary.py
    python examples/01_stream_itinerary.py --destination "Lisbon, Portugal"
"""

from __future__ import annotations

import argparse
import asyncio
import sys

from rich.console import Console
from rich.table import Table

from tripwise import GenerationError, RequestOrchestrator, StreamAdapter, StreamChunk
from tripwise.config import get_settings
from tripwise.providers import create_provider

console = Console()

ANSWERS = [
    "Paris, France",
    "$2,500",
    "May 1-4, 2025",
    "2",
    "art, food and history",
    "boutique hotel",
    "balanced",
    "public transport",
    "the Louvre and a Seine cruise",
]


def on_chunk(chunk: StreamChunk) -> None:
    if chunk.reset:
        console.print("\n[yellow]-- tier failed, starting over --[/yellow]\n")
    elif not chunk.is_final:
        console.print(chunk.text, end="", markup=False, highlight=False, soft_wrap=True)


async def run(answers: list[str]) -> int:
    settings = get_settings()
    orchestrator = RequestOrchestrator(create_provider(settings), settings=settings)
    adapter = StreamAdapter(orchestrator)

    try:
        result = await adapter.generate_stream(answers, on_chunk)
    except GenerationError as e:
        console.print(f"\n[red]{e.message}[/red]")
        trace = e.trace
        code = 1
    else:
        console.print(f"\n\n[bold green]Produced by {result.producing_tier.id}[/bold green]")
        trace = result.trace
        code = 0

    if trace is not None and trace.attempts:
        table = Table(title="Attempts")
        table.add_column("Tier", style="magenta")
        table.add_column("Attempt", justify="right")
        table.add_column("Outcome")
        table.add_column("Error", style="yellow")
        for a in trace.attempts:
            table.add_row(
                a.tier_id,
                str(a.attempt_index + 1),
                a.outcome.value,
                a.error_kind.value if a.error_kind else "-",
            )
        console.print(table)
    return code


def main() -> None:
    parser = argparse.ArgumentParser(description="Stream an itinerary")
    parser.add_argument("--destination", default=ANSWERS[0])
    args = parser.parse_args()

    answers = [args.destination, *ANSWERS[1:]]
    sys.exit(asyncio.run(run(answers)))


if __name__ == "__main__":
    main()
