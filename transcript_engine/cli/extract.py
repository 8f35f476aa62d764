# transcript_engine/cli/extract.py
"""
CLI entrypoint for transcript extraction.

Thin adapter, no business logic.
Responsibilities:
- Parse arguments into an ExtractionRequest
- Invoke the engine
- Optionally write the JSON payload
- Provide clear user feedback

Structured JSON logs go to stderr; the transcript or fallback note to stdout.
"""

from __future__ import annotations

import asyncio
import json
import sys
from pathlib import Path
from typing import Optional

import typer
from pydantic import ValidationError

from transcript_engine.config import EngineSettings
from transcript_engine.extraction.schema import EXTENDED_BUDGET_MS, ExtractionOptions, ExtractionResult
from transcript_engine.extraction.subjects import InvalidSubjectError, audio_request, video_request
from transcript_engine.factory import extract_transcript
from transcript_engine.logging_core.logger import configure_logging
from transcript_engine.providers import list_provider_status

app = typer.Typer(
    name="transcript-engine",
    help="Transcript Engine: multi-provider transcript extraction for videos and audio",
    no_args_is_help=True,
)


def write_payload(result: ExtractionResult, out: Path) -> Path:
    out = out.expanduser()
    out.parent.mkdir(parents=True, exist_ok=True)
    out.write_text(json.dumps(result.to_payload(), indent=2, ensure_ascii=False), encoding="utf-8")
    return out


@app.command()
def extract(
    source: Optional[str] = typer.Argument(None, help="YouTube URL or video id"),
    audio_file: Optional[Path] = typer.Option(None, "--audio-file", help="Transcribe a recorded audio file instead"),
    mime_type: str = typer.Option("audio/webm", "--mime-type", help="MIME type of --audio-file"),
    language: str = typer.Option("auto", "--language", "-l", help="Preferred transcript language"),
    no_timestamps: bool = typer.Option(False, "--no-timestamps", help="Print plain text without [MM:SS] markers"),
    max_retries: int = typer.Option(2, "--max-retries", help="Attempts per provider"),
    budget_ms: Optional[int] = typer.Option(None, "--budget-ms", help="Total time budget in milliseconds"),
    extended: bool = typer.Option(False, "--extended", help=f"Use the {EXTENDED_BUDGET_MS // 1000}s budget for long inputs"),
    out: Optional[Path] = typer.Option(None, "--out", "-o", help="Write the JSON result to this file"),
    as_json: bool = typer.Option(False, "--json", help="Print the JSON result instead of text"),
) -> None:
    """
    Extract a transcript, or print a classified fallback note when none is available.
    """
    settings = EngineSettings.from_env()
    configure_logging(settings.log_level.upper())

    option_values = {
        "language": language,
        "include_timestamps": not no_timestamps,
        "max_retries_per_provider": max_retries,
    }
    if budget_ms is not None:
        option_values["total_budget_ms"] = budget_ms
        option_values["attempt_timeout_ms"] = min(budget_ms, settings.attempt_timeout_ms)

    try:
        options = (
            ExtractionOptions.extended(**option_values)
            if extended
            else ExtractionOptions(**{"attempt_timeout_ms": settings.attempt_timeout_ms, **option_values})
        )
        if audio_file is not None:
            request = audio_request(audio_file.expanduser().read_bytes(), mime_type, options=options)
        elif source:
            request = video_request(source, options=options)
        else:
            raise InvalidSubjectError("Provide a YouTube URL/video id or --audio-file")
    except (InvalidSubjectError, ValidationError, OSError) as exc:
        typer.echo(typer.style("✗ Invalid input", fg=typer.colors.RED, bold=True), err=True)
        typer.echo(f"Error: {exc}", err=True)
        sys.exit(1)

    try:
        result = asyncio.run(extract_transcript(request, settings))
    except KeyboardInterrupt:
        typer.echo("\nInterrupted by user.", err=True)
        sys.exit(1)

    if out is not None:
        path = write_payload(result, out)
        typer.echo(f"Result written to: {path}", err=True)

    if as_json:
        typer.echo(json.dumps(result.to_payload(), indent=2, ensure_ascii=False))
        return

    if result.extracted:
        transcript = result.transcript
        typer.echo(
            typer.style(
                f"✓ Transcript from {transcript.provider} ({len(transcript.segments)} segments)",
                fg=typer.colors.GREEN,
                bold=True,
            ),
            err=True,
        )
        typer.echo(result.display_text)
    else:
        typer.echo(
            typer.style(
                f"⚠ Transcript unavailable ({result.unavailable_reason.value}) after {len(result.attempts)} attempts",
                fg=typer.colors.YELLOW,
            ),
            err=True,
        )
        typer.echo(result.fallback_note)


@app.command()
def providers() -> None:
    """
    Show the provider chain order and which providers are configured.
    """
    settings = EngineSettings.from_env()
    typer.echo("Provider chain (fixed priority):")
    for index, status in enumerate(list_provider_status(settings), start=1):
        mark = typer.style("✓", fg=typer.colors.GREEN) if status.configured else typer.style("✗", fg=typer.colors.RED)
        typer.echo(f"  {index}. {mark} {status.name:<20} [{', '.join(status.subjects)}] {status.detail}")


if __name__ == "__main__":
    app()


# High-Level Intent
# cli/extract.py is the thin terminal adapter for the engine: build a request,
# call extract_transcript, print the transcript or the fallback note.
#
# Edge Cases & Failure Scenarios
# Invalid URL / empty or unreadable audio file / out-of-range options: exit 1.
# Every provider failed: still exit 0, the fallback note is the output.
# Ctrl-C: exit 1.
