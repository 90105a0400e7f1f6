"""labelscan CLI."""

import asyncio
import logging
from pathlib import Path
from typing import List, Optional

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from labelscan.analysis import analyze as analyze_text
from labelscan.analysis.lexicon import DIET_RULES, LEXICON
from labelscan.config import settings
from labelscan.errors import LabelScanError
from labelscan.models import AnalysisResult, ProfileSnapshot, RecognitionOptions, RecognitionRequest, RiskLevel
from labelscan.pipeline import RecognitionOrchestrator, build_request_key

app = typer.Typer(
    name="labelscan",
    help="Read ingredient labels and check them against an allergy/diet profile",
    add_completion=False,
)
console = Console()

RISK_STYLES = {
    RiskLevel.SAFE: "green",
    RiskLevel.MEDIUM: "yellow",
    RiskLevel.HIGH: "bold red",
    RiskLevel.NOT_APPLICABLE: "dim",
    RiskLevel.UNKNOWN: "magenta",
}


@app.callback()
def main(
    log_level: str = typer.Option(settings.log_level, help="Logging level"),
) -> None:
    """Configure logging for all commands."""
    logging.basicConfig(
        level=log_level.upper(),
        format="%(message)s",
        handlers=[RichHandler(console=console, show_path=False)],
        force=True,
    )


def _print_result(result: AnalysisResult, as_json: bool) -> None:
    if as_json:
        console.print_json(result.model_dump_json())
        return

    style = RISK_STYLES.get(result.risk_level, "")
    console.print(f"[bold]Category:[/bold] {result.category.value}")
    console.print(f"[bold]Risk:[/bold] [{style}]{result.risk_level.value}[/{style}]")
    console.print(f"[dim]Quality score: {result.quality_score}[/dim]")
    if result.message:
        console.print(f"[yellow]{result.message}[/yellow]")

    if result.matches:
        table = Table(title="Matches")
        table.add_column("Kind")
        table.add_column("Term")
        table.add_column("Hit")
        table.add_column("Reason")
        for match in result.matches:
            table.add_row(match.kind.value, match.term, match.hit, match.reason)
        console.print(table)

    if result.ingredients:
        console.print(f"[bold]Ingredients:[/bold] {', '.join(result.ingredients)}")
    for line in result.evidence_lines:
        console.print(f"[dim]> {line}[/dim]")


@app.command()
def analyze(
    text_file: Path = typer.Argument(..., help="File containing recognized label text"),
    allergen: Optional[List[str]] = typer.Option(None, "--allergen", "-a", help="Allergen to check"),
    diet: str = typer.Option("NONE", help="Diet type: NONE, VEGAN, VEGETARIAN, HALAL"),
    as_json: bool = typer.Option(False, "--json", help="Print the result as JSON"),
) -> None:
    """Analyze already-recognized label text."""
    if not text_file.is_file():
        console.print(f"[red]File not found:[/red] {text_file}")
        raise typer.Exit(code=1)

    profile = ProfileSnapshot(diet_type=diet, allergens=allergen or [])
    result = analyze_text(text_file.read_text(encoding="utf-8"), profile)
    _print_result(result, as_json)


@app.command()
def scan(
    image_path: Path = typer.Argument(..., help="Photo of the product label"),
    allergen: Optional[List[str]] = typer.Option(None, "--allergen", "-a", help="Allergen to check"),
    diet: str = typer.Option("NONE", help="Diet type: NONE, VEGAN, VEGETARIAN, HALAL"),
    lang: str = typer.Option(settings.ocr_languages, help="Tesseract languages, e.g. kor+eng"),
    smart_roi: bool = typer.Option(True, help="Crop to the detected label region"),
    auto_rotate: bool = typer.Option(True, help="Try 90/180/270 degree rotations"),
    show_text: bool = typer.Option(False, help="Print the recognized text"),
    as_json: bool = typer.Option(False, "--json", help="Print the analysis as JSON"),
) -> None:
    """Recognize a label photo and analyze it."""
    if not image_path.is_file():
        console.print(f"[red]File not found:[/red] {image_path}")
        raise typer.Exit(code=1)

    console.print(f"[bold blue]Scanning:[/bold blue] {image_path}")
    request = RecognitionRequest(
        request_key=build_request_key(image_path),
        image=str(image_path),
        languages=lang,
        options=RecognitionOptions(use_smart_roi=smart_roi, use_auto_rotate=auto_rotate),
    )
    orchestrator = RecognitionOrchestrator.with_tesseract()

    try:
        with console.status("Recognizing...") as status:
            recognition = asyncio.run(
                orchestrator.run_recognition(
                    request,
                    progress=lambda p: status.update(f"Recognizing... {p:.0%}"),
                )
            )
    except LabelScanError as exc:
        console.print(f"[red]Recognition failed:[/red] {exc}")
        raise typer.Exit(code=1)

    roi = recognition.roi
    console.print(
        f"[dim]ROI {roi.method.value} at ({roi.x}, {roi.y}) {roi.width}x{roi.height}, "
        f"rotation {roi.rotation.value}°[/dim]"
    )
    if show_text:
        console.print(recognition.raw_text)

    profile = ProfileSnapshot(diet_type=diet, allergens=allergen or [])
    _print_result(analyze_text(recognition.raw_text, profile), as_json)


@app.command()
def lexicon() -> None:
    """List known allergen keys and diet rules."""
    table = Table(title="Allergens")
    table.add_column("Key")
    table.add_column("Synonyms")
    for key, synonyms in LEXICON.items():
        table.add_row(key, ", ".join(synonyms))
    console.print(table)

    for diet_type, keys in DIET_RULES.items():
        if keys:
            console.print(f"[bold]{diet_type.value}:[/bold] {', '.join(keys)}")


if __name__ == "__main__":
    app()
