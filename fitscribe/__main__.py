"""
Command line entry point for FitScribe.

Run with: python -m fitscribe
"""

from pathlib import Path
from typing import Annotated, Optional

import typer
from rich.console import Console
from rich.table import Table

from . import __version__
from .api import BackendClient
from .config import Config, DictionaryStore, SettingsStore
from .dictionary import PersonalDictionary
from .errors import TranscriptionError
from .metrics import MetricsWriter
from .router import TranscriptionRouter
from .types import AccentRegion, TranscriptionProvider
from .vocabulary import FitnessVocabulary

app = typer.Typer(
    name="fitscribe",
    help="Dictate a workout: transcription routing with personal corrections.",
    no_args_is_help=True,
)
dict_app = typer.Typer(help="Manage personal corrections and custom terms.", no_args_is_help=True)
app.add_typer(dict_app, name="dict")

console = Console()


def _cli_error(message: str, detail: Optional[str] = None) -> None:
    """Print formatted error message to console."""
    if detail:
        console.print(f"[red]Error:[/red] {message}: {detail}")
    else:
        console.print(f"[red]Error:[/red] {message}")


def _client(config: Config) -> BackendClient:
    return BackendClient(config.api_base_url, auth_token=config.auth_token, timeout=config.request_timeout)


def _dictionary(config: Config, online: bool = True) -> PersonalDictionary:
    client = _client(config) if online else None
    return PersonalDictionary(DictionaryStore(config.dictionary_file), client)


@app.command()
def version() -> None:
    """Show version."""
    console.print(f"fitscribe {__version__}")


@app.command()
def transcribe(
    audio: Annotated[Path, typer.Argument(help="Recorded audio file")],
    provider: Annotated[
        Optional[TranscriptionProvider],
        typer.Option("--provider", "-p", help="Override the configured provider for this call"),
    ] = None,
) -> None:
    """Transcribe a recording and print the corrected text."""
    if not audio.exists():
        _cli_error("File not found", str(audio))
        raise typer.Exit(1)

    config = Config.load()

    with MetricsWriter(config.metrics_file) as metrics:
        router = TranscriptionRouter.create(config, metrics=metrics)
        try:
            result = router.transcribe(audio, provider_override=provider)
        except TranscriptionError as e:
            _cli_error(e.message, e.kind)
            raise typer.Exit(1)
        finally:
            router.dictionary.wait_for_sync()
            router.shutdown()

    console.print(result.text)
    console.print(
        f"[dim]{result.provider.display_name} | confidence {result.confidence:.0%}[/dim]"
    )


@app.command()
def providers() -> None:
    """List providers with availability and cost."""
    config = Config.load()
    router = TranscriptionRouter.create(config)

    table = Table(title="Transcription providers")
    table.add_column("Provider")
    table.add_column("Available")
    table.add_column("Cost")
    table.add_column("Best for")
    for p in TranscriptionProvider:
        available = "yes" if router.is_provider_available(p) else "no"
        table.add_row(p.display_name, available, p.cost_info, p.best_for)

    console.print(table)
    console.print(f"Recommended: {router.recommended_provider.display_name}")
    console.print(f"[dim]{router.get_routing_status()}[/dim]")
    router.shutdown()


@app.command()
def settings(
    provider: Annotated[
        Optional[TranscriptionProvider], typer.Option("--provider", help="Preferred provider")
    ] = None,
    accent: Annotated[Optional[AccentRegion], typer.Option("--accent", help="Accent region")] = None,
    fallback: Annotated[
        Optional[bool], typer.Option("--fallback/--no-fallback", help="Cloud fallback in smart mode")
    ] = None,
    fallback_provider: Annotated[
        Optional[TranscriptionProvider], typer.Option("--fallback-provider", help="Cloud provider used as fallback")
    ] = None,
) -> None:
    """Show or update routing settings."""
    config = Config.load()
    store = SettingsStore(config.settings_file)
    current = store.load()

    if provider is not None:
        current.preferred_provider = provider
    if accent is not None:
        current.accent_region = accent
    if fallback is not None:
        current.cloud_fallback_enabled = fallback
    if fallback_provider is not None:
        if not fallback_provider.is_cloud:
            _cli_error("Fallback provider must be deepgram or assemblyai")
            raise typer.Exit(1)
        current.fallback_provider = fallback_provider

    if any(v is not None for v in (provider, accent, fallback, fallback_provider)):
        store.save(current)

    console.print(f"Provider:          {current.preferred_provider.display_name}")
    console.print(f"Accent:            {current.accent_region.display_name}")
    console.print(f"Cloud fallback:    {'on' if current.cloud_fallback_enabled else 'off'}")
    console.print(f"Fallback provider: {current.fallback_provider.display_name}")


@app.command()
def vocab(
    category: Annotated[Optional[str], typer.Option("--category", "-c", help="Show one category")] = None,
    search: Annotated[Optional[str], typer.Option("--search", "-s", help="Substring search")] = None,
) -> None:
    """Browse the fitness vocabulary."""
    vocabulary = FitnessVocabulary.load()

    if search:
        words = vocabulary.search(search)
    elif category:
        if category not in vocabulary.categories:
            _cli_error("Unknown category", category)
            console.print(f"Categories: {', '.join(vocabulary.categories)}")
            raise typer.Exit(1)
        words = vocabulary.keywords(category)
    else:
        for name in vocabulary.categories:
            console.print(f"[bold]{name}[/bold] ({len(vocabulary.keywords(name))})")
        return

    for word in words:
        console.print(word)


@dict_app.command("list")
def dict_list() -> None:
    """Show corrections and custom terms."""
    config = Config.load()
    snapshot = DictionaryStore(config.dictionary_file).load()

    table = Table(title="Corrections")
    table.add_column("Heard")
    table.add_column("Corrected")
    for wrong in sorted(snapshot.corrections):
        table.add_row(wrong, snapshot.corrections[wrong])
    console.print(table)

    if snapshot.custom_terms:
        console.print(f"Custom terms: {', '.join(snapshot.custom_terms)}")
    if snapshot.last_sync:
        console.print(f"[dim]Last synced {snapshot.last_sync.isoformat()}[/dim]")


@dict_app.command("add")
def dict_add(
    wrong: Annotated[str, typer.Argument(help="Phrase as it gets transcribed")],
    correct: Annotated[str, typer.Argument(help="What it should be")],
    offline: Annotated[bool, typer.Option("--offline", help="Skip backend sync")] = False,
) -> None:
    """Add a correction."""
    dictionary = _dictionary(Config.load(), online=not offline)
    dictionary.add_correction(wrong, correct)
    dictionary.wait_for_sync()
    dictionary.shutdown()
    console.print(f"{wrong.strip().lower()} → {correct.strip()}")


@dict_app.command("remove")
def dict_remove(
    wrong: Annotated[str, typer.Argument(help="Phrase to stop correcting")],
    offline: Annotated[bool, typer.Option("--offline", help="Skip backend sync")] = False,
) -> None:
    """Remove a correction."""
    dictionary = _dictionary(Config.load(), online=not offline)
    dictionary.remove_correction(wrong)
    dictionary.wait_for_sync()
    dictionary.shutdown()


@dict_app.command("term-add")
def dict_term_add(
    term: Annotated[str, typer.Argument(help="Term to boost")],
    offline: Annotated[bool, typer.Option("--offline", help="Skip backend sync")] = False,
) -> None:
    """Add a custom term."""
    dictionary = _dictionary(Config.load(), online=not offline)
    dictionary.add_custom_term(term)
    dictionary.wait_for_sync()
    dictionary.shutdown()


@dict_app.command("term-remove")
def dict_term_remove(
    term: Annotated[str, typer.Argument(help="Term to drop")],
    offline: Annotated[bool, typer.Option("--offline", help="Skip backend sync")] = False,
) -> None:
    """Remove a custom term."""
    dictionary = _dictionary(Config.load(), online=not offline)
    dictionary.remove_custom_term(term)
    dictionary.wait_for_sync()
    dictionary.shutdown()


@dict_app.command("sync")
def dict_sync() -> None:
    """Push local data and merge the server copy."""
    dictionary = _dictionary(Config.load())
    ok = dictionary.sync_with_backend()
    dictionary.shutdown()
    if not ok:
        _cli_error("Sync failed (local dictionary unchanged)")
        raise typer.Exit(1)
    console.print("Synced")


@dict_app.command("fetch")
def dict_fetch() -> None:
    """Replace local data with the server copy."""
    dictionary = _dictionary(Config.load())
    ok = dictionary.fetch_from_backend()
    dictionary.shutdown()
    if not ok:
        _cli_error("Fetch failed (local dictionary unchanged)")
        raise typer.Exit(1)
    console.print("Fetched")


@dict_app.command("defaults")
def dict_defaults() -> None:
    """Add common fitness corrections."""
    dictionary = _dictionary(Config.load(), online=False)
    dictionary.add_default_corrections()
    dictionary.shutdown()
    console.print(f"{len(dictionary.corrections)} corrections")


@dict_app.command("clear")
def dict_clear(
    yes: Annotated[bool, typer.Option("--yes", "-y", help="Don't ask for confirmation")] = False,
) -> None:
    """Delete all local corrections and terms."""
    if not yes and not typer.confirm("Delete all corrections and custom terms?"):
        raise typer.Exit(1)
    dictionary = _dictionary(Config.load(), online=False)
    dictionary.clear_all()
    dictionary.shutdown()


def main() -> None:
    app()


if __name__ == "__main__":
    main()
