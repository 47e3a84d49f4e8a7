"""Progress and log sinks injected into the cleanup pipeline."""
from rich.markup import escape

from .safe_console import SafeConsole


class ProgressSink:
    """Receives progress text and line-oriented log messages.

    The engine never prints; it reports through a sink so the analysis
    core has no UI dependency.
    """

    def progress(self, text: str) -> None:
        """Replace the current progress text."""

    def log(self, message: str) -> None:
        """Append one log line."""


class NullProgressSink(ProgressSink):
    """Discards everything."""


class ConsoleProgressSink(ProgressSink):
    """Writes log lines to a Rich console, prefixed with the job title."""

    def __init__(self, console: SafeConsole, prefix: str, verbose: bool = False):
        """Initialize sink.

        Args:
            console: Console to print to
            prefix: Job title shown before each line, e.g. 'Code Cleanup'
            verbose: Also print progress text updates
        """
        self.console = console
        self.prefix = prefix
        self.verbose = verbose

    def progress(self, text: str) -> None:
        if self.verbose:
            self.console.print(f"[dim]{escape(self.prefix)}: {escape(text)}[/dim]")

    def log(self, message: str) -> None:
        self.console.print(f"[bold blue]{escape(self.prefix)}:[/bold blue] {escape(message)}")
