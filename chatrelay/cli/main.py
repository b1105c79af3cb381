"""chatrelay CLI - Main entry point."""

import typer

from chatrelay import __version__
from chatrelay.cli.commands import chat, keys, providers
from chatrelay.cli.utils import configure_logging, console

app = typer.Typer(
    name="chatrelay",
    help="chatrelay CLI - Talk to OpenAI, Anthropic, Gemini, Chutes.ai and OpenRouter.",
    no_args_is_help=True,
)


@app.callback()
def main(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging"),
):
    configure_logging(verbose)


# Register commands
app.command("providers")(providers.providers)
app.command("models")(providers.models)
app.command("validate-key")(providers.validate_key)
app.command("chat")(chat.chat)
app.command("encrypt-key")(keys.encrypt_key)
app.command("generate-key")(keys.generate_key)


@app.command()
def version():
    """Show version information."""
    console.print(f"[bold]chatrelay[/bold] v{__version__}")


if __name__ == "__main__":
    app()
