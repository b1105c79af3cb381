"""Chat completion command."""

import base64
import mimetypes
from pathlib import Path
from typing import List, Optional

import typer

from chatrelay.adapters.llm import BaseProviderAdapter
from chatrelay.cli import utils
from chatrelay.cli.utils import console, run_async
from chatrelay.core.exceptions import ProviderError
from chatrelay.domain.models import ChunkType
from chatrelay.ports.llm_provider import CompletionOptions, Message


def _image_data_url(path: Path) -> str:
    mime_type = mimetypes.guess_type(path.name)[0] or "image/png"
    encoded = base64.b64encode(path.read_bytes()).decode("ascii")
    return f"data:{mime_type};base64,{encoded}"


async def _stream_to_console(
    adapter: BaseProviderAdapter,
    messages: list[Message],
    model: str,
    options: CompletionOptions,
) -> Optional[str]:
    """Print content chunks as they arrive. Returns the error message, if any."""
    error = None
    async for chunk in adapter.stream(messages, model, options):
        if chunk.type == ChunkType.CONTENT:
            console.print(chunk.text, end="", markup=False, highlight=False, soft_wrap=True)
        elif chunk.type == ChunkType.ERROR:
            error = chunk.message
    console.print()
    return error


def chat(
    provider: str = typer.Argument(..., help="Provider identifier"),
    model: str = typer.Argument(..., help="Model identifier"),
    prompt: str = typer.Argument(..., help="User message"),
    system: Optional[str] = typer.Option(None, "--system", "-s", help="System instructions"),
    temperature: Optional[float] = typer.Option(None, "--temperature", "-t", help="Sampling temperature (0-2)"),
    max_tokens: Optional[int] = typer.Option(None, "--max-tokens", help="Maximum output tokens"),
    stream: bool = typer.Option(False, "--stream", help="Print the reply as it is generated"),
    image: Optional[List[Path]] = typer.Option(
        None, "--image", "-i", exists=True, dir_okay=False, help="Attach an image file"
    ),
):
    """Send one message to a provider and print the reply."""
    registry = utils.build_registry()

    try:
        adapter = registry.get(provider)
        options = CompletionOptions.coerce(
            {"instructions": system, "temperature": temperature, "max_tokens": max_tokens}
        )
    except ProviderError as e:
        console.print(f"[red]Error:[/red] {e.message}")
        raise typer.Exit(1)

    images = [_image_data_url(path) for path in image or []]
    messages = [Message(role="user", content=prompt, images=tuple(images))]

    if stream:
        error = run_async(_stream_to_console(adapter, messages, model, options))
        if error:
            console.print(f"[red]Error:[/red] {error}")
            raise typer.Exit(1)
        return

    try:
        result = run_async(adapter.run_completion(messages, model, options))
    except ProviderError as e:
        console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(1)

    console.print(result.content, markup=False, highlight=False, soft_wrap=True)
    if result.usage:
        console.print(f"[dim]usage: {result.usage}[/dim]", highlight=False)
