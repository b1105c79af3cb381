"""chatrelay - uniform chat-completion layer over OpenAI, Anthropic, Gemini, Chutes.ai and OpenRouter."""

__version__ = "0.1.0"
