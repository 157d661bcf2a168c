DEFAULT_MODEL = "openai:gpt-4o-mini"
DEFAULT_VISION_MODEL = "openai:gpt-4o-mini"
DEFAULT_EMBEDDING_MODEL = "openai:text-embedding-3-small"

__version__ = "0.1.0"
__author__ = "promptthread contributors"
__copyright__ = f"Copyright (c) 2026, {__author__}."
__docs__ = "Stateful chat-thread client with tool round-tripping and cancellable streams."

__all__ = [
    "DEFAULT_EMBEDDING_MODEL",
    "DEFAULT_MODEL",
    "DEFAULT_VISION_MODEL",
    "__author__",
    "__copyright__",
    "__docs__",
    "__version__",
]
