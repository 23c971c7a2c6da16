"""Generation engine client."""
from flowbuilder.generation.client import (
    GenerationClient,
    HttpGenerationClient,
    get_generation_client,
    reset_generation_client,
)

__all__ = [
    "GenerationClient",
    "HttpGenerationClient",
    "get_generation_client",
    "reset_generation_client",
]
