from .openai import OpenAIProvider
from .types import ProviderRequest, ProviderResponse

__all__ = ["OpenAIProvider", "ProviderRequest", "ProviderResponse"]
