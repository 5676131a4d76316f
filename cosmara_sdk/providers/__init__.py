"""
Provider adapters.

One adapter per supported provider, all satisfying the Provider protocol.
"""

from .anthropic import AnthropicProvider
from .base import Provider
from .google import GoogleProvider
from .openai import OpenAIProvider

__all__ = ["AnthropicProvider", "GoogleProvider", "OpenAIProvider", "Provider"]
