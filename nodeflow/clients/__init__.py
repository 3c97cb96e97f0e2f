"""
Clients package - External backends reached by node executors.
"""

from nodeflow.clients.ai import AiClient, AiCompletion, MockAiClient

__all__ = [
    "AiClient",
    "AiCompletion",
    "MockAiClient",
]
