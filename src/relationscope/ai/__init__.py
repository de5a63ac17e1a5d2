"""Gemini integration: client, prompts and transcript analyzer."""

from relationscope.ai.analyzer import TranscriptAnalyzer, truncate_transcript
from relationscope.ai.client import AIClient, AIClientError, get_client

__all__ = [
    "AIClient",
    "AIClientError",
    "TranscriptAnalyzer",
    "get_client",
    "truncate_transcript",
]
