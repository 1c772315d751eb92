"""LLM client module."""

from agrisearch.llm.client import OpenAICompatibleClient
from agrisearch.llm.models import ChatEndpoint, GenerationResult, Message, Role
from agrisearch.llm.prompts import ReportSummaryPromptTemplate, ReportType

__all__ = [
    "ChatEndpoint",
    "GenerationResult",
    "Message",
    "OpenAICompatibleClient",
    "ReportSummaryPromptTemplate",
    "ReportType",
    "Role",
]
