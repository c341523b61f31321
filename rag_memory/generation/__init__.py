"""LLM collaborators: fact extraction and summarization."""

from .llm import ChatLLM
from .extractor import LLMFactExtractor, NullFactExtractor, parse_fact_payload
from .summarizer import LLMSummarizer, TruncatingSummarizer

__all__ = [
    "ChatLLM",
    "LLMFactExtractor",
    "NullFactExtractor",
    "parse_fact_payload",
    "LLMSummarizer",
    "TruncatingSummarizer",
]
