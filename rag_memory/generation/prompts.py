"""Prompt templates for fact extraction and memory summarization."""

from rag_memory.memory.schemas import MEMORY_KINDS

FACT_EXTRACTION_PROMPT = """Extract durable facts about the user from this dialog.
Focus on stable preferences, identity, long-term projects and skills.
Skip transient requests and anything tied to a specific day or moment.

Return ONLY a JSON array, no prose:
[{{"kind": "{kinds}", "content": "clear factual statement", "tags": ["tag"], "salience": 0.0-1.0}}]
Return [] if there is nothing durable.

Dialog:
{transcript}"""

SUMMARY_PROMPT = """Condense these remembered facts about the user into key facts.
Keep preferences, projects and stable traits; drop repetition.
The result MUST be at most {budget} characters. Output only the facts.

Facts:
{text}"""


def build_extraction_prompt(transcript: str) -> str:
    return FACT_EXTRACTION_PROMPT.format(kinds="|".join(MEMORY_KINDS), transcript=transcript)


def build_summary_prompt(text: str, budget: int) -> str:
    return SUMMARY_PROMPT.format(budget=budget, text=text)
