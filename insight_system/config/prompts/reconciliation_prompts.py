"""Prompt templates for the similarity oracle."""

SIMILARITY_SYSTEM_PROMPT = (
    "You are a semantic similarity analyzer. Compare two statements and return "
    "ONLY a number from 0 to 100 indicating similarity. Return just the number, "
    "nothing else."
)

SIMILARITY_USER_PROMPT = """Statement 1: {statement_a}

Statement 2: {statement_b}

Similarity score (0-100):"""

MERGE_SYSTEM_PROMPT = (
    "You are a technical writer. Merge two similar statements into one "
    "comprehensive statement that includes all unique information from both. "
    "Maintain factual accuracy and professional tone. Return only the merged "
    "statement."
)

MERGE_USER_PROMPT = """Existing insight: {statement_a}

New insight: {statement_b}

Merge these into one comprehensive statement:"""
