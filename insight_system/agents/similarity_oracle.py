"""Model-backed semantic similarity scoring and statement fusion.

score() never reports a match it cannot justify: a timeout, an exception,
or a response that does not start with a number all read as 0.0.
merge() never loses information: on any failure it returns the first
statement unchanged.
"""

import asyncio
import re
from typing import Any, Optional

from loguru import logger

from insight_system.config.prompts.reconciliation_prompts import (
    MERGE_SYSTEM_PROMPT,
    MERGE_USER_PROMPT,
    SIMILARITY_SYSTEM_PROMPT,
    SIMILARITY_USER_PROMPT,
)
from insight_system.config.settings import settings
from insight_system.llm.payloads import ChatMessage

_LEADING_NUMBER = re.compile(r"^\s*(-?\d+(?:\.\d+)?)")


def parse_similarity(response_text: Optional[str]) -> float:
    """
    Convert a 0-100 model response into a 0.0-1.0 score.

    Only a leading number counts ("85", "85%", "85 - very close").
    Anything else is 0.0.
    """
    if not response_text:
        return 0.0
    match = _LEADING_NUMBER.match(response_text)
    if not match:
        return 0.0
    value = float(match.group(1))
    return max(0.0, min(100.0, value)) / 100.0


class SimilarityOracle:
    """
    Scores and fuses pairs of statements through the model.

    Attributes:
        timeout: Seconds allowed per model call
    """

    def __init__(self, llm_client: Optional[Any] = None, timeout: Optional[float] = None):
        self._llm_client = llm_client
        self.timeout = timeout if timeout is not None else settings.oracle_timeout_seconds
        self.logger = logger.bind(component="SimilarityOracle")

    @property
    def llm_client(self):
        if self._llm_client is None:
            from insight_system.llm.gemini_client import get_llm_client

            self._llm_client = get_llm_client()
        return self._llm_client

    async def _ask(self, system: str, user: str) -> str:
        messages = [
            ChatMessage(role="system", content=system),
            ChatMessage(role="user", content=user),
        ]
        return await asyncio.wait_for(
            self.llm_client.complete(messages, temperature=0.0),
            timeout=self.timeout,
        )

    async def score(self, statement_a: str, statement_b: str) -> float:
        """
        Semantic similarity of two statements.

        Returns:
            Score in [0.0, 1.0]; 0.0 on any failure
        """
        try:
            response = await self._ask(
                SIMILARITY_SYSTEM_PROMPT,
                SIMILARITY_USER_PROMPT.format(statement_a=statement_a, statement_b=statement_b),
            )
        except asyncio.TimeoutError:
            self.logger.warning(f"Similarity call timed out after {self.timeout}s")
            return 0.0
        except Exception as e:
            self.logger.warning(f"Similarity call failed: {e}")
            return 0.0

        similarity = parse_similarity(response)
        if similarity == 0.0 and not _LEADING_NUMBER.match(response or ""):
            self.logger.warning(f"Failed to parse similarity score: {response!r}")

        self.logger.debug(
            f"Similarity {similarity:.2f}: {statement_a[:40]!r} vs {statement_b[:40]!r}"
        )
        return similarity

    async def merge(self, statement_a: str, statement_b: str) -> str:
        """
        Fuse two near-duplicate statements, keeping all unique information.

        Returns:
            The fused statement, or statement_a on any failure
        """
        try:
            response = await self._ask(
                MERGE_SYSTEM_PROMPT,
                MERGE_USER_PROMPT.format(statement_a=statement_a, statement_b=statement_b),
            )
        except asyncio.TimeoutError:
            self.logger.warning(f"Merge call timed out after {self.timeout}s")
            return statement_a
        except Exception as e:
            self.logger.warning(f"Merge call failed: {e}")
            return statement_a

        merged = (response or "").strip()
        return merged or statement_a
