"""Specialized structured extraction: performance parameters and financial data."""

from typing import Any, Optional, TypeVar

from loguru import logger

from insight_system.config.prompts.consolidation_prompts import (
    DOMAIN_EXTRACTION_SYSTEM_PROMPT,
    FINANCIAL_DATA_PROMPT,
    PERFORMANCE_PARAMETERS_PROMPT,
)
from insight_system.data_management.schemas.project_schema import (
    FinancialData,
    PerformanceParameters,
)
from insight_system.llm.payloads import ChatMessage, DecodeFailure, decode_payload

R = TypeVar("R", PerformanceParameters, FinancialData)

DOMAIN_WINDOW_CHARS = 15000


class PerformanceFinancialExtractor:
    """
    Extracts one structured record per call from accumulated project text.

    The returned record's confidence is the share of fields the model
    populated. A failed call or an empty record yields None.
    """

    def __init__(self, llm_client: Optional[Any] = None, window_chars: int = DOMAIN_WINDOW_CHARS):
        self._llm_client = llm_client
        self.window_chars = window_chars
        self.logger = logger.bind(component="PerformanceFinancialExtractor")

    @property
    def llm_client(self):
        if self._llm_client is None:
            from insight_system.llm.gemini_client import get_llm_client

            self._llm_client = get_llm_client()
        return self._llm_client

    async def _extract(self, model: type[R], template: str, text: str, document_type: str) -> Optional[R]:
        label = model.__name__
        messages = [
            ChatMessage(role="system", content=DOMAIN_EXTRACTION_SYSTEM_PROMPT),
            ChatMessage(
                role="user",
                content=template.format(
                    document_type=document_type,
                    field_spec=model.field_spec(),
                    document_text=text[: self.window_chars],
                ),
            ),
        ]
        try:
            response = await self.llm_client.complete(messages, json_mode=True)
        except Exception as e:
            self.logger.warning(f"{label} extraction failed: {e}")
            return None

        decoded = decode_payload(response, model)
        if isinstance(decoded, DecodeFailure):
            self.logger.warning(f"{label} payload rejected: {decoded.reason}")
            return None

        record = decoded.value
        confidence = record.populated_ratio()
        if confidence == 0:
            self.logger.info(f"{label} extraction found nothing")
            return None

        self.logger.info(
            f"Extracted {label} (confidence: {confidence * 100:.1f}%)",
        )
        return record.model_copy(update={"confidence": confidence, "extraction_method": "llm"})

    async def extract_performance_parameters(
        self,
        text: str,
        document_type: str = "FEASIBILITY_STUDY",
    ) -> Optional[PerformanceParameters]:
        return await self._extract(PerformanceParameters, PERFORMANCE_PARAMETERS_PROMPT, text, document_type)

    async def extract_financial_data(
        self,
        text: str,
        document_type: str = "FEASIBILITY_STUDY",
    ) -> Optional[FinancialData]:
        return await self._extract(FinancialData, FINANCIAL_DATA_PROMPT, text, document_type)
