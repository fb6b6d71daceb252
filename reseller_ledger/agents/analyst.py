"""
AI Business Analyst

Natural-language advice over the ledger, backed by Gemini.

CRITICAL BOUNDARIES:
- The analyst only ever sees a read-only JSON snapshot of the most recent
  transactions, never the stores or the session
- It cannot write anything
- If the model fails, the operator gets a fixed "analysis unavailable"
  message; ledger state is never affected
"""

import json
from typing import Any, Optional, Sequence

import google.generativeai as genai

from reseller_ledger.audit import AuditLogger
from reseller_ledger.config import get_settings
from reseller_ledger.models.audit import AuditEventBuilder
from reseller_ledger.models.records import Transaction, to_storage_dict


ANALYSIS_UNAVAILABLE = (
    "I'm having trouble connecting to the analysis engine right now. "
    "Please check your API key or try again later."
)
FORECAST_UNAVAILABLE = "Could not generate forecast."
EMPTY_QUERY_MESSAGE = "Ask a question about your sales to get an analysis."


class BusinessAnalyst:
    """
    Gemini-backed analyst for a subscription reselling business.

    Treated as a black box: input is a snapshot plus free text, output
    is free text.
    """

    def __init__(
        self,
        model: Optional[Any] = None,
        context_limit: Optional[int] = None,
        audit_logger: Optional[AuditLogger] = None,
    ):
        """
        Initialize the analyst.

        Args:
            model: Object exposing `generate_content_async`. If None, a
                Gemini model is configured from GeminiSettings.
            context_limit: Most recent transactions included per request
            audit_logger: Receives advisory failures
        """
        self._model = model or self._configure_genai()
        self._context_limit = context_limit or get_settings().app.advisory_context_limit
        self._audit_logger = audit_logger

    def _configure_genai(self):
        """Configure Google Generative AI."""
        settings = get_settings().gemini
        genai.configure(api_key=settings.api_key)
        return genai.GenerativeModel(
            model_name=settings.model_name,
            generation_config={
                "temperature": settings.temperature,
                "max_output_tokens": settings.max_tokens,
            }
        )

    def build_snapshot(self, transactions: Sequence[Transaction]) -> str:
        """JSON of the most recent transactions, oldest first."""
        recent = sorted(transactions, key=lambda t: t.date)[-self._context_limit:]
        return json.dumps([to_storage_dict(t) for t in recent])

    async def analyze(self, transactions: Sequence[Transaction], query: str) -> str:
        """Answer a free-text question about the recent sales."""
        if not query or not query.strip():
            return EMPTY_QUERY_MESSAGE

        prompt = f"""You are an expert business analyst for a digital subscription reseller business.

The business model includes:
1. Cost of goods sold (costPrice): the base subscription cost of each sale
2. Sale price (salePrice): what the customer paid, for `quantity` units
3. Operating expenses tracked separately: Gmail accounts, Facebook ads and posters

Here is the recent transaction data in JSON format:
{self.build_snapshot(transactions)}

User Query: {query.strip()}

Analyze the data and give a helpful, professional and actionable response.
If the user asks for insights, look for trends in profit (salePrice - costPrice).
Keep the response concise and formatted with Markdown."""

        return await self._generate(prompt, "analysis", ANALYSIS_UNAVAILABLE)

    async def forecast(self, transactions: Sequence[Transaction]) -> str:
        """Predict next month's sales trend from the recent history."""
        prompt = f"""Based on the following sales history, predict the trend for the next month.
Identify which planType is most profitable per unit sold.
Suggest whether to spend more on Facebook ads or posters if the data shows a correlation.

Data: {self.build_snapshot(transactions)}"""

        return await self._generate(prompt, "forecast", FORECAST_UNAVAILABLE)

    async def _generate(self, prompt: str, operation: str, fallback: str) -> str:
        try:
            response = await self._model.generate_content_async(prompt)
            text = (response.text or "").strip()
        except Exception as e:
            # Any model failure degrades to the fallback message
            if self._audit_logger:
                self._audit_logger.log(AuditEventBuilder.advisory_failed(operation, str(e)))
            return fallback

        return text or fallback
