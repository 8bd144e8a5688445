"""
AI Agents for FinQuest

DESIGN DECISION: The narrative coach ("Fin") is an external collaborator
backed by Gemini. It only ever receives a simplified view of the ledger
(type, category, amount, formatted date) and only ever returns text.

CRITICAL BOUNDARIES:

1. INSIGHT AGENT:
   - CAN: Summarize spending and suggest a savings "quest"
   - CAN: Write a short formal summary for a report
   - CANNOT: Read or modify goals, balances or the store
   - CANNOT: Break the caller. Any failure becomes a fallback string

The LLM is a NARRATOR, not a LEDGER. It never computes balances that the
app relies on.
"""

import json
from datetime import datetime
from typing import Any, Optional

import google.generativeai as genai
import structlog
from pydantic import BaseModel

from finquest.audit import AuditLogger
from finquest.config import get_settings
from finquest.models.ledger import Transaction, TransactionType


logger = structlog.get_logger(__name__)

INSIGHT_OFFLINE_MESSAGE = (
    "✨ Fin's AI features are currently offline. "
    "Please check the API key configuration."
)
INSIGHT_FALLBACK_MESSAGE = "Failed to communicate with the AI assistant."
REPORT_OFFLINE_MESSAGE = (
    "AI summary is unavailable because the API key has not been configured."
)
REPORT_FALLBACK_MESSAGE = "Failed to generate AI summary for the report."

REPORT_SAMPLE_SIZE = 20


class SimplifiedTransaction(BaseModel):
    """The only view of a transaction the model ever sees."""

    type: TransactionType
    category: str
    amount: float
    date: str

    @classmethod
    def from_transaction(cls, txn: Transaction) -> "SimplifiedTransaction":
        return cls(
            type=txn.type,
            category=txn.category,
            amount=txn.amount,
            date=format_date(txn.date),
        )


def format_date(value: datetime) -> str:
    """Short month/day/year date, e.g. 3/7/2025."""
    return f"{value.month}/{value.day}/{value.year}"


def _transactions_json(transactions: list[Transaction]) -> str:
    simplified = [
        SimplifiedTransaction.from_transaction(t).model_dump(mode="json")
        for t in transactions
    ]
    return json.dumps(simplified, indent=2)


class InsightAgent:
    """
    Gemini-backed narrative coach.

    RESPONSIBILITIES:
    - Gamified spending insight for the dashboard
    - Formal summary paragraph for the report

    BOUNDARIES:
    - NEVER raises to the caller
    - Offline (no API key) is a normal state, not an error
    """

    def __init__(
        self,
        model: Optional[Any] = None,
        audit_logger: Optional[AuditLogger] = None,
    ):
        """
        Initialize the agent.

        Args:
            model: Object exposing generate_content_async(prompt).
                   If None, a Gemini model is built from settings.
            audit_logger: Receives external service errors
        """
        self._audit = audit_logger
        self._model = model
        if self._model is None:
            self._configure_genai()

    def _configure_genai(self) -> None:
        """Configure Google Generative AI, or stay offline without a key."""
        try:
            settings = get_settings().gemini
        except Exception as e:
            logger.info("gemini_offline", reason=str(e))
            return

        genai.configure(api_key=settings.api_key)
        self._model = genai.GenerativeModel(
            model_name=settings.model_name,
            generation_config={
                "temperature": settings.temperature,
                "max_output_tokens": settings.max_tokens,
            }
        )

    @property
    def is_online(self) -> bool:
        return self._model is not None

    async def _generate(self, prompt: str, fallback: str, operation: str) -> str:
        try:
            response = await self._model.generate_content_async(prompt)
            text = (response.text or "").strip()
            if text:
                return text
            logger.warning("gemini_empty_response", operation=operation)
        except Exception as e:
            logger.error("gemini_request_failed", operation=operation, error=str(e))
            if self._audit:
                await self._audit.log_external_service_error(
                    service="gemini",
                    error_message=f"{operation}: {e}",
                )
        return fallback

    async def generate_financial_insight(
        self,
        transactions: list[Transaction],
        currency: str,
    ) -> str:
        """
        Short gamified analysis of recent transactions.

        Returns the offline message without an API key and a fallback
        message on any API failure.
        """
        if not self.is_online:
            return INSIGHT_OFFLINE_MESSAGE

        prompt = f"""Act as a friendly and encouraging AI financial coach named Fin.
Your tone should be positive and gamified, like a helpful character in a finance adventure game.
Analyze the following list of recent financial transactions. The amounts are in {currency}.

Based on the data, provide a short, easy-to-read analysis covering these points:
1. **Overall Summary:** A brief, encouraging summary of the user's financial activity.
2. **Top Spending Category:** Identify the category where the most money was spent.
3. **Actionable Tip:** Suggest one simple, practical tip for saving money based on their spending. When mentioning amounts, use the {currency} currency symbol.
4. **Financial Quest:** Frame the tip as a fun "quest" or "challenge".

Keep the entire response under 150 words. Use emojis to make it engaging.

Transaction Data:
{_transactions_json(transactions)}"""

        return await self._generate(prompt, INSIGHT_FALLBACK_MESSAGE, "financial_insight")

    async def generate_report_summary(
        self,
        transactions: list[Transaction],
        total_income: float,
        total_expense: float,
        currency: str,
    ) -> str:
        """
        Formal summary (no emojis) for the printable report.

        Only the first 20 transactions are sent as a sample.
        """
        if not self.is_online:
            return REPORT_OFFLINE_MESSAGE

        sample = transactions[:REPORT_SAMPLE_SIZE]
        prompt = f"""Act as an expert financial analyst named Fin, providing a summary for a formal PDF report.
Your tone should be insightful, clear, and professional, but still encouraging.
Analyze the provided financial data for the period. The currency is {currency}.

Based on the data, provide a concise summary (under 80 words) covering:
1. A brief overview of the user's financial performance (income vs. expense).
2. A key observation about their spending habits (e.g., "spending was concentrated in...").
3. A forward-looking, positive concluding remark.

Do not use emojis. Do not frame it as a "quest". This is for a formal report.

Financial Data:
Total Income: {total_income}
Total Expense: {total_expense}
Sample Transactions:
{_transactions_json(sample)}"""

        return await self._generate(prompt, REPORT_FALLBACK_MESSAGE, "report_summary")
