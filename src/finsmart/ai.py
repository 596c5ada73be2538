"""ChatGPT-powered budgeting advice."""

from __future__ import annotations

import logging
from typing import Any, Callable, Optional

from openai import OpenAI, OpenAIError

from .config import DEFAULT_ADVICE_MODEL, DEFAULT_ADVICE_TEMPERATURE
from .models import AppState

logger = logging.getLogger(__name__)

FALLBACK_ADVICE = (
    "Không thể kết nối với chuyên gia AI lúc này. Hãy kiểm tra lại ngân sách của bạn!"
)

SYSTEM_PROMPT = (
    "Bạn là một chuyên gia tư vấn tài chính cá nhân cho một ứng dụng quản lý ngân sách."
)


def build_advice_prompt(state: AppState) -> str:
    """Create the advice prompt from a snapshot of the budget state.

    Spending only counts EXPENSE transactions; income from transactions is
    reported on its own line.
    """

    totals = state.totals()
    categories = ", ".join(f"{c.name} ({c.percentage}%)" for c in state.categories)
    accounts = ", ".join(f"{a.name}: {a.balance} VND" for a in state.accounts)
    return (
        "Dựa trên dữ liệu sau, hãy đưa ra 3 lời khuyên ngắn gọn và thông minh bằng tiếng Việt:\n"
        f"- Thu nhập tháng: {state.income} VND\n"
        f"- Tổng thu nhập đã ghi nhận: {totals.total_income} VND\n"
        f"- Tổng chi tiêu thực tế: {totals.total_expense} VND\n"
        f"- Các hạng mục ngân sách: {categories or '(không có)'}\n"
        f"- Số lượng giao dịch: {len(state.transactions)}\n"
        f"- Danh sách tài khoản: {accounts or '(không có)'}\n\n"
        "Yêu cầu:\n"
        '1. Phân tích xem chi tiêu có vượt quá hạn mức "Chi tiêu" không.\n'
        "2. Đề xuất cách tối ưu hóa dựa trên các quy tắc tài chính phổ biến.\n"
        "3. Giọng văn chuyên nghiệp, khích lệ.\n"
        "Phản hồi dưới định dạng Markdown."
    )


class FinancialAdvisor:
    """Request budgeting advice for a state snapshot, one attempt per call."""

    def __init__(
        self,
        *,
        api_key: Optional[str] = None,
        model: str = DEFAULT_ADVICE_MODEL,
        temperature: float = DEFAULT_ADVICE_TEMPERATURE,
        client: Any = None,
    ) -> None:
        self.model = model
        self.temperature = temperature
        if client is None and api_key:
            client = OpenAI(api_key=api_key)
        self._client = client

    @property
    def is_configured(self) -> bool:
        return self._client is not None

    def get_advice(
        self,
        state: AppState,
        *,
        logger_callback: Optional[Callable[[str], None]] = None,
    ) -> str:
        """Return Markdown advice text, or ``FALLBACK_ADVICE`` on any failure."""

        def report(message: str) -> None:
            logger.debug(message)
            if logger_callback:
                logger_callback(message)

        if not self._client:
            report("OpenAI client is not configured; returning fallback advice.")
            return FALLBACK_ADVICE

        prompt = build_advice_prompt(state)
        try:
            report(f"Requesting advice from model '{self.model}'.")
            response = self._client.chat.completions.create(
                model=self.model,
                temperature=self.temperature,
                messages=[
                    {"role": "system", "content": SYSTEM_PROMPT},
                    {"role": "user", "content": prompt},
                ],
            )
        except OpenAIError as exc:
            logger.warning("AI advice request failed: %s", exc)
            report(f"OpenAI API error: {exc}")
            return FALLBACK_ADVICE

        content = self._extract_message_content(response)
        if not content.strip():
            report("Model response did not contain any content.")
            return FALLBACK_ADVICE
        return content

    @staticmethod
    def _extract_message_content(response: object) -> str:
        """Extract the assistant message content from an OpenAI response."""

        try:
            choices = getattr(response, "choices")
            if not choices:
                return ""
            message = choices[0].message
            return getattr(message, "content", "") or ""
        except AttributeError:
            return ""
