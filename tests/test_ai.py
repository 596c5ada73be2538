from types import SimpleNamespace

from openai import OpenAIError

from finsmart.ai import FALLBACK_ADVICE, FinancialAdvisor, build_advice_prompt
from finsmart.models import Direction, seed_state


class _StubCompletions:
    def __init__(self, content=None, error=None):
        self.content = content
        self.error = error
        self.calls = []

    def create(self, **kwargs):
        self.calls.append(kwargs)
        if self.error:
            raise self.error
        message = SimpleNamespace(content=self.content)
        return SimpleNamespace(choices=[SimpleNamespace(message=message)])


def _client(completions):
    return SimpleNamespace(chat=SimpleNamespace(completions=completions))


def _state_with_activity():
    state, _ = seed_state().add_transaction(
        amount="2000000", description="Lương", direction=Direction.INCOME, account_id="acc2"
    )
    state, _ = state.add_transaction(
        amount="500000", description="Ăn uống", direction=Direction.EXPENSE, account_id="acc2", category_id="4"
    )
    return state


def test_prompt_reports_expense_only_spending():
    prompt = build_advice_prompt(_state_with_activity())

    assert "Thu nhập tháng: 10000000 VND" in prompt
    assert "Tổng chi tiêu thực tế: 500000 VND" in prompt
    assert "Tổng thu nhập đã ghi nhận: 2000000 VND" in prompt
    assert "Chi tiêu (67.5%)" in prompt
    assert "Số lượng giao dịch: 2" in prompt
    assert "Ngân hàng VCB: 1500000 VND" in prompt


def test_advice_returns_model_text():
    completions = _StubCompletions(content="## Lời khuyên\n1. Tiết kiệm thêm")
    advisor = FinancialAdvisor(client=_client(completions), model="test-model")

    advice = advisor.get_advice(_state_with_activity())

    assert advice.startswith("## Lời khuyên")
    assert completions.calls[0]["model"] == "test-model"
    assert "Tổng chi tiêu thực tế" in completions.calls[0]["messages"][1]["content"]


def test_advice_failure_returns_fallback_once():
    completions = _StubCompletions(error=OpenAIError("quota exceeded"))
    messages = []
    advisor = FinancialAdvisor(client=_client(completions))

    advice = advisor.get_advice(seed_state(), logger_callback=messages.append)

    assert advice == FALLBACK_ADVICE
    assert len(completions.calls) == 1
    assert any("quota exceeded" in message for message in messages)


def test_empty_response_returns_fallback():
    advisor = FinancialAdvisor(client=_client(_StubCompletions(content="  ")))

    assert advisor.get_advice(seed_state()) == FALLBACK_ADVICE


def test_unconfigured_advisor_returns_fallback():
    advisor = FinancialAdvisor()

    assert not advisor.is_configured
    assert advisor.get_advice(seed_state()) == FALLBACK_ADVICE
