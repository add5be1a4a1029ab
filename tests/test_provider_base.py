"""Tests for commitgenie.providers.base: ChatProvider ABC."""

import pytest

from commitgenie.providers.base import ChatProvider
from commitgenie.schemas.pipeline import ModelConfig
from commitgenie.schemas.requests import RequestKind


def _make_config(**overrides) -> ModelConfig:
    """Helper to create a ModelConfig with sensible defaults."""
    defaults = {
        "provider": "test",
        "model": "test-model-v1",
        "display_name": "Test Model",
        "api_key_env": "TEST_API_KEY",
        "context_window": 128000,
        "supports_structured": True,
        "cost_input": 3.00,
        "cost_output": 15.00,
    }
    defaults.update(overrides)
    return ModelConfig(**defaults)


class ConcreteProvider(ChatProvider):
    """Minimal concrete implementation for testing the ABC."""

    async def chat(self, conversation, request_kind=None):
        return '{"commitMessage": "chore: test"}'


class TestChatProviderProperties:
    def test_identity_properties(self):
        provider = ConcreteProvider(_make_config())
        assert provider.provider_id == "test"
        assert provider.model_id == "test-model-v1"
        assert provider.display_name == "Test Model"
        assert provider.supports_structured is True

    def test_config_property(self):
        config = _make_config()
        assert ConcreteProvider(config).config is config

    def test_abstract_chat_required(self):
        with pytest.raises(TypeError):
            ChatProvider(_make_config())


class TestCalculateCost:
    def test_basic_cost_calculation(self):
        provider = ConcreteProvider(_make_config(cost_input=3.00, cost_output=15.00))
        # 1000 input tokens at $3/M = $0.003, 500 output at $15/M = $0.0075
        assert provider.calculate_cost(1000, 500) == pytest.approx(0.0105)

    def test_zero_tokens(self):
        assert ConcreteProvider(_make_config()).calculate_cost(0, 0) == 0.0


class TestRecordUsage:
    def test_usage_log_accumulates(self):
        provider = ConcreteProvider(_make_config(cost_input=1.0, cost_output=2.0))

        first = provider.record_usage(1_000_000, 0, RequestKind.SUMMARY)
        provider.record_usage(0, 1_000_000)

        assert first.cost == pytest.approx(1.0)
        assert first.request_kind == "summary"
        assert first.model == "test-model-v1"
        assert [u.cost for u in provider.usage] == pytest.approx([1.0, 2.0])
        assert provider.usage[1].request_kind == ""

    def test_usage_returns_copy(self):
        provider = ConcreteProvider(_make_config())
        provider.record_usage(1, 1)
        provider.usage.clear()
        assert len(provider.usage) == 1
