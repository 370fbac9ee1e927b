"""Testes para o retry guiado do LLM (no máximo duas chamadas)."""

from __future__ import annotations

import pytest

from entelequia_wf1.application.llm_retry import (
    GUIDED_RETRY_HINT,
    call_llm_with_guided_retry,
    needs_guided_retry,
)
from entelequia_wf1.domain.models import ContextBlock, LlmReply
from tests.helpers.fakes import FakeLlm, make_llm_reply


class TestNeedsGuidedRetry:
    def test_specific_reply_does_not_retry(self) -> None:
        assert needs_guided_retry(make_llm_reply("Tenemos el tomo 3 a $4000.")) is False

    def test_empty_reply(self) -> None:
        assert needs_guided_retry(LlmReply(message="   ")) is True

    def test_clarifying_text_on_primary_path_does_not_retry(self) -> None:
        """O texto da resposta não decide o retry; só o metadata e a resposta vazia."""
        reply = make_llm_reply("Te ayudo con consultas de Entelequia. Contame un poco mas.")
        assert needs_guided_retry(reply) is False

    def test_reply_without_metadata_does_not_retry(self) -> None:
        assert needs_guided_retry(LlmReply(message="Contame un poco mas de lo que buscas.")) is False

    def test_fallback_path(self) -> None:
        assert needs_guided_retry(make_llm_reply("Texto", llm_path="fallback_default")) is True

    def test_fallback_reason(self) -> None:
        assert needs_guided_retry(make_llm_reply("Texto", fallback_reason="timeout")) is True


class TestCallWithGuidedRetry:
    @pytest.mark.asyncio
    async def test_single_call_for_good_reply(self) -> None:
        llm = FakeLlm("Tenemos el tomo 3.")

        result = await call_llm_with_guided_retry(
            llm, text="tenes naruto?", intent="products", history=[], context_blocks=[]
        )

        assert result.attempts == 1
        assert result.retried is False
        assert len(llm.calls) == 1

    @pytest.mark.asyncio
    async def test_retry_is_bounded_to_two_calls(self) -> None:
        """Mesmo com duas respostas degradadas, só há uma reinvocação."""
        llm = FakeLlm(make_llm_reply("Te ayudo con consultas de Entelequia.", llm_path="fallback_default"))
        blocks = [ContextBlock(context_type="products")]

        result = await call_llm_with_guided_retry(
            llm, text="y eso?", intent="general", history=[], context_blocks=blocks
        )

        assert result.attempts == 2
        assert result.retried is True
        assert len(llm.calls) == 2
        retry_blocks = llm.calls[1]["context_blocks"]
        assert retry_blocks[-1].context_payload == {"hint": GUIDED_RETRY_HINT}
        assert len(llm.calls[0]["context_blocks"]) == 1

    @pytest.mark.asyncio
    async def test_second_reply_is_kept(self) -> None:
        llm = FakeLlm("", "Te paso las opciones del tomo 3.")

        result = await call_llm_with_guided_retry(
            llm, text="tomo 3", intent="products", history=[], context_blocks=[]
        )

        assert result.reply.message == "Te paso las opciones del tomo 3."
        assert result.llm_path == "primary"

    @pytest.mark.asyncio
    async def test_clarifying_question_is_a_single_call(self) -> None:
        llm = FakeLlm(make_llm_reply("Contame un poco mas de lo que buscas."))

        result = await call_llm_with_guided_retry(
            llm, text="quiero un regalo", intent="recommendations", history=[], context_blocks=[]
        )

        assert result.attempts == 1
        assert result.retried is False
        assert result.reply.message == "Contame un poco mas de lo que buscas."
        assert len(llm.calls) == 1
