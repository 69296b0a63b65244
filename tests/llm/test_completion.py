"""
Unit tests for JSON extraction, the structured completion loop and
provider selection.
"""

from unittest.mock import AsyncMock, MagicMock

import pytest
from mcp import types
from pydantic import BaseModel

from thehive_mcp.context import RequestContext
from thehive_mcp.core.errors import TranslationError
from thehive_mcp.llm import complete_structured, select_provider
from thehive_mcp.llm.completion import OpenAIProvider, SamplingProvider, set_default_provider
from thehive_mcp.llm.extraction import extract_json
from thehive_mcp.llm.messages import message_text, user_message


class Answer(BaseModel):
    value: int


class ScriptedProvider:
    name = "scripted"
    exhausted_message = "scripted provider exhausted"

    def __init__(self, replies):
        self.replies = list(replies)
        self.calls = []

    async def complete(self, messages):
        self.calls.append(list(messages))
        return self.replies.pop(0)


class TestExtractJson:
    """Test pulling JSON out of model replies."""

    def test_plain(self):
        """Test a bare object."""
        assert extract_json('{"value": 1}') == '{"value": 1}'

    def test_fenced(self):
        """Test the first fenced block wins."""
        reply = 'Here you go:\n```json\n{"value": 2}\n```\nand ```\n{"value": 3}\n```'
        assert extract_json(reply) == '{"value": 2}'

    def test_surrounding_text(self):
        """Test text around the braces is dropped."""
        assert extract_json('Sure! {"value": {"nested": 1}} Hope it helps') == '{"value": {"nested": 1}}'


class TestCompleteStructured:
    """Test the retry and correction protocol."""

    @pytest.mark.asyncio
    async def test_first_reply_parses(self):
        """Test a valid first reply."""
        provider = ScriptedProvider(['{"value": 7}'])
        result = await complete_structured(provider, [user_message("hi")], Answer)
        assert result.value == 7
        # The schema instruction is appended to the conversation.
        assert "schema" in message_text(provider.calls[0][-1])

    @pytest.mark.asyncio
    async def test_correction_round(self):
        """Test an unparseable reply is sent back with a correction request."""
        provider = ScriptedProvider(['{"value": "seven"}', '{"value": 7}'])
        result = await complete_structured(provider, [user_message("hi")], Answer)
        assert result.value == 7
        second = provider.calls[1]
        assert second[-2].role == "assistant"
        assert message_text(second[-2]) == '{"value": "seven"}'
        assert message_text(second[-1]).startswith("The previous response was invalid.")

    @pytest.mark.asyncio
    async def test_error_reply_is_final(self):
        """Test a reply mentioning an error is not retried."""
        provider = ScriptedProvider(["Error: cannot build filters for that request", '{"value": 1}'])
        with pytest.raises(TranslationError, match="model returned error response"):
            await complete_structured(provider, [user_message("hi")], Answer)
        assert len(provider.calls) == 1

    @pytest.mark.asyncio
    async def test_empty_replies_exhaust(self):
        """Test empty replies are retried until the budget runs out."""
        provider = ScriptedProvider([None, "", None])
        with pytest.raises(TranslationError, match="scripted provider exhausted"):
            await complete_structured(provider, [user_message("hi")], Answer)
        assert len(provider.calls) == 3


class TestOpenAIProvider:
    """Test the OpenAI back-end."""

    @pytest.mark.asyncio
    async def test_first_message_is_system(self):
        """Test the first message goes out as the system prompt."""
        client = MagicMock()
        choice = MagicMock()
        choice.message.content = '{"value": 1}'
        client.chat.completions.create = AsyncMock(return_value=MagicMock(choices=[choice]))
        credentials = MagicMock(model="gpt-4", max_tokens=100, base_url="https://api", api_key="sk")

        provider = OpenAIProvider(credentials, client=client)
        reply = await provider.complete([user_message("system text"), user_message("question")])

        assert reply == '{"value": 1}'
        sent = client.chat.completions.create.call_args.kwargs
        assert sent["model"] == "gpt-4"
        assert sent["max_tokens"] == 100
        assert [m["role"] for m in sent["messages"]] == ["system", "user"]

    @pytest.mark.asyncio
    async def test_no_choices(self):
        """Test an empty choice list is a failed attempt."""
        client = MagicMock()
        client.chat.completions.create = AsyncMock(return_value=MagicMock(choices=[]))
        provider = OpenAIProvider(MagicMock(model="m", max_tokens=1), client=client)
        assert await provider.complete([user_message("x")]) is None


class TestSamplingProvider:
    """Test the MCP sampling back-end."""

    @pytest.mark.asyncio
    async def test_system_prompt_split(self):
        """Test the first message becomes the sampling system prompt."""
        session = MagicMock()
        session.create_message = AsyncMock(
            return_value=MagicMock(content=types.TextContent(type="text", text='{"value": 3}'))
        )
        provider = SamplingProvider(session, related_request_id=5)
        reply = await provider.complete([user_message("system"), user_message("question")])

        assert reply == '{"value": 3}'
        kwargs = session.create_message.call_args.kwargs
        assert kwargs["system_prompt"] == "system"
        assert len(kwargs["messages"]) == 1
        assert kwargs["related_request_id"] == 5


class TestSelectProvider:
    """Test which back-end serves a request."""

    def teardown_method(self):
        set_default_provider(None)

    def test_sampling_preferred(self):
        """Test client sampling wins when the client supports it."""
        session = MagicMock()
        session.check_client_capability.return_value = True
        ctx = RequestContext(session=session, completion=MagicMock())
        assert isinstance(select_provider(ctx), SamplingProvider)

    def test_request_provider(self):
        """Test the request's OpenAI settings come next."""
        session = MagicMock()
        session.check_client_capability.return_value = False
        completion = MagicMock()
        assert select_provider(RequestContext(session=session, completion=completion)) is completion

    def test_default_provider(self):
        """Test the process-wide provider is the last resort."""
        default = MagicMock()
        set_default_provider(default)
        assert select_provider(RequestContext()) is default

    def test_not_configured(self):
        """Test no back-end at all."""
        with pytest.raises(TranslationError, match="OpenAI not configured"):
            select_provider(RequestContext())
