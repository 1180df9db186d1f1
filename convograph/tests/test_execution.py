"""Tests for NodeRunner status transitions and message handling."""

import asyncio

from langchain_core.language_models.fake_chat_models import FakeListChatModel

from convograph.config import Settings
from convograph.execution import NodeRunner
from convograph.llm.client import ChatRequest, ChatResponse, LangChainChatClient
from convograph.llm.errors import LLMError, LLMErrorCode
from convograph.models.graph import Message, MessageRole, NodeStatus
from convograph.store import GraphStore


class FakeClient:
    """Returns canned replies and remembers every request."""

    provider = "fake"

    def __init__(self, reply: str = "ok", error: Exception | None = None):
        self.reply = reply
        self.error = error
        self.requests: list[ChatRequest] = []

    async def generate(self, request: ChatRequest) -> ChatResponse:
        self.requests.append(request)
        if self.error is not None:
            raise self.error
        return ChatResponse(content=self.reply, model=request.model)


class SlowClient:
    provider = "fake"

    async def generate(self, request: ChatRequest) -> ChatResponse:
        await asyncio.sleep(10)
        return ChatResponse(content="late")


def _graph_with_parent() -> tuple[GraphStore, str, str]:
    store = GraphStore()
    parent = store.create_node(
        label="parent",
        messages=[
            Message(id="u1", role=MessageRole.user, content="hi", created_at=1000),
            Message(id="a1", role=MessageRole.assistant, content="hello", created_at=2000),
        ],
        status=NodeStatus.success,
    )
    child = store.create_node(label="child", prompt="what next?")
    store.connect(parent.id, child.id)
    return store, parent.id, child.id


class TestRunNode:
    """Successful and failing runs."""

    def test_success(self):
        store, _, child_id = _graph_with_parent()
        client = FakeClient(reply="more things")
        runner = NodeRunner(store, client, Settings())

        result = asyncio.run(runner.run_node(child_id))

        assert result.success
        assert result.output == "more things"
        assert result.context_complete

        node = store.get_node(child_id)
        assert node.data.status == NodeStatus.success
        assert node.data.prompt == ""
        assert [(m.role, m.content) for m in node.data.messages] == [
            (MessageRole.user, "what next?"),
            (MessageRole.assistant, "more things"),
        ]

    def test_request_carries_context_then_prompt(self):
        store, _, child_id = _graph_with_parent()
        client = FakeClient()
        runner = NodeRunner(store, client, Settings(temperature=0.2))

        asyncio.run(runner.run_node(child_id))

        (request,) = client.requests
        assert request.messages == [
            {"role": "user", "content": "hi"},
            {"role": "assistant", "content": "hello"},
            {"role": "user", "content": "what next?"},
        ]
        assert request.temperature == 0.2
        assert request.model == "gpt-4o"

    def test_node_overrides_settings(self):
        store, _, child_id = _graph_with_parent()
        store.update_node(child_id, temperature=0.9, max_tokens=64, model_id="claude-3-haiku")
        client = FakeClient()

        asyncio.run(NodeRunner(store, client, Settings()).run_node(child_id))

        request = client.requests[0]
        assert request.temperature == 0.9
        assert request.max_tokens == 64
        assert request.model == "claude-3-haiku"

    def test_provider_error_marks_node(self):
        store, _, child_id = _graph_with_parent()
        client = FakeClient(error=LLMError(LLMErrorCode.rate_limit, "slow down", status_code=429))
        runner = NodeRunner(store, client, Settings())

        result = asyncio.run(runner.run_node(child_id))

        assert not result.success
        assert result.error_code == LLMErrorCode.rate_limit
        assert result.retryable
        node = store.get_node(child_id)
        assert node.data.status == NodeStatus.error
        assert node.data.error == result.error
        # the prompt stays so the user can retry
        assert node.data.prompt == "what next?"

    def test_unexpected_exception_is_wrapped(self):
        store, _, child_id = _graph_with_parent()
        runner = NodeRunner(store, FakeClient(error=RuntimeError("kaput")), Settings())

        result = asyncio.run(runner.run_node(child_id))

        assert not result.success
        assert result.error_code == LLMErrorCode.unknown

    def test_blank_prompt_is_skipped(self):
        store, parent_id, _ = _graph_with_parent()
        client = FakeClient()

        result = asyncio.run(NodeRunner(store, client).run_node(parent_id))

        assert result is None
        assert client.requests == []

    def test_chunk_callback_without_streaming_client(self):
        store, _, child_id = _graph_with_parent()
        chunks = []

        result = asyncio.run(
            NodeRunner(store, FakeClient(reply="whole")).run_node(child_id, on_chunk=chunks.append)
        )

        assert chunks == ["whole"]
        assert result.output == "whole"

    def test_missing_node(self):
        store = GraphStore()
        assert asyncio.run(NodeRunner(store, FakeClient()).run_node("nope")) is None

    def test_retry_after_error(self):
        store, _, child_id = _graph_with_parent()
        client = FakeClient(error=LLMError(LLMErrorCode.timeout, "timed out"))
        runner = NodeRunner(store, client, Settings())
        asyncio.run(runner.run_node(child_id))

        client.error = None
        result = asyncio.run(runner.retry(child_id))

        assert result.success
        assert store.get_node(child_id).data.status == NodeStatus.success


class TestUpstreamErrors:
    """Behaviour when an ancestor failed."""

    def _failed_parent(self):
        store, parent_id, child_id = _graph_with_parent()
        store.set_node_status(parent_id, NodeStatus.error, "boom")
        return store, parent_id, child_id

    def test_proceeds_by_default(self):
        store, _, child_id = self._failed_parent()
        result = asyncio.run(NodeRunner(store, FakeClient(), Settings()).run_node(child_id))

        assert result.success
        assert result.context_complete is False

    def test_blocks_when_configured(self):
        store, parent_id, child_id = self._failed_parent()
        client = FakeClient()
        settings = Settings(block_on_upstream_errors=True)

        result = asyncio.run(NodeRunner(store, client, settings).run_node(child_id))

        assert not result.success
        assert parent_id in result.error
        assert client.requests == []
        assert store.get_node(child_id).data.status == NodeStatus.idle


class TestConcurrentRuns:
    def test_run_all_runs_roots(self):
        store = GraphStore()
        first = store.create_node(prompt="one")
        second = store.create_node(prompt="two")
        child = store.create_node(prompt="three")
        store.connect(first.id, child.id)
        client = FakeClient()

        results = asyncio.run(NodeRunner(store, client).run_all())

        assert {r.node_id for r in results} == {first.id, second.id}
        assert store.get_node(child.id).data.status == NodeStatus.idle

    def test_stop_returns_node_to_idle(self):
        store = GraphStore()
        node = store.create_node(prompt="take your time")
        runner = NodeRunner(store, SlowClient())

        async def scenario():
            task = runner.start(node.id)
            await asyncio.sleep(0)
            assert store.get_node(node.id).data.status == NodeStatus.running
            runner.stop(node.id)
            try:
                await task
            except asyncio.CancelledError:
                pass

        asyncio.run(scenario())

        assert store.get_node(node.id).data.status == NodeStatus.idle
        assert runner.results[node.id].error == "Request cancelled"
        assert runner.running == []


class TestLangChainClient:
    """Running through a LangChain chat model."""

    def test_fake_chat_model(self):
        store, _, child_id = _graph_with_parent()
        client = LangChainChatClient(FakeListChatModel(responses=["from langchain"]))

        result = asyncio.run(NodeRunner(store, client).run_node(child_id))

        assert result.success
        assert store.get_node(child_id).data.messages[-1].content == "from langchain"

    def test_streamed_run(self):
        store, _, child_id = _graph_with_parent()
        client = LangChainChatClient(FakeListChatModel(responses=["streamed reply"]))
        chunks = []

        result = asyncio.run(NodeRunner(store, client).run_node(child_id, on_chunk=chunks.append))

        assert len(chunks) > 1
        assert "".join(chunks) == "streamed reply"
        assert result.output == "streamed reply"
        assert store.get_node(child_id).data.messages[-1].content == "streamed reply"

    def test_stream_yields_text(self):
        client = LangChainChatClient(FakeListChatModel(responses=["abc"]))
        request = ChatRequest(model="fake", messages=[{"role": "user", "content": "hi"}])

        async def collect():
            return [text async for text in client.stream(request)]

        assert "".join(asyncio.run(collect())) == "abc"

    def test_message_conversion(self):
        messages = LangChainChatClient.to_langchain_messages([
            {"role": "system", "content": "be nice"},
            {"role": "user", "content": "hi"},
            {"role": "assistant", "content": "hello"},
        ])

        assert [m.type for m in messages] == ["system", "human", "ai"]
