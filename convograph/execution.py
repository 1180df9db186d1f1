"""Run a node's model call against its resolved upstream context.

The runner owns the idle -> running -> success | error transitions. Each
transition is a single store call made between awaits, so concurrent runs
on the same event loop never observe a half-applied update.
"""

import asyncio
import logging
import time
from collections.abc import Callable

from pydantic import BaseModel

from convograph.config import Settings
from convograph.llm.client import ChatClient, ChatRequest, ChatResponse, TokenUsage
from convograph.llm.errors import LLMErrorCode, to_llm_error
from convograph.models.graph import Message, MessageRole, NodeStatus
from convograph.store import GraphStore
from convograph.utils.identifiers import generate_message_id, now_ms

logger = logging.getLogger(__name__)


class ExecutionResult(BaseModel):
    """Outcome of one node run."""

    node_id: str
    success: bool
    output: str | None = None
    error: str | None = None
    error_code: LLMErrorCode | None = None
    retryable: bool = False
    latency_ms: float | None = None
    usage: TokenUsage | None = None
    context_complete: bool = True


class NodeRunner:
    """Executes nodes of one ``GraphStore`` through a chat client."""

    def __init__(
        self,
        store: GraphStore,
        client: ChatClient,
        settings: Settings | None = None,
    ) -> None:
        self.store = store
        self.client = client
        self.settings = settings or Settings()
        self.results: dict[str, ExecutionResult] = {}
        self._tasks: dict[str, asyncio.Task] = {}

    @property
    def running(self) -> list[str]:
        return [node_id for node_id, task in self._tasks.items() if not task.done()]

    def can_run(self, node_id: str) -> bool:
        """A node can run when it has a prompt and is not already running."""
        node = self.store.get_node(node_id)
        if node is None or not node.data.prompt.strip():
            return False
        return node.data.status != NodeStatus.running

    async def run_node(
        self,
        node_id: str,
        on_chunk: Callable[[str], None] | None = None,
    ) -> ExecutionResult | None:
        """Run one node. Returns None when there is nothing to run.

        With ``on_chunk`` the reply is streamed and each piece of text is
        passed on as it arrives; the node is only updated once the reply is
        complete.

        Provider failures are recorded on the node and returned as a failed
        result; only cancellation propagates.
        """
        node = self.store.get_node(node_id)
        if node is None:
            return None
        prompt = node.data.prompt.strip()
        if not prompt:
            return None

        context = self.store.resolve_context(node_id)
        if context.has_errors:
            if self.settings.block_on_upstream_errors:
                result = ExecutionResult(
                    node_id=node_id,
                    success=False,
                    error=f"Upstream nodes failed: {', '.join(context.error_nodes)}",
                    context_complete=False,
                )
                self.results[node_id] = result
                return result
            logger.warning(
                "running %s with failed upstream nodes: %s",
                node_id,
                context.error_nodes,
            )

        self.store.set_node_status(node_id, NodeStatus.running)
        self.store.add_message(
            node_id,
            Message(
                id=generate_message_id("user"),
                role=MessageRole.user,
                content=prompt,
                created_at=now_ms(),
            ),
        )

        request = ChatRequest(
            model=node.data.model_id or self.settings.default_model,
            messages=context.as_chat_messages(prompt),
            temperature=(
                node.data.temperature
                if node.data.temperature is not None
                else self.settings.temperature
            ),
            max_tokens=node.data.max_tokens or self.settings.max_tokens,
        )

        start_time = time.time()
        try:
            response = await self._call_model(request, on_chunk)
        except asyncio.CancelledError:
            if self.store.get_node(node_id) is not None:
                self.store.set_node_status(node_id, NodeStatus.idle)
            self.results[node_id] = ExecutionResult(
                node_id=node_id,
                success=False,
                error="Request cancelled",
            )
            raise
        except Exception as e:
            error = to_llm_error(e, getattr(self.client, "provider", None))
            logger.warning("model call for %s failed (%s): %s", node_id, error.code.value, error)
            result = ExecutionResult(
                node_id=node_id,
                success=False,
                error=error.user_message,
                error_code=error.code,
                retryable=error.retryable,
                latency_ms=(time.time() - start_time) * 1000,
                context_complete=context.is_complete,
            )
            if self.store.get_node(node_id) is not None:
                self.store.set_node_status(node_id, NodeStatus.error, error.user_message)
            self.results[node_id] = result
            return result

        latency_ms = (time.time() - start_time) * 1000
        if self.store.get_node(node_id) is None:
            logger.info("node %s was removed while its model call was in flight", node_id)
            return None

        self.store.add_message(
            node_id,
            Message(
                id=generate_message_id("assistant"),
                role=MessageRole.assistant,
                content=response.content,
                created_at=now_ms(),
            ),
        )
        self.store.update_node(node_id, status=NodeStatus.success, error=None, prompt="")

        result = ExecutionResult(
            node_id=node_id,
            success=True,
            output=response.content,
            latency_ms=latency_ms,
            usage=response.usage,
            context_complete=context.is_complete,
        )
        self.results[node_id] = result
        return result

    async def _call_model(
        self,
        request: ChatRequest,
        on_chunk: Callable[[str], None] | None,
    ) -> ChatResponse:
        if on_chunk is None:
            return await self.client.generate(request)

        stream = getattr(self.client, "stream", None)
        if stream is None:
            # no native streaming: deliver the whole reply as one chunk
            response = await self.client.generate(request)
            on_chunk(response.content)
            return response

        parts: list[str] = []
        async for text in stream(request):
            parts.append(text)
            on_chunk(text)
        return ChatResponse(content="".join(parts), model=request.model)

    async def retry(self, node_id: str) -> ExecutionResult | None:
        """Clear an error state and run again."""
        if self.store.get_node(node_id) is None:
            return None
        self.store.set_node_status(node_id, NodeStatus.idle)
        return await self.run_node(node_id)

    def start(self, node_id: str) -> asyncio.Task:
        """Schedule a run on the current event loop so it can be stopped later."""
        task = asyncio.create_task(self.run_node(node_id))
        self._tasks[node_id] = task
        task.add_done_callback(lambda _: self._tasks.pop(node_id, None))
        return task

    async def run_all(self) -> list[ExecutionResult]:
        """Run every root node concurrently."""
        tasks = [self.start(node.id) for node in self.store.root_nodes()]
        if not tasks:
            return []
        outcomes = await asyncio.gather(*tasks, return_exceptions=True)
        return [outcome for outcome in outcomes if isinstance(outcome, ExecutionResult)]

    def stop(self, node_id: str | None = None) -> None:
        """Cancel one in-flight run, or all of them."""
        if node_id is not None:
            task = self._tasks.get(node_id)
            if task is not None:
                task.cancel()
            return

        for task in list(self._tasks.values()):
            task.cancel()
