import json
import logging
import time
from contextlib import aclosing
from dataclasses import dataclass
from typing import Any, AsyncGenerator, AsyncIterator, Dict, List, Optional

from openai.types import CompletionUsage
from openai.types.chat import ChatCompletion, ChatCompletionChunk, ChatCompletionMessage
from openai.types.chat.chat_completion import Choice
from openai.types.chat.chat_completion_chunk import Choice as ChunkChoice
from openai.types.chat.chat_completion_chunk import ChoiceDelta

from src.conversion.sse import ServerSentEvent
from src.core.constants import Constants
from src.core.exceptions import UpstreamProtocolError

logger = logging.getLogger(__name__)

DONE_FRAME = f"data: {Constants.SSE_DONE}\n\n"


@dataclass
class UpstreamDelta:
    id: str
    content: str
    finish_reason: Optional[str]

    @property
    def meaningful(self) -> bool:
        # Empty and single-space deltas are keep-alive noise.
        return bool(self.content) and self.content != " "

    @property
    def finished(self) -> bool:
        return self.finish_reason == Constants.FINISH_STOP


def _build_sse_frame(payload: Dict[str, Any]) -> str:
    frame = f"data: {json.dumps(payload, ensure_ascii=False)}\n\n"
    logger.debug("SSE outbound: %s", frame.strip())
    return frame


def parse_upstream_delta(data: str) -> UpstreamDelta:
    """Decode one upstream event payload into its delta fragment."""
    try:
        chunk = json.loads(data)
    except json.JSONDecodeError:
        raise UpstreamProtocolError(f"Stream response invalid: {data}")
    if not isinstance(chunk, dict):
        raise UpstreamProtocolError(f"Stream response invalid: {data}")

    choices = chunk.get("choices") or []
    choice = choices[0] if choices and isinstance(choices[0], dict) else {}
    delta = choice.get("delta") or {}
    content = delta.get("content") if isinstance(delta, dict) else None
    return UpstreamDelta(
        id=str(chunk.get("id") or ""),
        content=content if isinstance(content, str) else "",
        finish_reason=choice.get("finish_reason"),
    )


async def iter_upstream_deltas(
    events: AsyncGenerator[ServerSentEvent, None],
) -> AsyncIterator[UpstreamDelta]:
    async with aclosing(events):
        async for event in events:
            if not event.data:
                continue
            if event.data.strip() == Constants.SSE_DONE:
                return
            logger.debug("Upstream SSE chunk: %s", event.data)
            yield parse_upstream_delta(event.data)


def build_chat_completion(
    model: str, content: str, response_id: str = "", created: Optional[int] = None
) -> Dict[str, Any]:
    completion = ChatCompletion(
        id=response_id,
        model=model,
        object=Constants.OBJECT_CHAT_COMPLETION,
        created=created if created is not None else int(time.time()),
        choices=[
            Choice(
                index=0,
                message=ChatCompletionMessage(role=Constants.ROLE_ASSISTANT, content=content),
                finish_reason=Constants.FINISH_STOP,
            )
        ],
        usage=CompletionUsage(**Constants.PLACEHOLDER_USAGE),
    )
    return completion.to_dict()


def build_chunk_frame(
    model: str,
    created: int,
    delta: ChoiceDelta,
    finish_reason: Optional[str] = None,
    response_id: str = "",
    usage: Optional[Dict[str, int]] = None,
) -> str:
    fields: Dict[str, Any] = {}
    if usage is not None:
        fields["usage"] = CompletionUsage(**usage)
    chunk = ChatCompletionChunk(
        id=response_id,
        model=model,
        object=Constants.OBJECT_CHAT_COMPLETION_CHUNK,
        created=created,
        choices=[ChunkChoice(index=0, delta=delta, finish_reason=finish_reason)],
        **fields,
    )
    return _build_sse_frame(chunk.to_dict())


async def collect_deepseek_stream(
    events: AsyncGenerator[ServerSentEvent, None], model: str
) -> Dict[str, Any]:
    """Accumulate an upstream event stream into one chat completion.

    Resolves on the first ``stop`` finish signal, or with whatever has been
    accumulated if the upstream closes the stream first. Undecodable events
    raise ``UpstreamProtocolError``.
    """
    created = int(time.time())
    response_id = ""
    content_parts: List[str] = []
    finished = False

    async with aclosing(iter_upstream_deltas(events)) as deltas:
        async for delta in deltas:
            if delta.id and not response_id:
                response_id = delta.id
            if delta.meaningful:
                content_parts.append(delta.content)
            if delta.finished:
                finished = True
                break

    if not finished:
        logger.warning(
            "Upstream stream closed without finish signal (model=%s, chars=%d)",
            model,
            sum(len(part) for part in content_parts),
        )
    return build_chat_completion(model, "".join(content_parts), response_id, created)


async def convert_deepseek_stream_to_openai(
    events: AsyncGenerator[ServerSentEvent, None], model: str
) -> AsyncIterator[str]:
    """Re-frame an upstream event stream as OpenAI chat.completion.chunk frames.

    Each upstream fragment is forwarded as its own chunk. Faults on the
    upstream side never escape: the outward stream is always terminated with
    the ``[DONE]`` sentinel.
    """
    created = int(time.time())

    yield build_chunk_frame(
        model, created, ChoiceDelta(role=Constants.ROLE_ASSISTANT, content="")
    )

    try:
        async with aclosing(iter_upstream_deltas(events)) as deltas:
            async for delta in deltas:
                if delta.meaningful:
                    yield build_chunk_frame(
                        model, created, ChoiceDelta(content=delta.content), None, delta.id
                    )
                if delta.finished:
                    yield build_chunk_frame(
                        model,
                        created,
                        ChoiceDelta(content=""),
                        Constants.FINISH_STOP,
                        delta.id,
                    )
                    break
            else:
                logger.warning("Upstream stream closed without finish signal (model=%s)", model)
    except Exception as exc:
        logger.error("Streaming error: %s", exc)

    yield DONE_FRAME


async def build_fallback_stream(model: str, message: str) -> AsyncIterator[str]:
    """A complete one-chunk stream carrying a degraded-service notice."""
    yield build_chunk_frame(
        model,
        int(time.time()),
        ChoiceDelta(role=Constants.ROLE_ASSISTANT, content=message),
        Constants.FINISH_STOP,
        usage=Constants.PLACEHOLDER_USAGE,
    )
    yield DONE_FRAME
