import logging
import re
from typing import Any, Iterable, List, Mapping, Sequence, Tuple, Union

from src.core.constants import Constants
from src.models.openai import ChatMessage

logger = logging.getLogger(__name__)

MARKDOWN_IMAGE_PATTERN = re.compile(r"!\[[^\]\n]*\]\([^)\n]*\)")

MessageLike = Union[ChatMessage, Mapping[str, Any]]


def _message_fields(message: MessageLike) -> Tuple[str, Any]:
    if isinstance(message, Mapping):
        return message.get("role") or "", message.get("content")
    return message.role, message.content


def extract_text_parts(content: Any) -> List[str]:
    """Return the text fragments of a message's content.

    Plain strings count as one fragment. For structured content only
    ``{"type": "text"}`` parts are kept; images and other parts are skipped.
    """
    if isinstance(content, (list, tuple)):
        texts = []
        for part in content:
            if not isinstance(part, Mapping) or part.get("type") != Constants.CONTENT_TEXT:
                continue
            texts.append(part.get("text") or "")
        return texts
    if content is None:
        return [""]
    return [str(content)]


def compose_conversation(messages: Sequence[MessageLike]) -> str:
    """Merge chat messages into the single prompt the upstream accepts.

    The upstream has no multi-turn API. A single message is forwarded as-is,
    one line per text part. A longer history is flattened into
    ``role:text`` lines followed by an ``assistant:`` cue, with inline
    markdown images removed.
    """
    if len(messages) < 2:
        content = "".join(
            f"{text}\n"
            for message in messages
            for text in extract_text_parts(_message_fields(message)[1])
        )
        logger.info("Transparent content:\n%s", content)
        return content

    lines: Iterable[str] = (
        f"{role}:{text}\n"
        for role, body in map(_message_fields, messages)
        for text in extract_text_parts(body)
    )
    content = MARKDOWN_IMAGE_PATTERN.sub("", "".join(lines) + f"{Constants.ROLE_ASSISTANT}:")
    logger.info("Conversation merge:\n%s", content)
    return content
