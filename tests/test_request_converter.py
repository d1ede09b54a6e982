from src.conversion.request_converter import compose_conversation, extract_text_parts
from src.models.openai import ChatMessage


def test_single_message_has_no_role_prefix():
    assert compose_conversation([{"role": "user", "content": "hi"}]) == "hi\n"


def test_single_message_with_text_parts():
    messages = [
        {
            "role": "user",
            "content": [
                {"type": "text", "text": "describe"},
                {"type": "image_url", "image_url": {"url": "https://example.com/a.png"}},
                {"type": "text", "text": "briefly"},
            ],
        }
    ]
    assert compose_conversation(messages) == "describe\nbriefly\n"


def test_multi_turn_is_merged_with_roles_and_cue():
    messages = [
        {"role": "user", "content": "a"},
        {"role": "assistant", "content": "b"},
    ]
    assert compose_conversation(messages) == "user:a\nassistant:b\nassistant:"


def test_multi_turn_preserves_order_and_accepts_models():
    messages = [
        ChatMessage(role="system", content="be terse"),
        ChatMessage(role="user", content=[{"type": "text", "text": "1+1?"}]),
        ChatMessage(role="assistant", content="2"),
        ChatMessage(role="user", content="and 2+2?"),
    ]
    assert compose_conversation(messages) == (
        "system:be terse\nuser:1+1?\nassistant:2\nuser:and 2+2?\nassistant:"
    )


def test_multi_turn_strips_markdown_images():
    messages = [
        {"role": "user", "content": "look ![cat](https://x/cat.png) and ![](https://x/dog.png) ok"},
        {"role": "assistant", "content": "![chart](data:image/png;base64,AAA)"},
    ]
    merged = compose_conversation(messages)
    assert "![" not in merged
    assert merged == "user:look  and  ok\nassistant:\nassistant:"


def test_single_turn_keeps_images():
    merged = compose_conversation([{"role": "user", "content": "![a](b)"}])
    assert merged == "![a](b)\n"


def test_non_text_parts_are_ignored_not_errors():
    messages = [
        {"role": "user", "content": [{"type": "image_url", "image_url": {"url": "u"}}]},
        {"role": "assistant", "content": "ok"},
    ]
    assert compose_conversation(messages) == "assistant:ok\nassistant:"


def test_extract_text_parts():
    assert extract_text_parts("plain") == ["plain"]
    assert extract_text_parts(None) == [""]
    assert extract_text_parts([{"type": "text"}, "junk", {"type": "text", "text": "x"}]) == ["", "x"]
