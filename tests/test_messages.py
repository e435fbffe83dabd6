"""Message translation tests: host messages to prompt parts."""

from __future__ import annotations

from typing import Any

from hypothesis import given, settings
from hypothesis import strategies as st
import pytest

from opencode_lm.errors import ConfigurationError
from opencode_lm.messages import normalize_messages, to_prompt_parts
from opencode_lm.models import Message, TextPart

pytestmark = pytest.mark.unit

_roles = st.sampled_from(["system", "user", "assistant"])
_text_items = st.one_of(
    st.text(max_size=20),
    st.builds(lambda t: {"type": "text", "text": t}, st.text(max_size=20)),
)
_other_items = st.builds(
    lambda tag: {"type": tag, "image_url": "http://img"},
    st.sampled_from(["image_url", "audio", "tool_use", "file"]),
)


@given(st.lists(st.tuples(_roles, st.text(max_size=30)), max_size=8))
@settings(max_examples=50, deadline=None, derandomize=True)
def test_string_content_yields_one_part_per_message(pairs: list[tuple[str, str]]) -> None:
    """Property: string messages map 1:1 onto text parts, in order."""
    messages = [{"role": role, "content": text} for role, text in pairs]

    parts = to_prompt_parts(messages)

    assert parts == [TextPart(text=text) for _, text in pairs]


@given(st.lists(st.one_of(_text_items, _other_items), max_size=10))
@settings(max_examples=50, deadline=None, derandomize=True)
def test_list_content_keeps_only_text_items(items: list[Any]) -> None:
    """Property: only strings and text-tagged items produce parts."""
    expected = [
        item if isinstance(item, str) else item["text"]
        for item in items
        if isinstance(item, str) or item.get("type") == "text"
    ]

    parts = to_prompt_parts([Message(role="user", content=items)])

    assert [p.text for p in parts] == expected
    assert all(p.type == "text" for p in parts)


def test_order_is_preserved_across_messages_and_items() -> None:
    messages = [
        {"role": "system", "content": "be brief"},
        {
            "role": "user",
            "content": [
                "first",
                {"type": "image_url", "image_url": {"url": "http://x/cat.png"}},
                {"type": "text", "text": "second"},
            ],
        },
        Message(role="assistant", content="third"),
    ]

    assert [p.text for p in to_prompt_parts(messages)] == [
        "be brief",
        "first",
        "second",
        "third",
    ]


def test_bare_string_is_a_single_user_message() -> None:
    assert normalize_messages("Say hello") == (Message(role="user", content="Say hello"),)
    assert to_prompt_parts("Say hello") == [TextPart(text="Say hello")]


def test_message_like_objects_are_accepted() -> None:
    class _HostMessage:
        role = "user"
        content = "from a chat framework"

    assert to_prompt_parts([_HostMessage()]) == [TextPart(text="from a chat framework")]


def test_text_parts_render_to_wire_format() -> None:
    assert [p.to_wire() for p in to_prompt_parts("hi")] == [{"type": "text", "text": "hi"}]


@pytest.mark.parametrize(
    "bad",
    [
        [{"role": "user"}],
        [{"role": "user", "content": 42}],
        [object()],
    ],
)
def test_unusable_messages_fail_clearly(bad: list[Any]) -> None:
    with pytest.raises(ConfigurationError, match=r"messages\[0\]"):
        to_prompt_parts(bad)
