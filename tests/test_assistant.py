# File: tests/test_assistant.py

"""
Unit tests for the chat conversation state (`atmos/assistant.py`).

`send_chat_message` is patched where the assistant module imports it, so no
AI call is made.
"""

from unittest.mock import patch

from atmos.assistant import (
    CONNECTION_ERROR_REPLY,
    GENERIC_WELCOME,
    build_welcome_message,
    handle_user_message,
    refresh_welcome,
    should_offer_suggestions,
)
from atmos.models import AqiData, AqiLevel, ChatMessage

MOCK_AQI = AqiData(city="Delhi", aqi=180, level=AqiLevel.UNHEALTHY, dominant_pollutant="PM2.5",
                   pollutants=[], health_advice="Stay in.", last_updated="2025-01-01T00:00:00.000Z")


def fixed_clock():
    return 1700000000000


def test_generic_welcome():
    msg = build_welcome_message()
    assert msg.id == "welcome"
    assert msg.role == "model"
    assert msg.text == GENERIC_WELCOME


def test_contextual_welcome():
    msg = build_welcome_message(MOCK_AQI)
    assert msg.text == ("Hi! I'm Atmos. I see the AQI in Delhi is 180. "
                        "How can I help you stay healthy today?")


def test_refresh_welcome_only_before_conversation_starts():
    fresh = [build_welcome_message()]
    assert refresh_welcome(fresh, MOCK_AQI)[0].text.startswith("Hi! I'm Atmos. I see the AQI in Delhi")

    started = fresh + [ChatMessage(id="1", role="user", text="hello")]
    assert refresh_welcome(started, MOCK_AQI) == started
    assert refresh_welcome(fresh, None) == fresh


def test_should_offer_suggestions():
    welcome = [build_welcome_message(MOCK_AQI)]
    assert should_offer_suggestions(welcome, MOCK_AQI) is True
    assert should_offer_suggestions(welcome, None) is False
    long_chat = welcome + [ChatMessage(id=str(i), role="user", text="q") for i in range(3)]
    assert should_offer_suggestions(long_chat, MOCK_AQI) is False


@patch('atmos.assistant.send_chat_message', return_value="Yes, wear a mask.")
def test_handle_user_message_appends_user_and_reply(mock_send):
    history = [build_welcome_message(MOCK_AQI)]

    conversation = handle_user_message(history, "Do I need a mask today?", MOCK_AQI, clock=fixed_clock)

    assert [(m.id, m.role, m.text) for m in conversation[1:]] == [
        ("1700000000000", "user", "Do I need a mask today?"),
        ("1700000000001", "model", "Yes, wear a mask."),
    ]
    # The service receives the conversation as it was before this message.
    mock_send.assert_called_once_with("Do I need a mask today?", history, MOCK_AQI)
    assert len(history) == 1


@patch('atmos.assistant.send_chat_message')
def test_blank_message_is_ignored(mock_send):
    history = [build_welcome_message()]
    assert handle_user_message(history, "   ") == history
    mock_send.assert_not_called()


@patch('atmos.assistant.send_chat_message', side_effect=RuntimeError("server down"))
def test_unexpected_error_adds_connection_apology(mock_send):
    conversation = handle_user_message([], "hello", clock=fixed_clock)
    assert conversation[-1].role == "model"
    assert conversation[-1].text == CONNECTION_ERROR_REPLY
    assert len(conversation) == 2
