# File: atmos/assistant.py

"""
Conversation state for the "Atmos" chat assistant.

Messages are kept as ChatMessage objects; the dashboard stores their dict
form in the browser. The first message is always a greeting with the id
'welcome', which is refreshed when new AQI data arrives before the user has
said anything.
"""

import logging
import time

from atmos.api_integration.gemini_client import WELCOME_MESSAGE_ID, send_chat_message
from atmos.models import ChatMessage

log = logging.getLogger(__name__)

GENERIC_WELCOME = "Hi! I'm Atmos AI. Search for a city, and I can give you personalized air quality advice!"
CONNECTION_ERROR_REPLY = ("Sorry, I'm having trouble connecting to the server. "
                          "Please ensure the backend is running.")

SUGGESTED_QUESTIONS = [
    "Is it safe to jog outside?",
    "Do I need a mask today?",
    "How does PM2.5 affect me?",
    "Ventilation advice?",
]

# Suggested questions are offered only while the conversation is this short.
SUGGESTIONS_MAX_MESSAGES = 3


def _now_ms():
    return int(time.time() * 1000)


def build_welcome_message(aqi_data=None):
    if aqi_data is None:
        text = GENERIC_WELCOME
    else:
        text = (f"Hi! I'm Atmos. I see the AQI in {aqi_data.city} is {aqi_data.aqi}. "
                "How can I help you stay healthy today?")
    return ChatMessage(id=WELCOME_MESSAGE_ID, role='model', text=text)


def refresh_welcome(messages, aqi_data):
    """Re-greets with the new city's data if the conversation has not started yet."""
    if aqi_data is not None and len(messages) == 1 and messages[0].id == WELCOME_MESSAGE_ID:
        return [build_welcome_message(aqi_data)]
    return list(messages)


def should_offer_suggestions(messages, aqi_data):
    return aqi_data is not None and len(messages) < SUGGESTIONS_MAX_MESSAGES


def handle_user_message(messages, text, aqi_data=None, clock=_now_ms):
    """Appends the user's message and the assistant's reply.

    Blank input returns the conversation unchanged. The reply is requested with
    the conversation as it stood *before* this message, which is how the
    service expects history.

    Returns:
        list[ChatMessage]: the new conversation.
    """
    if not text or not text.strip():
        return list(messages)

    now = clock()
    user_msg = ChatMessage(id=str(now), role='user', text=text)
    history = list(messages)
    conversation = history + [user_msg]
    try:
        reply_text = send_chat_message(user_msg.text, history, aqi_data)
        conversation.append(ChatMessage(id=str(now + 1), role='model', text=reply_text))
    except Exception as e:
        log.error(f"Unexpected error while sending chat message: {e}", exc_info=True)
        conversation.append(ChatMessage(id=str(clock()), role='model', text=CONNECTION_ERROR_REPLY))
    return conversation
