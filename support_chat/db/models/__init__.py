from .chat_message import ChatMessage
from .chat_room import ChatRoom

__all__ = ["ChatMessage", "ChatRoom"]
