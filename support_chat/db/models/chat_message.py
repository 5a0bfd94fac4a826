from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Integer, String, Text
from sqlalchemy.sql import func

from support_chat.db.session import Base


class ChatMessage(Base):
    __tablename__ = "chat_messages"

    # Autoincrement id is the authoritative order inside a room
    id = Column(Integer, primary_key=True, index=True)
    room_id = Column(Integer, ForeignKey("chat_rooms.id"), nullable=False, index=True)
    sender_id = Column(Integer, nullable=False)
    # customer | staff
    sender_kind = Column(String, nullable=False)
    sender_name = Column(String, nullable=True)
    body = Column(Text, nullable=False)
    # text | system
    kind = Column(String, default="text", nullable=False)
    is_read = Column(Boolean, default=False, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
