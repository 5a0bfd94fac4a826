from sqlalchemy import Column, DateTime, Index, Integer, String, text
from sqlalchemy.sql import func

from support_chat.db.session import Base


class ChatRoom(Base):
    __tablename__ = "chat_rooms"

    id = Column(Integer, primary_key=True, index=True)
    customer_id = Column(Integer, nullable=False, index=True)
    # Identity snapshot taken when the room is created
    customer_name = Column(String, nullable=True)
    customer_email = Column(String, nullable=True)
    # Null until the first staff member takes the room
    staff_id = Column(Integer, nullable=True)
    staff_name = Column(String, nullable=True)
    # active | closed
    status = Column(String, default="active", nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    __table_args__ = (
        Index(
            "uq_chat_rooms_active_customer",
            "customer_id",
            unique=True,
            postgresql_where=text("status = 'active'"),
            sqlite_where=text("status = 'active'"),
        ),
    )
