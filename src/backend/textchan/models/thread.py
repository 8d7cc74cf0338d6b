from __future__ import annotations

import datetime as dt
from typing import TYPE_CHECKING

from sqlalchemy import DateTime, Index, Integer, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from textchan.db.base import Base

if TYPE_CHECKING:
    from textchan.models.reply import Reply


class Thread(Base):
    __tablename__ = "threads"
    __table_args__ = (Index("ix_threads_created_at", "created_at"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    body: Mapped[str] = mapped_column(Text, nullable=False)
    user_id: Mapped[str] = mapped_column(Text, nullable=False)
    created_at: Mapped[dt.datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    replies: Mapped[list["Reply"]] = relationship(
        back_populates="thread",
        order_by="Reply.created_at",
        lazy="raise",
    )

    def __repr__(self) -> str:
        return f"<Thread id={self.id} user_id={self.user_id!r}>"
