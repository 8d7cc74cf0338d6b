from __future__ import annotations

import datetime as dt
from typing import TYPE_CHECKING

from sqlalchemy import DateTime, ForeignKey, Index, Integer, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from textchan.db.base import Base

if TYPE_CHECKING:
    from textchan.models.thread import Thread


class Reply(Base):
    __tablename__ = "replies"
    __table_args__ = (Index("ix_replies_thread_id_created_at", "thread_id", "created_at"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    thread_id: Mapped[int] = mapped_column(ForeignKey("threads.id"), nullable=False)
    body: Mapped[str] = mapped_column(Text, nullable=False)
    user_id: Mapped[str] = mapped_column(Text, nullable=False)
    created_at: Mapped[dt.datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    thread: Mapped["Thread"] = relationship(back_populates="replies")

    def __repr__(self) -> str:
        return f"<Reply id={self.id} thread_id={self.thread_id}>"
