from textchan.models.reply import Reply
from textchan.models.thread import Thread

__all__ = [
    "Reply",
    "Thread",
]
