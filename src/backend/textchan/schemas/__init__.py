from textchan.schemas.reply import ReplyRead, ThreadRepliesResponse
from textchan.schemas.status import StatusResponse, StorageStatusRead
from textchan.schemas.thread import PostCreate, ThreadRead

__all__ = [
    "PostCreate",
    "ReplyRead",
    "StatusResponse",
    "StorageStatusRead",
    "ThreadRead",
    "ThreadRepliesResponse",
]
