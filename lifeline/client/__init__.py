from .conversation_list import ConversationList
from .location import DebouncedPositionTracker
from .report_board import ReportBoard
from .thread import ChatThread, ThreadView

__all__ = [
    "ChatThread",
    "ConversationList",
    "DebouncedPositionTracker",
    "ReportBoard",
    "ThreadView",
]
