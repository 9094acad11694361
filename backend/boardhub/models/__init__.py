"""SQLAlchemy models package."""

from boardhub.models.user import Profile
from boardhub.models.workspace import Workspace
from boardhub.models.board import Board, BoardList, BoardMember, Task
from boardhub.models.collaboration import Comment, CommentReaction, Invitation
from boardhub.models.activity import NotificationEvent, TaskActivity

__all__ = [
    "Profile",
    "Workspace",
    # Boards
    "Board",
    "BoardMember",
    "BoardList",
    "Task",
    # Collaboration
    "Invitation",
    "Comment",
    "CommentReaction",
    # Activity
    "TaskActivity",
    "NotificationEvent",
]
