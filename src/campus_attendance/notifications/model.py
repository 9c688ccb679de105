from __future__ import annotations

from dataclasses import dataclass

from ..core.enums import NotificationPriority


@dataclass(frozen=True)
class NewNotification:
    user_id: int
    title: str
    message: str
    priority: NotificationPriority = NotificationPriority.NORMAL
    type: str = "ATTENDANCE"
