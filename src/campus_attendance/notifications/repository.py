from __future__ import annotations

from typing import Protocol

from ..database.connection import DatabaseConnection
from ..database.mysql_base import db_cursor
from .model import NewNotification


class NotificationRepository(Protocol):
    def create(self, notification: NewNotification) -> int:
        raise NotImplementedError


class MySQLNotificationRepository(NotificationRepository):
    def __init__(self, conn_factory: DatabaseConnection):
        self._conn_factory = conn_factory

    def create(self, notification: NewNotification) -> int:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                INSERT INTO notifications(user_id, title, message, priority, type)
                VALUES(%s,%s,%s,%s,%s)
                """,
                (
                    int(notification.user_id),
                    notification.title,
                    notification.message,
                    notification.priority.value,
                    notification.type,
                ),
            )
            return int(cur.lastrowid)
