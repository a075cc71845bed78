from sqlalchemy import Column, Integer, String, Text, Boolean, DateTime, CheckConstraint
from datetime import datetime, timezone
from enum import Enum

from app.database import Base


class Priority(str, Enum):
    """Allowed priority values, enforced by the table's CHECK constraint"""
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


PRIORITY_VALUES = tuple(p.value for p in Priority)


def utcnow() -> datetime:
    """Naive UTC timestamp, as stored in the todos table"""
    return datetime.now(timezone.utc).replace(tzinfo=None)


class Todo(Base):
    """Todo model for database"""
    __tablename__ = "todos"
    __table_args__ = (
        CheckConstraint(
            "priority IN ({})".format(", ".join(f"'{p}'" for p in PRIORITY_VALUES)),
            name="ck_todos_priority",
        ),
    )

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    title = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    completed = Column(Boolean, default=False, nullable=False, index=True)
    priority = Column(String(10), default=Priority.MEDIUM.value, nullable=False)
    created_at = Column(DateTime, default=utcnow, nullable=False, index=True)
    updated_at = Column(DateTime, default=utcnow, nullable=False)

    def __repr__(self):
        return f"<Todo(id={self.id}, title='{self.title}', completed={self.completed}, priority='{self.priority}')>"
