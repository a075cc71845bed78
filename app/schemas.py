from pydantic import BaseModel, ConfigDict, Field, field_validator
from datetime import datetime
from typing import Any, Optional


class TodoCreate(BaseModel):
    """Schema for creating a todo.

    ``title`` is optional here so that a missing title is reported by the
    handler as a 400 instead of a framework validation error. ``priority``
    is a plain string: its allowed values are enforced by the database.
    """
    title: Optional[str] = Field(None, max_length=255, description="Todo title (required)")
    description: Optional[str] = Field(None, description="Todo description")
    priority: Optional[str] = Field(None, description="low, medium or high (default medium)")

    @field_validator('title')
    @classmethod
    def title_strip_whitespace(cls, v: Optional[str]) -> Optional[str]:
        """Strip whitespace from title"""
        return v.strip() if v is not None else v


class TodoUpdate(BaseModel):
    """Schema for updating a todo - all fields optional"""
    title: Optional[str] = Field(None, min_length=1, max_length=255)
    description: Optional[str] = None
    completed: Optional[bool] = None
    priority: Optional[str] = None

    @field_validator('title')
    @classmethod
    def title_must_not_be_empty(cls, v: Optional[str]) -> Optional[str]:
        """Validate title is not just whitespace"""
        if v is not None and not v.strip():
            raise ValueError('Title cannot be empty or just whitespace')
        return v.strip() if v else v

    def supplied_changes(self) -> dict[str, Any]:
        """Fields the client actually sent, with a non-null value.

        An explicit null keeps the stored value, same as an absent field.
        """
        return {
            key: value
            for key, value in self.model_dump(exclude_unset=True).items()
            if value is not None
        }


class Todo(BaseModel):
    """Schema for returning a todo"""
    id: int
    title: str
    description: Optional[str] = None
    completed: bool
    priority: str
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


class TodoEnvelope(BaseModel):
    success: bool = True
    data: Todo


class TodoMessageEnvelope(TodoEnvelope):
    message: str


class TodoListEnvelope(BaseModel):
    success: bool = True
    data: list[Todo]
    count: int


class TodoFilterEnvelope(TodoListEnvelope):
    status: str


class ErrorEnvelope(BaseModel):
    """Body of every failed response"""
    success: bool = False
    message: str
    error: Optional[str] = None
