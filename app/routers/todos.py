from typing import Optional

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session
from sqlalchemy.exc import SQLAlchemyError

from app import crud, schemas
from app.database import get_db
from app.exceptions import StoreError, TodoNotFoundError, TodoValidationError
from app.logger import logger

ERROR_RESPONSES = {
    status.HTTP_404_NOT_FOUND: {"model": schemas.ErrorEnvelope, "description": "Todo not found"},
    status.HTTP_500_INTERNAL_SERVER_ERROR: {"model": schemas.ErrorEnvelope, "description": "Store failure"},
}

router = APIRouter(prefix="/todos", tags=["Todos"])

# Store failures are reported as 500 with the underlying error text.
# A non-numeric or out of range id is one of them: it never reaches a valid query.
STORE_FAILURES = (SQLAlchemyError, ValueError)

# Range of the INTEGER id column
ID_MIN = -2**31
ID_MAX = 2**31 - 1


def parse_todo_id(todo_id: str) -> int:
    try:
        value = int(todo_id)
    except ValueError:
        raise ValueError(f'invalid input syntax for type integer: "{todo_id}"')
    if not ID_MIN <= value <= ID_MAX:
        raise ValueError(f'value "{todo_id}" is out of range for type integer')
    return value


def _store_error(message: str, exc: Exception) -> StoreError:
    logger.error(f"{message}: {str(exc)}")
    return StoreError(message, exc)


@router.get(
    "",
    response_model=schemas.TodoListEnvelope,
    responses={500: ERROR_RESPONSES[500]},
)
def read_todos(db: Session = Depends(get_db)):
    """Get all todos, newest first"""
    try:
        todos = crud.get_todos(db)
    except STORE_FAILURES as e:
        raise _store_error("Error fetching todos", e)
    return schemas.TodoListEnvelope(
        data=[schemas.Todo.model_validate(t) for t in todos],
        count=len(todos),
    )


# Must stay above /{todo_id} so "filter" is never read as an id
@router.get(
    "/filter/{status}",
    response_model=schemas.TodoFilterEnvelope,
    responses={500: ERROR_RESPONSES[500]},
)
def read_todos_by_status(status: str, db: Session = Depends(get_db)):
    """Filter todos by status: "completed", anything else means pending"""
    completed = status == "completed"
    try:
        todos = crud.get_todos_by_completed(db, completed=completed)
    except STORE_FAILURES as e:
        raise _store_error("Error filtering todos", e)
    return schemas.TodoFilterEnvelope(
        data=[schemas.Todo.model_validate(t) for t in todos],
        count=len(todos),
        status=status,
    )


@router.get("/{todo_id}", response_model=schemas.TodoEnvelope, responses=ERROR_RESPONSES)
def read_todo(todo_id: str, db: Session = Depends(get_db)):
    """Get a specific todo by ID"""
    try:
        db_todo = crud.get_todo(db, todo_id=parse_todo_id(todo_id))
    except STORE_FAILURES as e:
        raise _store_error("Error fetching todo", e)
    if db_todo is None:
        raise TodoNotFoundError()
    return schemas.TodoEnvelope(data=schemas.Todo.model_validate(db_todo))


@router.post(
    "",
    response_model=schemas.TodoMessageEnvelope,
    status_code=status.HTTP_201_CREATED,
    responses={
        400: {"model": schemas.ErrorEnvelope, "description": "Title is required"},
        500: ERROR_RESPONSES[500],
    },
)
def create_todo(todo: Optional[schemas.TodoCreate] = None, db: Session = Depends(get_db)):
    """Create a new todo"""
    # A request without a body has no title either
    if todo is None or not todo.title:
        raise TodoValidationError("Title is required")
    try:
        db_todo = crud.create_todo(db=db, todo=todo)
    except STORE_FAILURES as e:
        raise _store_error("Error creating todo", e)
    return schemas.TodoMessageEnvelope(
        message="Todo created successfully",
        data=schemas.Todo.model_validate(db_todo),
    )


@router.put("/{todo_id}", response_model=schemas.TodoMessageEnvelope, responses=ERROR_RESPONSES)
def update_todo(
    todo_id: str,
    todo: Optional[schemas.TodoUpdate] = None,
    db: Session = Depends(get_db)
):
    """Update the supplied fields of a todo; a missing body changes nothing"""
    if todo is None:
        todo = schemas.TodoUpdate()
    try:
        db_todo = crud.update_todo(db, todo_id=parse_todo_id(todo_id), todo=todo)
    except STORE_FAILURES as e:
        raise _store_error("Error updating todo", e)
    if db_todo is None:
        raise TodoNotFoundError()
    return schemas.TodoMessageEnvelope(
        message="Todo updated successfully",
        data=schemas.Todo.model_validate(db_todo),
    )


@router.delete("/{todo_id}", response_model=schemas.TodoMessageEnvelope, responses=ERROR_RESPONSES)
def delete_todo(todo_id: str, db: Session = Depends(get_db)):
    """Delete a todo and return its final state"""
    try:
        db_todo = crud.delete_todo(db, todo_id=parse_todo_id(todo_id))
    except STORE_FAILURES as e:
        raise _store_error("Error deleting todo", e)
    if db_todo is None:
        raise TodoNotFoundError()
    return schemas.TodoMessageEnvelope(
        message="Todo deleted successfully",
        data=schemas.Todo.model_validate(db_todo),
    )
