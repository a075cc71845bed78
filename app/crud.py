from datetime import timedelta
from sqlalchemy.orm import Session
from sqlalchemy.exc import SQLAlchemyError
from app import models, schemas
from app.logger import logger
from typing import Any, Optional


def _newest_first(query):
    return query.order_by(models.Todo.created_at.desc(), models.Todo.id.desc())


def get_todos(db: Session) -> list[models.Todo]:
    """Get all todos, newest first"""
    try:
        return _newest_first(db.query(models.Todo)).all()
    except SQLAlchemyError as e:
        logger.error(f"Error fetching todos: {str(e)}")
        raise


def get_todos_by_completed(db: Session, completed: bool) -> list[models.Todo]:
    """Get todos with the given completion status, newest first"""
    try:
        query = db.query(models.Todo).filter(models.Todo.completed == completed)
        return _newest_first(query).all()
    except SQLAlchemyError as e:
        logger.error(f"Error filtering todos (completed={completed}): {str(e)}")
        raise


def get_todo(db: Session, todo_id: int) -> Optional[models.Todo]:
    """Get a single todo by ID"""
    try:
        return db.query(models.Todo).filter(models.Todo.id == todo_id).first()
    except SQLAlchemyError as e:
        logger.error(f"Error fetching todo {todo_id}: {str(e)}")
        raise


def create_todo(db: Session, todo: schemas.TodoCreate) -> models.Todo:
    """Insert a new todo; priority falls back to medium"""
    try:
        now = models.utcnow()
        db_todo = models.Todo(
            title=todo.title,
            description=todo.description,
            priority=todo.priority or models.Priority.MEDIUM.value,
            completed=False,
            created_at=now,
            updated_at=now,
        )
        db.add(db_todo)
        db.commit()
        db.refresh(db_todo)
        logger.info(f"Created todo with ID: {db_todo.id}")
        return db_todo
    except SQLAlchemyError as e:
        db.rollback()
        logger.error(f"Error creating todo: {str(e)}")
        raise


def _touch(db_todo: models.Todo):
    """Refresh updated_at, always moving it forward"""
    now = models.utcnow()
    if db_todo.updated_at is not None and now <= db_todo.updated_at:
        now = db_todo.updated_at + timedelta(microseconds=1)
    db_todo.updated_at = now


def apply_todo_update(db: Session, db_todo: models.Todo, changes: dict[str, Any]) -> models.Todo:
    """Merge changes into an already fetched todo and commit.

    Only the columns present in ``changes`` (plus updated_at) are written,
    so concurrent updates of different fields do not overwrite each other.
    """
    try:
        for key, value in changes.items():
            setattr(db_todo, key, value)
        _touch(db_todo)
        db.commit()
        db.refresh(db_todo)
        logger.info(f"Updated todo with ID: {db_todo.id} ({', '.join(sorted(changes)) or 'no fields'})")
        return db_todo
    except SQLAlchemyError as e:
        db.rollback()
        logger.error(f"Error updating todo {db_todo.id}: {str(e)}")
        raise


def update_todo(
    db: Session,
    todo_id: int,
    todo: schemas.TodoUpdate
) -> Optional[models.Todo]:
    """Update the supplied fields of an existing todo.

    Check-then-write: the existence check and the update are separate
    statements, not one atomic operation.
    """
    db_todo = get_todo(db, todo_id)
    if db_todo is None:
        return None
    return apply_todo_update(db, db_todo, todo.supplied_changes())


def delete_todo(db: Session, todo_id: int) -> Optional[models.Todo]:
    """Delete a todo, returning its final state"""
    try:
        db_todo = get_todo(db, todo_id)
        if db_todo:
            # The deleted instance keeps its loaded attributes after commit
            db.delete(db_todo)
            db.commit()
            logger.info(f"Deleted todo with ID: {todo_id}")
        return db_todo
    except SQLAlchemyError as e:
        db.rollback()
        logger.error(f"Error deleting todo {todo_id}: {str(e)}")
        raise
