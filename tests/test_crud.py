import pytest
from datetime import timedelta
from sqlalchemy.exc import IntegrityError
from app import models, crud
from factories import make_todo, make_update


def test_create_todo(db_session):
    """Test CRUD create_todo function"""
    todo = crud.create_todo(db_session, make_todo(title="Test Todo", description="Test Description"))

    assert todo.id is not None
    assert todo.title == "Test Todo"
    assert todo.description == "Test Description"
    assert todo.completed is False
    assert todo.priority == "medium"
    assert todo.created_at is not None
    assert todo.updated_at == todo.created_at


def test_create_todo_defaults_priority(db_session):
    """Missing and null priority both fall back to medium"""
    todo = crud.create_todo(db_session, make_todo(priority=None))
    assert todo.priority == "medium"


def test_create_todo_ids_are_unique(db_session):
    ids = {crud.create_todo(db_session, make_todo(title=f"Todo {i}")).id for i in range(5)}
    assert len(ids) == 5


def test_create_todo_invalid_priority_rejected_by_store(db_session):
    """The CHECK constraint rejects unknown priorities"""
    with pytest.raises(IntegrityError):
        crud.create_todo(db_session, make_todo(priority="urgent"))

    # The session is still usable after the rollback
    assert crud.get_todos(db_session) == []


def test_get_todo(db_session):
    """Test CRUD get_todo function"""
    created = crud.create_todo(db_session, make_todo(title="Test Todo", priority="high"))

    retrieved = crud.get_todo(db_session, created.id)

    assert retrieved is not None
    assert retrieved.id == created.id
    assert retrieved.title == "Test Todo"
    assert retrieved.priority == "high"


def test_get_todo_not_found(db_session):
    """Test get_todo with non-existent ID"""
    assert crud.get_todo(db_session, 9999) is None


def test_get_todos_newest_first(db_session):
    """Todos are listed by created_at descending"""
    first = crud.create_todo(db_session, make_todo(title="First"))
    second = crud.create_todo(db_session, make_todo(title="Second"))
    third = crud.create_todo(db_session, make_todo(title="Third"))

    # Spread the timestamps so ordering does not depend on clock resolution
    first.created_at = first.created_at - timedelta(minutes=2)
    second.created_at = second.created_at - timedelta(minutes=1)
    db_session.commit()

    todos = crud.get_todos(db_session)

    assert [t.id for t in todos] == [third.id, second.id, first.id]


def test_get_todos_by_completed(db_session):
    """Filtering splits todos by their completed flag"""
    done = crud.create_todo(db_session, make_todo(title="Done"))
    crud.update_todo(db_session, done.id, make_update(completed=True))
    crud.create_todo(db_session, make_todo(title="Open 1"))
    crud.create_todo(db_session, make_todo(title="Open 2"))

    completed = crud.get_todos_by_completed(db_session, completed=True)
    pending = crud.get_todos_by_completed(db_session, completed=False)

    assert [t.title for t in completed] == ["Done"]
    assert sorted(t.title for t in pending) == ["Open 1", "Open 2"]
    assert all(t.completed is False for t in pending)


def test_update_todo(db_session):
    """Test CRUD update_todo function"""
    created = crud.create_todo(db_session, make_todo(title="Original", description="Original Desc"))

    updated = crud.update_todo(db_session, created.id, make_update(title="Updated", completed=True))

    assert updated.title == "Updated"
    assert updated.completed is True
    assert updated.description == "Original Desc"  # Unchanged
    assert updated.priority == "medium"  # Unchanged


def test_update_todo_partial_advances_updated_at(db_session):
    """Test partial update of todo"""
    created = crud.create_todo(db_session, make_todo(title="Original", description="Desc", priority="low"))
    created_at = created.created_at
    previous_updated_at = created.updated_at

    updated = crud.update_todo(db_session, created.id, make_update(completed=True))

    assert updated.title == "Original"
    assert updated.description == "Desc"
    assert updated.priority == "low"
    assert updated.completed is True
    assert updated.created_at == created_at
    assert updated.updated_at > previous_updated_at


def test_update_todo_null_keeps_value(db_session):
    """An explicit null is treated like an absent field"""
    created = crud.create_todo(db_session, make_todo(title="Keep me", description="Keep this too"))

    updated = crud.update_todo(
        db_session, created.id, make_update(description=None, priority=None, completed=None)
    )

    assert updated.description == "Keep this too"
    assert updated.priority == "medium"
    assert updated.completed is False


def test_update_todo_invalid_priority(db_session):
    created = crud.create_todo(db_session, make_todo())

    with pytest.raises(IntegrityError):
        crud.update_todo(db_session, created.id, make_update(priority="urgent"))

    assert crud.get_todo(db_session, created.id).priority == "medium"


def test_update_todo_not_found(db_session):
    """Test update_todo with non-existent ID"""
    assert crud.update_todo(db_session, 9999, make_update(title="Updated")) is None


def test_delete_todo(db_session):
    """Test CRUD delete_todo function"""
    created = crud.create_todo(db_session, make_todo(title="To Delete"))

    deleted = crud.delete_todo(db_session, created.id)

    assert deleted is not None
    assert deleted.id == created.id
    assert deleted.title == "To Delete"

    # Verify it's deleted
    assert crud.get_todo(db_session, created.id) is None


def test_delete_todo_not_found(db_session):
    """Test delete_todo with non-existent ID"""
    assert crud.delete_todo(db_session, 9999) is None


class TestConcurrentUpdates:
    """Update is check-then-write: two requests for the same id can both
    pass the existence check. Only supplied columns are written, so the
    outcome is last-writer-wins per field."""

    def test_interleaved_updates_both_succeed(self, database):
        setup = database.session()
        todo_id = crud.create_todo(setup, make_todo(title="Shared", priority="low")).id
        setup.close()

        first = database.session()
        second = database.session()
        try:
            # Both requests see the record before either writes
            seen_by_first = crud.get_todo(first, todo_id)
            seen_by_second = crud.get_todo(second, todo_id)
            assert seen_by_first is not None and seen_by_second is not None

            crud.apply_todo_update(second, seen_by_second, make_update(completed=True, priority="high").supplied_changes())
            crud.apply_todo_update(first, seen_by_first, make_update(title="Renamed", priority="medium").supplied_changes())
        finally:
            first.close()
            second.close()

        check = database.session()
        try:
            final = crud.get_todo(check, todo_id)
            assert final.title == "Renamed"
            assert final.completed is True  # Not overwritten by the first request
            assert final.priority == "medium"  # Both wrote it, the later write wins
        finally:
            check.close()

    def test_update_after_concurrent_delete_finds_nothing(self, database):
        setup = database.session()
        todo_id = crud.create_todo(setup, make_todo()).id
        setup.close()

        session = database.session()
        try:
            assert crud.delete_todo(session, todo_id) is not None
            assert crud.update_todo(session, todo_id, make_update(title="Too late")) is None
        finally:
            session.close()


def test_repr(db_session):
    todo = crud.create_todo(db_session, make_todo(title="Repr"))
    assert "Repr" in repr(todo)
    assert isinstance(todo, models.Todo)
