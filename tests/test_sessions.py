import pytest
from sqlalchemy.orm import sessionmaker

from orderdrop import crud, models
from orderdrop.sessions import DatabaseSessionStore, InMemorySessionStore


@pytest.fixture
def db_store(db_session):
    return DatabaseSessionStore(sessionmaker(bind=db_session.get_bind(), future=True))


@pytest.fixture
def user(db_session):
    return crud.create_user(db_session, "sess-user", "hash")


def test_database_store_lifecycle(db_store, user):
    sid = db_store.create(user.id, 60)
    assert db_store.get_user_id(sid) == user.id
    db_store.delete(sid)
    assert db_store.get_user_id(sid) is None
    assert db_store.get_user_id("unknown") is None


def test_database_store_expiry(db_store, user, db_session):
    sid = db_store.create(user.id, -1)
    assert db_store.get_user_id(sid) is None
    assert db_session.get(models.SessionRecord, sid) is None

    db_store.create(user.id, -1)
    db_store.create(user.id, 60)
    assert db_store.purge_expired() == 1


def test_in_memory_store():
    store = InMemorySessionStore()
    sid = store.create(3, 60)
    assert store.get_user_id(sid) == 3
    expired = store.create(4, -1)
    assert store.get_user_id(expired) is None
    store.delete(sid)
    store.delete(sid)
    assert len(store) == 0
