import pytest
from sqlalchemy import create_engine

from docsearch.core.errors import PermissionStoreError
from docsearch.core.types import PermissionLevel, SearchResult
from docsearch.permissions.filter import PermissionFilter
from docsearch.permissions.store import SqlPermissionStore


@pytest.fixture
def store(tmp_path):
    s = SqlPermissionStore(f"sqlite:///{tmp_path / 'perm.db'}")
    s.create_schema()
    return s


def _levels(store, user_id):
    return {g.document_path: g.level for g in store.find_grants_for_user(user_id)}


def test_grant_and_find(store):
    g = store.grant_read(1, "docs > sub", collection_key="DEV", granted_by=99)
    assert g.level is PermissionLevel.READ

    [found] = store.find_grants_for_user(1)
    assert found.document_path == "docs > sub"
    assert found.collection_key == "DEV"
    assert found.granted_by == 99
    assert found.granted_at is not None
    assert store.find_grants_for_user(2) == []


def test_grant_read_is_idempotent(store):
    first = store.grant_read(1, "docs")
    again = store.grant_read(1, "docs")
    assert again.document_path == first.document_path
    assert len(store.find_grants_for_user(1)) == 1


def test_parent_read_removes_child_reads(store):
    store.grant_read(1, "docs > a")
    store.grant_read(1, "docs > b > c")
    store.grant_read(1, "other")
    store.grant_deny(1, "docs > secret")

    store.grant_read(1, "docs")

    assert _levels(store, 1) == {
        "docs": PermissionLevel.READ,
        "other": PermissionLevel.READ,
        "docs > secret": PermissionLevel.DENY,
    }


def test_deny_replaces_read_and_keeps_child_exceptions(store):
    store.grant_read(1, "docs > sub")
    store.grant_read(1, "docs")  # removes "docs > sub"
    store.grant_deny(1, "docs")
    store.grant_read(1, "docs > sub")

    assert _levels(store, 1) == {"docs": PermissionLevel.DENY, "docs > sub": PermissionLevel.READ}


def test_read_replaces_deny_on_same_path(store):
    store.grant_deny(1, "docs")
    store.grant_read(1, "docs")
    assert store.find_grant(1, "docs").level is PermissionLevel.READ


def test_revoke(store):
    store.grant_read(1, "docs")
    assert store.revoke(1, "docs") is True
    assert store.revoke(1, "docs") is False
    assert store.find_grant(1, "docs") is None


def test_store_backed_filter_most_specific_wins(store):
    store.grant_deny(5, "docs")
    store.grant_read(5, "docs > sub")

    ranking = [
        SearchResult(id="p", title="p", content="", path="docs > sub > page", score=0.2),
        SearchResult(id="q", title="q", content="", path="docs > other", score=0.1),
    ]
    assert [r.id for r in PermissionFilter(store).filter_for_user(ranking, 5)] == ["p"]


def test_lookup_failure_is_wrapped(tmp_path):
    # no schema: the table does not exist
    s = SqlPermissionStore(engine=create_engine(f"sqlite:///{tmp_path / 'empty.db'}"))
    with pytest.raises(PermissionStoreError):
        s.find_grants_for_user(1)


def test_requires_dsn_or_engine():
    with pytest.raises(ValueError):
        SqlPermissionStore()
