import pytest
from sqlalchemy.exc import OperationalError

from rapport.relations import (
    AlreadyMemberError,
    AlreadyRelatedError,
    DataInvariantViolation,
    InvalidRelationError,
    NotFoundError,
    StorageError,
    ValidationError,
)


def test_add_friend_relation_requires_canonical_key(store, trio):
    ada, bob, _ = trio
    with pytest.raises(InvalidRelationError):
        store.add_friend_relation(bob.id, ada.id, True, False)
    with pytest.raises(InvalidRelationError):
        store.add_friend_relation(ada.id, ada.id, True, False)


def test_add_friend_relation_requires_an_accepting_side(store, trio):
    ada, bob, _ = trio
    with pytest.raises(DataInvariantViolation):
        store.add_friend_relation(ada.id, bob.id, False, False)


def test_duplicate_friend_relation(store, trio):
    ada, bob, _ = trio
    store.add_friend_relation(ada.id, bob.id, True, False)
    with pytest.raises(AlreadyRelatedError):
        store.add_friend_relation(ada.id, bob.id, False, True)


def test_list_friend_relations_only_returns_own_rows(store, trio):
    ada, bob, cy = trio
    store.add_friend_relation(ada.id, bob.id, True, False)
    store.add_friend_relation(bob.id, cy.id, True, True)

    rows = store.list_friend_relations(ada.id)
    assert [(r.lo_user_id, r.hi_user_id) for r in rows] == [(ada.id, bob.id)]
    assert len(store.list_friend_relations(bob.id)) == 2


def test_accept_and_delete_missing_relation(store, trio):
    ada, bob, _ = trio
    with pytest.raises(NotFoundError):
        store.accept_friend_relation(ada.id, bob.id)
    with pytest.raises(NotFoundError):
        store.delete_friend_relation(ada.id, bob.id)


def test_accept_friend_relation_sets_both_flags(store, trio):
    ada, bob, _ = trio
    store.add_friend_relation(ada.id, bob.id, True, False)
    store.accept_friend_relation(ada.id, bob.id)

    assert store.get_friend_relation(ada.id, bob.id).is_accepted


def test_list_users_by_ids(store, trio):
    ada, _, cy = trio
    assert [u.id for u in store.list_users([cy.id, ada.id])] == [ada.id, cy.id]
    assert store.list_users([]) == []


def test_find_user_by_email_ignores_case(store, trio):
    assert store.find_user_by_email("  ADA@example.com ").id == trio[0].id
    assert store.find_user_by_email("nobody@example.com") is None


def test_group_entity_lifecycle(store):
    with pytest.raises(ValidationError):
        store.create_group_entity("")
    group = store.create_group_entity("Hikers")
    other = store.create_group_entity("Readers")

    assert [g.id for g in store.find_groups([other.id, 999, group.id])] == [other.id, group.id]

    store.delete_group_entity(group.id)
    with pytest.raises(NotFoundError):
        store.delete_group_entity(group.id)


def test_membership_rows(store, trio):
    ada, bob, _ = trio
    group = store.create_group_entity("Hikers")
    store.add_membership(ada.id, group.id, accepted=True)
    store.add_membership(bob.id, group.id, accepted=False)

    with pytest.raises(AlreadyMemberError):
        store.add_membership(bob.id, group.id, accepted=True)
    with pytest.raises(NotFoundError):
        store.accept_membership(ada.id, group.id)

    store.accept_membership(bob.id, group.id)
    assert store.get_membership(bob.id, group.id).accepted_invite is True
    assert len(store.list_memberships(group_id=group.id)) == 2

    store.delete_membership(bob.id, group.id)
    with pytest.raises(NotFoundError):
        store.delete_membership(bob.id, group.id)


def test_list_memberships_needs_a_filter(store):
    with pytest.raises(ValueError):
        store.list_memberships()


def test_database_errors_become_storage_errors(store, monkeypatch):
    def broken(*args, **kwargs):
        raise OperationalError("SELECT 1", {}, Exception("connection lost"))

    monkeypatch.setattr(store.session, "query", broken)

    with pytest.raises(StorageError):
        store.list_users()
