import pytest

from rapport.relations import (
    AlreadyRelatedError,
    FriendEngine,
    InvalidRelationError,
    NotFoundError,
)


def _engine(store, user):
    engine = FriendEngine(store, user.id)
    engine.reconcile()
    return engine


def test_three_user_walkthrough(store, trio):
    ada, bob, cy = trio
    ada_engine = _engine(store, ada)

    ada_engine.send_request(bob.id)
    assert ada_engine.views.ids("outgoing") == [bob.id]
    assert ada_engine.views.ids("unrelated") == [cy.id]

    bob_engine = _engine(store, bob)
    assert bob_engine.views.ids("incoming") == [ada.id]

    bob_engine.accept_request(ada.id)
    assert bob_engine.views.ids("friends") == [ada.id]
    assert ada_engine.reconcile().ids("friends") == [bob.id]

    cy_engine = _engine(store, cy)
    cy_engine.send_request(ada.id)
    assert ada_engine.reconcile().ids("incoming") == [cy.id]

    ada_engine.decline_request(cy.id)
    assert ada_engine.views.ids("unrelated") == [cy.id]
    assert cy_engine.reconcile().ids("unrelated") == [ada.id, bob.id]


def test_duplicate_request_is_rejected_in_either_direction(store, trio):
    ada, bob, _ = trio
    _engine(store, ada).send_request(bob.id)

    with pytest.raises(AlreadyRelatedError):
        _engine(store, ada).send_request(bob.id)
    with pytest.raises(AlreadyRelatedError):
        _engine(store, bob).send_request(ada.id)


def test_failed_request_leaves_views_alone(store, trio):
    ada, bob, _ = trio
    _engine(store, bob).send_request(ada.id)
    engine = _engine(store, ada)
    before = engine.views.to_dict()

    with pytest.raises(AlreadyRelatedError):
        engine.send_request(bob.id)

    assert engine.views.to_dict() == before


def test_self_request_is_invalid(store, trio):
    ada = trio[0]
    with pytest.raises(InvalidRelationError):
        _engine(store, ada).send_request(ada.id)


def test_accept_without_request_raises_not_found(store, trio):
    ada, bob, _ = trio
    with pytest.raises(NotFoundError):
        _engine(store, ada).accept_request(bob.id)


def test_sender_cannot_accept_own_request(store, trio):
    ada, bob, _ = trio
    engine = _engine(store, ada)
    engine.send_request(bob.id)

    with pytest.raises(NotFoundError):
        engine.accept_request(bob.id)
    assert engine.reconcile().ids("outgoing") == [bob.id]


def test_accepting_twice_reports_existing_friendship(store, trio):
    ada, bob, _ = trio
    _engine(store, ada).send_request(bob.id)
    engine = _engine(store, bob)
    engine.accept_request(ada.id)

    with pytest.raises(AlreadyRelatedError):
        engine.accept_request(ada.id)


def test_remove_friend_makes_both_sides_unrelated(store, trio):
    ada, bob, _ = trio
    _engine(store, ada).send_request(bob.id)
    _engine(store, bob).accept_request(ada.id)

    engine = _engine(store, ada)
    engine.remove_friend(bob.id)

    assert bob.id in engine.views.ids("unrelated")
    assert ada.id in _engine(store, bob).views.ids("unrelated")


def test_retract_request(store, trio):
    ada, bob, _ = trio
    engine = _engine(store, ada)
    engine.send_request(bob.id)
    engine.retract_request(bob.id)

    assert engine.views.ids("outgoing") == []
    assert _engine(store, bob).views.ids("incoming") == []


def test_delete_missing_relation_raises_not_found(store, trio):
    ada, bob, _ = trio
    with pytest.raises(NotFoundError):
        _engine(store, ada).remove_friend(bob.id)


def test_write_for_user_unknown_to_view_still_succeeds(store, trio, make_user):
    ada = trio[0]
    engine = _engine(store, ada)
    late = make_user("Dee")

    engine.send_request(late.id)

    assert engine.views.locate(late.id) is None
    assert engine.reconcile().ids("outgoing") == [late.id]


def test_request_to_unknown_user_stores_nothing(store, trio, make_user):
    ada = trio[0]
    engine = _engine(store, ada)

    with pytest.raises(NotFoundError):
        engine.send_request(4)

    assert store.list_friend_relations(ada.id) == []
    dee = make_user("Dee")
    assert dee.id == 4
    assert _engine(store, dee).views.ids("incoming") == []
