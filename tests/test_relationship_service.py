# tests/test_relationship_service.py
import pytest
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm.exc import StaleDataError

from app.common.errors import (
    AlreadyFriends,
    ConflictRetryExhausted,
    DuplicateRequest,
    InvalidTarget,
    RequestNotFound,
    StoreUnavailable,
    UserNotFound,
)
from app.models.user import User
from app.services.relationship_service import RelationshipService
from app.services.user_store import UserStore


def froms(pending):
    return [p["from"] for p in pending]


class TestSendRequest:

    def test_request_is_stored_on_recipient_only(self, relationships, make_user, stored):
        alice, bob = make_user("Alice"), make_user("Bob")

        relationships.send_request(alice.id, bob.id)

        assert froms(stored(bob.id)[1]) == [alice.id]
        assert stored(bob.id)[1][0]["status"] == "pending"
        assert stored(alice.id) == ([], [])

    def test_cannot_request_yourself(self, relationships, make_user, stored):
        alice = make_user("Alice")
        with pytest.raises(InvalidTarget):
            relationships.send_request(alice.id, alice.id)
        assert stored(alice.id) == ([], [])

    def test_unknown_target_is_invalid(self, relationships, make_user):
        alice = make_user("Alice")
        with pytest.raises(InvalidTarget):
            relationships.send_request(alice.id, 999)

    def test_unknown_sender(self, relationships, make_user):
        bob = make_user("Bob")
        with pytest.raises(UserNotFound):
            relationships.send_request(999, bob.id)

    def test_second_request_is_duplicate(self, relationships, make_user, stored):
        alice, bob = make_user("Alice"), make_user("Bob")
        relationships.send_request(alice.id, bob.id)

        with pytest.raises(DuplicateRequest):
            relationships.send_request(alice.id, bob.id)
        assert froms(stored(bob.id)[1]) == [alice.id]

    def test_request_in_opposite_direction_is_duplicate(self, relationships, make_user, stored):
        alice, bob = make_user("Alice"), make_user("Bob")
        relationships.send_request(alice.id, bob.id)

        with pytest.raises(DuplicateRequest):
            relationships.send_request(bob.id, alice.id)
        assert stored(alice.id)[1] == []

    def test_already_friends(self, relationships, make_user):
        alice, bob = make_user("Alice"), make_user("Bob")
        relationships.send_request(alice.id, bob.id)
        relationships.accept_request(bob.id, alice.id)

        with pytest.raises(AlreadyFriends):
            relationships.send_request(alice.id, bob.id)
        with pytest.raises(AlreadyFriends):
            relationships.send_request(bob.id, alice.id)

    def test_send_cleans_up_recipient_record(self, relationships, make_user, stored):
        alice, bob = make_user("Alice"), make_user("Bob")
        carol = make_user("Carol", pending=[
            {"from": bob.id, "status": "pending"},
            {"from": bob.id, "status": "pending"},
            {"from": 777, "status": "pending"},
            {"status": "pending"},
        ])

        relationships.send_request(alice.id, carol.id)

        assert froms(stored(carol.id)[1]) == [bob.id, alice.id]

    def test_one_sided_membership_does_not_block_request(self, relationships, make_user, stored):
        bob = make_user("Bob")
        alice = make_user("Alice", friends=[bob.id])

        relationships.send_request(alice.id, bob.id)

        assert stored(alice.id)[0] == []
        assert froms(stored(bob.id)[1]) == [alice.id]


class TestAcceptRequest:

    def test_accept_makes_symmetric_friendship(self, relationships, make_user, stored):
        alice, bob = make_user("Alice"), make_user("Bob")
        relationships.send_request(alice.id, bob.id)

        relationships.accept_request(bob.id, alice.id)

        assert stored(alice.id) == ([bob.id], [])
        assert stored(bob.id) == ([alice.id], [])
        assert relationships.is_friend(alice.id, bob.id)
        assert relationships.is_friend(bob.id, alice.id)

    def test_accept_twice_fails_and_changes_nothing(self, relationships, make_user, stored):
        alice, bob = make_user("Alice"), make_user("Bob")
        relationships.send_request(alice.id, bob.id)
        relationships.accept_request(bob.id, alice.id)
        before = stored(alice.id), stored(bob.id)

        with pytest.raises(RequestNotFound):
            relationships.accept_request(bob.id, alice.id)

        assert (stored(alice.id), stored(bob.id)) == before

    def test_accept_without_request(self, relationships, make_user):
        alice, bob = make_user("Alice"), make_user("Bob")
        with pytest.raises(RequestNotFound):
            relationships.accept_request(bob.id, alice.id)

    def test_sender_cannot_accept_own_request(self, relationships, make_user):
        alice, bob = make_user("Alice"), make_user("Bob")
        relationships.send_request(alice.id, bob.id)
        with pytest.raises(RequestNotFound):
            relationships.accept_request(alice.id, bob.id)

    def test_accept_sweeps_requests_in_both_directions(self, relationships, make_user, stored):
        alice = make_user("Alice")
        bob = make_user("Bob", pending=[{"from": alice.id, "status": "pending"}])
        # stray opposite-direction record left by an older writer
        alice.pending_requests = '[{"from": %d, "status": "pending"}]' % bob.id
        relationships.store.db.commit()

        relationships.accept_request(bob.id, alice.id)

        assert stored(alice.id) == ([bob.id], [])
        assert stored(bob.id) == ([alice.id], [])

    def test_accept_completes_half_applied_accept(self, relationships, make_user, stored):
        # bob's side was written, alice's never was
        alice = make_user("Alice")
        bob = make_user("Bob", friends=[alice.id])

        relationships.accept_request(bob.id, alice.id)

        assert stored(alice.id)[0] == [bob.id]
        assert stored(bob.id)[0] == [alice.id]

    def test_accept_with_friend_and_leftover_request_converges(self, relationships, make_user, stored):
        alice = make_user("Alice")
        bob = make_user("Bob", friends=[alice.id], pending=[{"from": alice.id, "status": "pending"}])

        relationships.accept_request(bob.id, alice.id)

        assert stored(alice.id) == ([bob.id], [])
        assert stored(bob.id)[0] == [alice.id]
        assert relationships.is_friend(alice.id, bob.id)

    def test_accept_does_not_touch_other_requests(self, relationships, make_user, stored):
        alice, bob, carol = make_user("Alice"), make_user("Bob"), make_user("Carol")
        relationships.send_request(alice.id, bob.id)
        relationships.send_request(carol.id, bob.id)

        relationships.accept_request(bob.id, alice.id)

        assert froms(stored(bob.id)[1]) == [carol.id]


class TestRejectRequest:

    def test_reject_removes_request_only(self, relationships, make_user, stored):
        alice, bob = make_user("Alice"), make_user("Bob")
        relationships.send_request(alice.id, bob.id)

        relationships.reject_request(bob.id, alice.id)

        assert stored(bob.id) == ([], [])
        assert stored(alice.id) == ([], [])

    def test_can_request_again_after_rejection(self, relationships, make_user, stored):
        alice, bob = make_user("Alice"), make_user("Bob")
        relationships.send_request(alice.id, bob.id)
        relationships.reject_request(bob.id, alice.id)

        relationships.send_request(alice.id, bob.id)

        assert froms(stored(bob.id)[1]) == [alice.id]

    def test_reject_missing_request(self, relationships, make_user):
        alice, bob = make_user("Alice"), make_user("Bob")
        with pytest.raises(RequestNotFound):
            relationships.reject_request(bob.id, alice.id)


class TestRemoveFriend:

    def test_remove_clears_both_sides(self, relationships, make_user, stored):
        alice, bob = make_user("Alice"), make_user("Bob")
        relationships.send_request(alice.id, bob.id)
        relationships.accept_request(bob.id, alice.id)

        relationships.remove_friend(alice.id, bob.id)

        assert stored(alice.id) == ([], [])
        assert stored(bob.id) == ([], [])
        assert not relationships.is_friend(alice.id, bob.id)

    def test_remove_when_not_friends_is_harmless(self, relationships, make_user, stored):
        alice, bob = make_user("Alice"), make_user("Bob")

        relationships.remove_friend(alice.id, bob.id)
        relationships.remove_friend(alice.id, bob.id)

        assert stored(alice.id) == ([], [])
        assert stored(bob.id) == ([], [])

    def test_remove_tolerates_one_sided_membership(self, relationships, make_user, stored):
        bob = make_user("Bob")
        alice = make_user("Alice", friends=[bob.id])

        relationships.remove_friend(bob.id, alice.id)

        assert stored(alice.id)[0] == []
        assert stored(bob.id)[0] == []

    def test_remove_sweeps_stray_requests(self, relationships, make_user, stored):
        alice = make_user("Alice")
        bob = make_user("Bob", friends=[alice.id], pending=[{"from": alice.id, "status": "pending"}])
        alice.friends = "[%d]" % bob.id
        alice.pending_requests = '[{"from": %d, "status": "pending"}]' % bob.id
        relationships.store.db.commit()

        relationships.remove_friend(alice.id, bob.id)

        assert stored(alice.id) == ([], [])
        assert stored(bob.id) == ([], [])

    def test_remove_unknown_user(self, relationships, make_user):
        alice = make_user("Alice")
        with pytest.raises(UserNotFound):
            relationships.remove_friend(alice.id, 999)
        with pytest.raises(UserNotFound):
            relationships.remove_friend(999, alice.id)


class TestIsFriend:

    def test_one_sided_is_not_friendship(self, relationships, make_user):
        bob = make_user("Bob")
        alice = make_user("Alice", friends=[bob.id])
        assert not relationships.is_friend(alice.id, bob.id)
        assert not relationships.is_friend(bob.id, alice.id)

    def test_unknown_and_self(self, relationships, make_user):
        alice = make_user("Alice")
        assert not relationships.is_friend(alice.id, 999)
        assert not relationships.is_friend(alice.id, alice.id)


class TestConcurrency:

    def test_retries_after_concurrent_update(self, store, session_factory, make_user, stored, monkeypatch):
        alice = make_user("Alice")
        bob = make_user("Bob", pending=[{"from": alice.id, "status": "pending"}])
        service = RelationshipService(store, max_retries=3)

        real_commit = store.commit
        calls = []

        def racing_commit():
            calls.append(1)
            if len(calls) == 1:
                # another request updates bob's row between our read and our write
                other = session_factory()
                row = other.get(User, bob.id)
                row.bio = "updated elsewhere"
                other.commit()
                other.close()
            real_commit()

        monkeypatch.setattr(store, "commit", racing_commit)

        service.accept_request(bob.id, alice.id)

        assert len(calls) == 2
        assert stored(alice.id) == ([bob.id], [])
        assert stored(bob.id) == ([alice.id], [])

    def test_gives_up_after_max_retries(self, store, make_user, stored, monkeypatch):
        alice, bob = make_user("Alice"), make_user("Bob")
        service = RelationshipService(store, max_retries=2)
        calls = []

        def always_stale():
            calls.append(1)
            raise StaleDataError("row changed")

        monkeypatch.setattr(store, "commit", always_stale)

        with pytest.raises(ConflictRetryExhausted):
            service.send_request(alice.id, bob.id)
        assert len(calls) == 2
        assert stored(bob.id) == ([], [])

    def test_store_failure_is_reported_as_unavailable(self, store, make_user, monkeypatch):
        alice, bob = make_user("Alice"), make_user("Bob")
        service = RelationshipService(store)

        def broken_get(user_id):
            raise OperationalError("SELECT", {}, Exception("database is locked"))

        monkeypatch.setattr(store, "get", broken_get)
        monkeypatch.setattr(store, "require", broken_get)

        with pytest.raises(StoreUnavailable):
            service.send_request(alice.id, bob.id)

    def race_once(self, store, session_factory, monkeypatch, action):
        """Run ``action`` in its own session right before our first commit."""
        real_commit = store.commit
        calls = []

        def racing_commit():
            calls.append(1)
            if len(calls) == 1:
                other = session_factory()
                action(RelationshipService(UserStore(other)))
                other.close()
            real_commit()

        monkeypatch.setattr(store, "commit", racing_commit)
        return calls

    def test_crossing_requests_leave_only_the_first_committed(self, store, session_factory, make_user, stored, monkeypatch):
        alice, bob = make_user("Alice"), make_user("Bob")
        service = RelationshipService(store, max_retries=3)
        calls = self.race_once(
            store, session_factory, monkeypatch,
            lambda other: other.send_request(bob.id, alice.id),
        )

        with pytest.raises(DuplicateRequest):
            service.send_request(alice.id, bob.id)

        assert len(calls) == 1
        assert froms(stored(alice.id)[1]) == [bob.id]
        assert stored(bob.id) == ([], [])

    def test_remove_committed_during_accept_wins(self, store, session_factory, make_user, stored, monkeypatch):
        alice = make_user("Alice")
        bob = make_user("Bob", pending=[{"from": alice.id, "status": "pending"}])
        service = RelationshipService(store, max_retries=3)
        calls = self.race_once(
            store, session_factory, monkeypatch,
            lambda other: other.remove_friend(alice.id, bob.id),
        )

        with pytest.raises(RequestNotFound):
            service.accept_request(bob.id, alice.id)

        assert len(calls) == 1
        assert stored(alice.id) == ([], [])
        assert stored(bob.id) == ([], [])

    def test_accept_committed_during_remove_is_undone(self, store, session_factory, make_user, stored, monkeypatch):
        alice = make_user("Alice")
        bob = make_user("Bob", pending=[{"from": alice.id, "status": "pending"}])
        service = RelationshipService(store, max_retries=3)
        calls = self.race_once(
            store, session_factory, monkeypatch,
            lambda other: other.accept_request(bob.id, alice.id),
        )

        service.remove_friend(alice.id, bob.id)

        assert len(calls) == 2
        assert stored(alice.id) == ([], [])
        assert stored(bob.id) == ([], [])
        assert not service.is_friend(alice.id, bob.id)

    def test_explicit_retry_count_is_kept(self, store):
        assert RelationshipService(store, max_retries=1).max_retries == 1
        assert RelationshipService(store, max_retries=0).max_retries == 0
