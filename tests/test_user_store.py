import json
import threading

import pytest

from tutor.database.models import SUB_ACTIVE, SUB_PENDING
from tutor.database.store import UserStore
from tutor.exceptions import AlreadyExists, InvalidCredentials, NotFound


def test_create_indexes_user_by_id_and_email(user_store):
    user = user_store.create("ana@example.com", "ana", "secret-pass")

    assert user.id
    assert user.password_hash != "secret-pass"
    assert user.subscription_status == SUB_PENDING
    assert user_store.get_by_id(user.id).email == "ana@example.com"
    assert user_store.get_by_email("ana@example.com").id == user.id


def test_duplicate_email_fails_and_leaves_store_unchanged(user_store):
    first = user_store.create("ana@example.com", "ana", "secret-pass")

    with pytest.raises(AlreadyExists):
        user_store.create("ana@example.com", "someone-else", "other-pass")

    users = user_store.list_all()
    assert [u.id for u in users] == [first.id]
    assert user_store.authenticate("ana@example.com", "secret-pass").username == "ana"


def test_email_lookup_is_case_sensitive(user_store):
    user_store.create("Ana@example.com", "ana", "secret-pass")
    other = user_store.create("ana@example.com", "ana2", "secret-pass")

    assert user_store.get_by_email("ana@example.com").id == other.id


def test_authenticate_with_correct_password(user_store):
    created = user_store.create("ana@example.com", "ana", "secret-pass")
    assert user_store.authenticate("ana@example.com", "secret-pass").id == created.id


def test_wrong_password_and_unknown_email_fail_identically(user_store):
    user_store.create("ana@example.com", "ana", "secret-pass")

    with pytest.raises(InvalidCredentials) as wrong_password:
        user_store.authenticate("ana@example.com", "nope-nope")
    with pytest.raises(InvalidCredentials) as unknown_email:
        user_store.authenticate("ghost@example.com", "secret-pass")

    assert str(wrong_password.value) == str(unknown_email.value)


def test_get_by_id_unknown(user_store):
    with pytest.raises(NotFound):
        user_store.get_by_id("missing")


def test_returned_users_are_copies(user_store):
    user = user_store.create("ana@example.com", "ana", "secret-pass")
    user.username = "mallory"
    user.is_admin = True

    stored = user_store.get_by_id(user.id)
    assert stored.username == "ana"
    assert not stored.is_admin


def test_admin_email_marks_admin(settings, user_store):
    admin = user_store.create(settings.admin_email, "boss", "secret-pass")
    student = user_store.create("ana@example.com", "ana", "secret-pass")

    assert admin.is_admin
    assert not student.is_admin


def test_persisted_file_rebuilds_identical_store(settings, user_store):
    ana = user_store.create("ana@example.com", "ana", "secret-pass")
    bo = user_store.create("bo@example.com", "bo", "another-pass")
    user_store.update_subscription(bo.id, customer_id="cus_1", status=SUB_ACTIVE)

    restarted = UserStore(settings.users_file)

    assert restarted.get_by_id(ana.id) == user_store.get_by_id(ana.id)
    assert restarted.get_by_id(bo.id).stripe_customer_id == "cus_1"
    assert restarted.authenticate("ana@example.com", "secret-pass").id == ana.id
    assert restarted.authenticate("bo@example.com", "another-pass").id == bo.id
    with pytest.raises(InvalidCredentials):
        restarted.authenticate("ana@example.com", "another-pass")


def test_file_is_a_whole_snapshot(settings, user_store):
    user_store.create("ana@example.com", "ana", "secret-pass")
    user_store.create("bo@example.com", "bo", "another-pass")

    with open(settings.users_file) as fh:
        records = json.load(fh)

    assert sorted(r["email"] for r in records) == ["ana@example.com", "bo@example.com"]
    assert all("password_hash" in r for r in records)


def test_missing_file_starts_empty(tmp_path):
    store = UserStore(str(tmp_path / "nowhere" / "users.json"))
    assert store.list_all() == []


def test_corrupt_file_starts_empty(tmp_path):
    path = tmp_path / "users.json"
    path.write_text("{not json")

    store = UserStore(str(path))

    assert store.list_all() == []
    store.create("ana@example.com", "ana", "secret-pass")
    assert len(json.loads(path.read_text())) == 1


def test_write_failure_is_swallowed(tmp_path):
    blocker = tmp_path / "blocked"
    blocker.write_text("a file where a directory should be")
    store = UserStore(str(blocker / "users.json"))

    user = store.create("ana@example.com", "ana", "secret-pass")

    assert store.get_by_id(user.id).email == "ana@example.com"


def test_delete_removes_both_indices(user_store):
    user = user_store.create("ana@example.com", "ana", "secret-pass")
    user_store.delete(user.id)

    with pytest.raises(NotFound):
        user_store.get_by_id(user.id)
    with pytest.raises(NotFound):
        user_store.get_by_email("ana@example.com")
    # The email is free again
    user_store.create("ana@example.com", "ana", "secret-pass")


def test_update_subscription_keeps_unset_fields(user_store):
    user = user_store.create("ana@example.com", "ana", "secret-pass")
    user_store.update_subscription(user.id, customer_id="cus_1")
    updated = user_store.update_subscription(user.id, subscription_id="sub_1", status=SUB_ACTIVE)

    assert updated.stripe_customer_id == "cus_1"
    assert updated.stripe_subscription_id == "sub_1"
    assert updated.subscription_status == SUB_ACTIVE
    assert user_store.get_by_stripe_customer_id("cus_1").id == user.id


def test_concurrent_creates_with_same_email(user_store):
    results = []
    barrier = threading.Barrier(2)

    def attempt(name):
        barrier.wait()
        try:
            user_store.create("race@example.com", name, "secret-pass")
            results.append("ok")
        except AlreadyExists:
            results.append("exists")

    threads = [threading.Thread(target=attempt, args=(n,)) for n in ("one", "two")]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert sorted(results) == ["exists", "ok"]
    assert len(user_store.list_all()) == 1
