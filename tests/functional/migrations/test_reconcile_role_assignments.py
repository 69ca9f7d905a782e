# tests/functional/migrations/test_reconcile_role_assignments.py
import uuid
from unittest.mock import MagicMock

from adminhub.db.crud import USER_COLLECTION, ROLE_COLLECTION
from adminhub.migrations.reconcile_role_assignments import build_assignments, reconcile_role_assignments


def test_build_assignments_groups_by_role():
    r1, r2 = uuid.uuid4(), uuid.uuid4()
    u1, u2, u3, u4 = (uuid.uuid4() for _ in range(4))
    users = [
        {"_id": u1, "role": r1},
        {"_id": u2, "role": r2},
        {"_id": u3, "role": r1},
        {"_id": u4},
    ]
    assert build_assignments(users) == {r1: [u1, u3], r2: [u2]}


def make_db(users, roles):
    users_collection = MagicMock()
    users_collection.find.return_value = users
    users_collection.update_many.return_value = MagicMock(modified_count=1)
    roles_collection = MagicMock()
    roles_collection.find.return_value = roles
    db = {USER_COLLECTION: users_collection, ROLE_COLLECTION: roles_collection}
    return db, users_collection, roles_collection


def test_reconcile_rewrites_drifted_roles():
    r1, r2 = uuid.uuid4(), uuid.uuid4()
    u1, u2 = uuid.uuid4(), uuid.uuid4()
    db, users_collection, roles_collection = make_db(
        users=[{"_id": u1, "role": r1}, {"_id": u2, "role": r2}],
        roles=[
            {"_id": r1, "assigned_users": [u1, u2]},
            {"_id": r2, "assigned_users": [u2]},
        ],
    )

    summary = reconcile_role_assignments(db)

    assert summary == {"roles_updated": 1, "users_cleared": 0}
    roles_collection.update_one.assert_called_once()
    query, update = roles_collection.update_one.call_args.args
    assert query == {"_id": r1}
    assert update["$set"]["assigned_users"] == [u1]
    users_collection.update_many.assert_not_called()


def test_reconcile_clears_references_to_inactive_roles():
    live, gone = uuid.uuid4(), uuid.uuid4()
    u1, u2 = uuid.uuid4(), uuid.uuid4()
    db, users_collection, roles_collection = make_db(
        users=[{"_id": u1, "role": live}, {"_id": u2, "role": gone}],
        roles=[{"_id": live, "assigned_users": [u1]}],
    )

    summary = reconcile_role_assignments(db)

    assert summary == {"roles_updated": 0, "users_cleared": 1}
    roles_collection.update_one.assert_not_called()
    query, update = users_collection.update_many.call_args.args
    assert query == {"_id": {"$in": [u2]}}
    assert update["$unset"] == {"role": ""}


def test_reconcile_drops_soft_deleted_users():
    role_id = uuid.uuid4()
    active_user, deleted_user = uuid.uuid4(), uuid.uuid4()
    stored_users = [
        {"_id": active_user, "role": role_id, "status": "active"},
        {"_id": deleted_user, "role": role_id, "status": "deleted"},
    ]
    db, users_collection, roles_collection = make_db(
        users=[],
        roles=[{"_id": role_id, "assigned_users": [active_user, deleted_user]}],
    )

    def find_users(query, projection):
        excluded = query["status"]["$ne"]
        return [user for user in stored_users if user.get("status") != excluded]
    users_collection.find.side_effect = find_users

    summary = reconcile_role_assignments(db)

    assert summary == {"roles_updated": 1, "users_cleared": 0}
    assert users_collection.find.call_args.args[0] == {"status": {"$ne": "deleted"}}
    query, update = roles_collection.update_one.call_args.args
    assert query == {"_id": role_id}
    assert update["$set"]["assigned_users"] == [active_user]
