import io
import json
import sqlite3

import pytest
from sqlalchemy.exc import IntegrityError, OperationalError

from conftest import DATA_FILE, SCHEMA_FILE
from core.exceptions import NotInitializedError, SchemaError, UnknownTableError
from core.fixture import SqliteDbFixture
from models.operation import DbOperation


@pytest.fixture
def seeded(db_fixture):
    db_fixture.read_data(DATA_FILE)
    db_fixture.perform_operation(DbOperation.CLEAN_INSERT_IDENTITY)
    return db_fixture


def test_calls_before_schema_fail(temp_sqlite_db):
    fixture = SqliteDbFixture(f"sqlite:///{temp_sqlite_db}")
    try:
        with pytest.raises(NotInitializedError):
            fixture.perform_operation(DbOperation.INSERT)
        with pytest.raises(NotInitializedError):
            fixture.perform_operation(DbOperation.NONE)
        with pytest.raises(NotInitializedError):
            fixture.fetch_from_database()
        with pytest.raises(NotInitializedError):
            fixture.read_data(DATA_FILE)
        with pytest.raises(NotInitializedError):
            fixture.copy_data()
        with pytest.raises(NotInitializedError):
            fixture.row_count
    finally:
        fixture.dispose()


def test_none_is_a_no_op(db_fixture, read_db):
    result = db_fixture.perform_operation(DbOperation.NONE)
    assert result.rows_affected == 0
    assert read_db("SELECT COUNT(*) FROM Role") == [(0,)]


def test_clean_insert_identity_round_trip(seeded):
    fetched = seeded.fetch_from_database()
    assert fetched == seeded.copy_data()
    assert fetched.rows("User")[1] == {
        "ID": 2, "FirstName": "Alan", "LastName": "Turing", "Age": 41, "SupervisorID": 1,
    }


def test_insert_lets_database_assign_identity(db_fixture, read_db):
    db_fixture.read_data({"Role": [{"ID": 40, "Name": "Admin"}, {"ID": 41, "Name": "Reader"}]})
    result = db_fixture.perform_operation("insert")
    assert result.rows_affected == 2
    assert read_db("SELECT ID, Name FROM Role ORDER BY ID") == [(1, "Admin"), (2, "Reader")]


def test_fetch_selected_tables(seeded):
    fetched = seeded.fetch_from_database(["UserRole"])
    assert fetched.rows("UserRole") == [{"UserID": 1, "RoleID": 1}, {"UserID": 2, "RoleID": 2}]
    assert fetched.rows("Role") == []


def test_fetch_unknown_table(seeded):
    with pytest.raises(UnknownTableError):
        seeded.fetch_from_database(["Role", "Missing"])


def test_fetch_failure_releases_connection(db_fixture):
    # Declared in the schema but never created in the database
    db_fixture.read_schema({"tables": [{"name": "Ghost", "columns": [{"name": "ID"}], "primary_key": ["ID"]}]})
    with pytest.raises(OperationalError, match="Ghost"):
        db_fixture.fetch_from_database()
    assert db_fixture.engine.pool.checkedout() == 0


def test_delete_removes_only_snapshot_rows(seeded, read_db):
    seeded.read_data({"UserRole": [{"UserID": 2, "RoleID": 2}], "User": [{"ID": 2}]})
    result = seeded.perform_operation(DbOperation.DELETE)
    assert result.rows_affected == 2
    assert read_db("SELECT UserID, RoleID FROM UserRole") == [(1, 1)]
    assert read_db("SELECT ID FROM User") == [(1,)]
    assert read_db("SELECT COUNT(*) FROM Role") == [(2,)]


def test_delete_all_clears_every_table(seeded, read_db):
    seeded.perform_operation(DbOperation.DELETE_ALL)
    for table in ("Role", "User", "UserRole"):
        assert read_db(f"SELECT COUNT(*) FROM {table}") == [(0,)]


def test_update_by_key(seeded, read_db):
    seeded.read_data({"Role": [{"ID": 2, "Name": "Viewer", "Description": "Renamed"}]})
    result = seeded.perform_operation(DbOperation.UPDATE)
    assert result.rows_affected == 1
    assert read_db("SELECT ID, Name, Description FROM Role ORDER BY ID") == [
        (1, "Admin", "Administrators"),
        (2, "Viewer", "Renamed"),
    ]


def test_refresh_updates_existing_and_inserts_missing(seeded, read_db):
    seeded.read_data({
        "Role": [
            {"ID": 1, "Name": "Admin", "Description": "Full access"},
            {"ID": 3, "Name": "Auditor", "Description": "Reviews logs"},
        ],
        "UserRole": [{"UserID": 1, "RoleID": 1}, {"UserID": 1, "RoleID": 3}],
    })
    seeded.perform_operation(DbOperation.REFRESH)
    assert read_db("SELECT ID, Name, Description FROM Role ORDER BY ID") == [
        (1, "Admin", "Full access"),
        (2, "Reader", "Read-only access"),
        (3, "Auditor", "Reviews logs"),
    ]
    assert read_db("SELECT UserID, RoleID FROM UserRole ORDER BY UserID, RoleID") == [(1, 1), (1, 3), (2, 2)]


def test_refresh_with_unchanged_values_creates_no_duplicates(seeded, read_db):
    seeded.perform_operation(DbOperation.REFRESH)
    assert read_db("SELECT COUNT(*) FROM Role") == [(2,)]
    assert read_db("SELECT COUNT(*) FROM UserRole") == [(2,)]


def test_failed_clean_insert_rolls_back_both_passes(seeded, read_db):
    seeded.read_data({"Role": [{"ID": 9, "Name": "Ops"}, {"ID": 10, "Name": None}]})
    with pytest.raises(IntegrityError):
        seeded.perform_operation(DbOperation.CLEAN_INSERT)
    assert read_db("SELECT COUNT(*) FROM Role") == [(2,)]
    assert read_db("SELECT COUNT(*) FROM UserRole") == [(2,)]
    assert seeded.engine.pool.checkedout() == 0


def test_hooks_receive_active_transaction(db_fixture):
    seen = []

    def pre(context):
        seen.append(("pre", context.operation, context.transaction.is_active))

    def post(context):
        count = context.connection.exec_driver_sql("SELECT COUNT(*) FROM Role").scalar()
        seen.append(("post", context.operation, count))

    db_fixture.pre_operation = pre
    db_fixture.post_operation = post
    db_fixture.read_data(DATA_FILE)
    db_fixture.perform_operation(DbOperation.CLEAN_INSERT_IDENTITY)
    assert seen == [
        ("pre", DbOperation.CLEAN_INSERT_IDENTITY, True),
        ("post", DbOperation.CLEAN_INSERT_IDENTITY, 2),
    ]


def test_pre_hook_veto_rolls_back(db_fixture, read_db):
    def pre(context):
        context.connection.exec_driver_sql("INSERT INTO Role (ID, Name) VALUES (99, 'hook')")
        raise RuntimeError("blocked")

    db_fixture.pre_operation = pre
    db_fixture.read_data(DATA_FILE)
    with pytest.raises(RuntimeError, match="blocked"):
        db_fixture.perform_operation(DbOperation.CLEAN_INSERT_IDENTITY)
    assert read_db("SELECT COUNT(*) FROM Role") == [(0,)]
    assert db_fixture.engine.pool.checkedout() == 0


def test_post_hook_veto_rolls_back(db_fixture, read_db):
    class Veto(Exception):
        pass

    def post(context):
        raise Veto("not today")

    db_fixture.post_operation = post
    db_fixture.read_data(DATA_FILE)
    with pytest.raises(Veto, match="not today"):
        db_fixture.perform_operation(DbOperation.INSERT_IDENTITY)
    assert read_db("SELECT COUNT(*) FROM Role") == [(0,)]
    assert db_fixture.engine.pool.checkedout() == 0


def test_keyless_table_delete_requires_key(temp_sqlite_db, read_db):
    conn = sqlite3.connect(temp_sqlite_db)
    conn.execute("CREATE TABLE AuditLog (Message TEXT)")
    conn.commit()
    conn.close()

    fixture = SqliteDbFixture(f"sqlite:///{temp_sqlite_db}")
    try:
        fixture.read_schema({"tables": [{"name": "AuditLog", "columns": [{"name": "Message"}]}]})
        fixture.read_data({"AuditLog": [{"Message": "boot"}]})
        fixture.perform_operation(DbOperation.CLEAN_INSERT)
        assert read_db("SELECT Message FROM AuditLog") == [("boot",)]
        with pytest.raises(SchemaError):
            fixture.perform_operation(DbOperation.DELETE)
        assert read_db("SELECT COUNT(*) FROM AuditLog") == [(1,)]
    finally:
        fixture.dispose()


def test_cyclic_schema_fails_before_connecting(db_fixture):
    cyclic = {
        "tables": [
            {"name": "A", "columns": [{"name": "ID"}, {"name": "BID"}], "primary_key": ["ID"],
             "foreign_keys": [{"columns": ["BID"], "referenced_table": "B", "referenced_columns": ["ID"]}]},
            {"name": "B", "columns": [{"name": "ID"}, {"name": "AID"}], "primary_key": ["ID"],
             "foreign_keys": [{"columns": ["AID"], "referenced_table": "A", "referenced_columns": ["ID"]}]},
        ]
    }
    db_fixture.read_schema(cyclic)
    with pytest.raises(SchemaError, match="cycle"):
        db_fixture.perform_operation(DbOperation.DELETE_ALL)


def test_read_schema_is_idempotent(db_fixture, schema):
    db_fixture.read_data(DATA_FILE)
    db_fixture.read_schema(SCHEMA_FILE)
    # Same source: working rows survive
    assert db_fixture.row_count == 6

    db_fixture.read_schema(schema)
    assert db_fixture.row_count == 0


def test_read_data_replaces_rows(db_fixture):
    assert db_fixture.read_data(DATA_FILE) == 6
    assert db_fixture.read_data(DATA_FILE) == 6

    with open(DATA_FILE) as f:
        payload = json.load(f)
    payload["Role"] = payload["Role"][:1]
    assert db_fixture.read_data(io.StringIO(json.dumps(payload))) == 5
    assert len(db_fixture.copy_data().rows("Role")) == 1


def test_copy_schema_only(seeded):
    empty = seeded.copy_schema_only()
    assert empty.table_names == ["Role", "User", "UserRole"]
    assert empty.row_count() == 0


def test_quote_properties_delegate_to_builder(db_fixture):
    db_fixture.quote_prefix = "["
    db_fixture.quote_suffix = "]"
    assert db_fixture.builder.quote_prefix == "["
    db_fixture.read_data(DATA_FILE)
    db_fixture.perform_operation(DbOperation.CLEAN_INSERT_IDENTITY)
    assert db_fixture.fetch_from_database(["Role"]).row_count() == 2


def test_read_data_skips_undeclared_entries(db_fixture):
    assert db_fixture.read_data({"Role": [{"ID": 1, "Name": "A"}], "_meta": {"version": 1}}) == 1
    assert db_fixture.copy_data().to_dict()["Role"] == [{"ID": 1, "Name": "A"}]


def test_row_count_tracks_working_snapshot(db_fixture):
    assert db_fixture.row_count == 0
    db_fixture.read_data(DATA_FILE)
    assert db_fixture.row_count == 6
    # Unchanged source: count comes from the working snapshot
    assert db_fixture.read_data(DATA_FILE) == db_fixture.row_count
