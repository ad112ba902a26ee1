import os
import sys

# Add the parent directory (backend) to the Python path
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

import pytest
import sqlite3
import tempfile
from fastapi.testclient import TestClient

from main import app
from core.fixture import SqliteDbFixture
from core.readers import load_schema

FIXTURES_DIR = os.path.join(os.path.dirname(__file__), "fixtures")
SCHEMA_FILE = os.path.join(FIXTURES_DIR, "user_role_schema.json")
DATA_FILE = os.path.join(FIXTURES_DIR, "user_role_data.json")

USER_ROLE_DDL = [
    "CREATE TABLE Role (ID INTEGER PRIMARY KEY, Name TEXT NOT NULL, Description TEXT);",
    "CREATE TABLE User (ID INTEGER PRIMARY KEY, FirstName TEXT, LastName TEXT, Age INTEGER, "
    "SupervisorID INTEGER REFERENCES User(ID));",
    "CREATE TABLE UserRole (UserID INTEGER NOT NULL REFERENCES User(ID), "
    "RoleID INTEGER NOT NULL REFERENCES Role(ID), PRIMARY KEY (UserID, RoleID));",
]


@pytest.fixture(scope="session")
def client():
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def temp_sqlite_db():
    fd, path = tempfile.mkstemp(suffix=".db")
    try:
        conn = sqlite3.connect(path)
        cur = conn.cursor()
        for stmt in USER_ROLE_DDL:
            cur.execute(stmt)
        conn.commit()
        conn.close()
        yield path
    finally:
        os.close(fd)
        os.remove(path)


@pytest.fixture
def schema():
    return load_schema(SCHEMA_FILE)


@pytest.fixture
def db_fixture(temp_sqlite_db):
    fixture = SqliteDbFixture(f"sqlite:///{temp_sqlite_db}")
    fixture.read_schema(SCHEMA_FILE)
    try:
        yield fixture
    finally:
        fixture.dispose()


def query_rows(path: str, sql: str) -> list[tuple]:
    """Read rows straight through sqlite3, bypassing the engine under test."""
    conn = sqlite3.connect(path)
    try:
        return conn.execute(sql).fetchall()
    finally:
        conn.close()


@pytest.fixture
def read_db(temp_sqlite_db):
    return lambda sql: query_rows(temp_sqlite_db, sql)
