"""
Shared fixtures.

- mongo: in-memory mongomock database swapped in for database.db, indexes created
- client: TestClient over the app (lifespan not run, so no log files or startup tasks)
- uploads: replaces the media host call, records every image handed to it
"""

from datetime import datetime, timedelta, timezone

import mongomock
import pytest
from fastapi.testclient import TestClient

import database
import main
import media


@pytest.fixture
def mongo(monkeypatch):
    db = mongomock.MongoClient()["leads_test"]
    monkeypatch.setattr(database, "db", db)
    database.ensure_indexes()
    return db


@pytest.fixture
def client(mongo):
    return TestClient(main.app)


@pytest.fixture
def uploads(monkeypatch):
    calls = []

    async def fake_upload(image, transport=None):
        calls.append(image)
        return f"https://res.cloudinary.com/demo/image/upload/leads/{image.side}-{len(calls)}.jpg"

    monkeypatch.setattr(media, "upload_image", fake_upload)
    return calls


@pytest.fixture
def make_person(mongo):
    """Insert a person record directly, each one a minute newer than the last."""
    base = datetime(2026, 1, 1, tzinfo=timezone.utc)
    counter = {"n": 0}

    def _make(**fields):
        counter["n"] += 1
        doc = {
            "name": f"Person {counter['n']}",
            "email": f"person{counter['n']}@example.com",
            "mobileNumber": f"98200{counter['n']:05d}",
            "priority": "Normal",
            "exhibitionName": "Tech Expo Mumbai",
            "city": "Mumbai",
            "type": "Lead",
            "createdAt": base + timedelta(minutes=counter["n"]),
        }
        doc.update(fields)
        return database.create_document(database.PERSON_COLLECTION, doc)

    return _make
