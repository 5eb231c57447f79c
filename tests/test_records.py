"""
Unit tests for records.py helpers and the operations that are easier to
check directly than through HTTP.
"""

import asyncio

import pytest
from pymongo.errors import DuplicateKeyError

import database
import records
from errors import Conflict, NotFound, ValidationError
from media import CardImage
from schemas import Exhibition


@pytest.mark.parametrize("value,expected", [
    (None, 10),
    ("", 10),
    ("abc", 10),
    ("0", 10),
    ("-4", 10),
    ("7", 7),
    ("  12 ", 12),
    ("3abc", 3),
    ("2.9", 2),
    (5, 5),
])
def test_parse_int(value, expected):
    assert records.parse_int(value, 10) == expected


def test_parse_int_clamps_to_maximum():
    assert records.parse_int("99999999999999999999999", 1, maximum=records.MAX_PAGE) == records.MAX_PAGE
    assert records.parse_int(5000, 10, maximum=records.MAX_LIMIT) == records.MAX_LIMIT
    assert records.parse_int("40", 10, maximum=records.MAX_LIMIT) == 40


class TestPersonFilter:

    def test_empty_and_all_are_ignored(self):
        assert records.person_filter("All", "", None) == {}

    def test_city_is_anchored_and_escaped(self):
        query = records.person_filter(city="Navi Mumbai (W)")
        assert query["city"]["$options"] == "i"
        assert query["city"]["$regex"].startswith("^") and query["city"]["$regex"].endswith("$")
        assert r"\(" in query["city"]["$regex"]

    def test_priority_and_exhibition_are_exact(self):
        query = records.person_filter("Urgent", None, "Tech Expo Mumbai")
        assert query == {"priority": "Urgent", "exhibitionName": "Tech Expo Mumbai"}


class TestResolveCity:

    def test_explicit_city(self, mongo):
        assert records.resolve_city("Delhi", "Tech Expo Mumbai") == "Delhi"

    def test_from_exhibition(self, mongo):
        mongo[database.EXHIBITION_COLLECTION].insert_one({"name": "Protech Ahmedabad", "city": "Ahmedabad"})
        assert records.resolve_city(None, "Protech Ahmedabad") == "Ahmedabad"
        assert records.resolve_city("All", "Protech Ahmedabad") == "Ahmedabad"

    def test_exhibition_without_city(self, mongo):
        mongo[database.EXHIBITION_COLLECTION].insert_one({"name": "Bare Expo"})
        assert records.resolve_city(None, "Bare Expo") == "Mumbai"

    def test_missing_exhibition(self, mongo):
        assert records.resolve_city(None, "Ghost Expo") == "Mumbai"


class TestCreatePerson:

    def test_images_passed_explicitly(self, mongo, uploads):
        images = {"cardBack": CardImage("cardBack", "back.png", "image/png", b"png")}
        doc = asyncio.run(records.create_person(
            "Lead", {"name": "A", "email": "a@x.com", "mobileNumber": "1"}, images))
        assert doc["cardBack"].endswith(".jpg")
        assert "cardFront" not in doc and "photoUrl" not in doc
        assert mongo[database.PERSON_COLLECTION].count_documents({"cardBack": doc["cardBack"]}) == 1

    def test_validation_failure_uploads_nothing(self, mongo, uploads):
        images = {"cardFront": CardImage("cardFront", "f.jpg", "image/jpeg", b"jpg")}
        with pytest.raises(ValidationError) as exc:
            asyncio.run(records.create_person("Customer", {"name": "A"}, images))
        assert exc.value.status_code == 400
        assert "email" in exc.value.detail and "companyName" in exc.value.detail
        assert uploads == []

    def test_stamps_timestamps(self, mongo):
        doc = asyncio.run(records.create_person(
            "Lead", {"name": "A", "email": "a@x.com", "mobileNumber": "1"}, {}))
        assert doc["createdAt"] == doc["updatedAt"]


class TestDelete:

    def test_missing(self, mongo):
        with pytest.raises(NotFound):
            records.delete_person("64b7f0c2a1b2c3d4e5f60718")

    def test_malformed(self, mongo):
        with pytest.raises(NotFound):
            records.delete_person("nope")


class TestExhibitions:

    def test_unique_index_backs_the_name_check(self, mongo):
        records.create_exhibition(Exhibition(name="Tech Expo Mumbai"))
        with pytest.raises(DuplicateKeyError):
            database.create_document(database.EXHIBITION_COLLECTION, {"name": "Tech Expo Mumbai"})

    def test_duplicate_is_conflict(self, mongo):
        records.create_exhibition(Exhibition(name="Tech Expo Mumbai"))
        with pytest.raises(Conflict) as exc:
            records.create_exhibition(Exhibition(name="Tech Expo Mumbai", city="Pune"))
        assert exc.value.status_code == 400

    def test_counts_recomputed_each_call(self, mongo, make_person):
        records.create_exhibition(Exhibition(name="Tech Expo Mumbai"))
        assert records.list_exhibitions()[0]["customerCount"] == 0
        make_person(exhibitionName="Tech Expo Mumbai")
        assert records.list_exhibitions()[0]["customerCount"] == 1

    def test_get_missing(self, mongo):
        with pytest.raises(NotFound):
            records.get_exhibition("Ghost Expo")


def test_cities_strip_and_dedupe(mongo, make_person):
    make_person(city=" Delhi ")
    make_person(city="Delhi")
    make_person(city=None)
    assert records.list_cities() == ["Delhi"]
