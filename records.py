"""
Person record and exhibition operations.

Customers and Leads live in one collection as a tagged variant; these
functions validate the variant at the boundary, resolve defaults, hand card
images to the media host and then write. Reads are never type-filtered.
"""

import logging
import math
import re
from typing import Any, Dict, List, Optional

import pydantic
from bson import ObjectId
from bson.errors import InvalidId
from pymongo import DESCENDING, ReturnDocument
from pymongo.errors import DuplicateKeyError

import database
from config import config
from errors import Conflict, NotFound, ValidationError
from logging_config import log_call
from media import CardImage, upload_card_images
from schemas import Exhibition, PersonUpdate, person_record

logger = logging.getLogger("leads")

ALL = "All"
DEFAULT_PAGE = 1
DEFAULT_LIMIT = 10
# Upper bounds keep skip/limit within what the store accepts.
MAX_PAGE = 1_000_000
MAX_LIMIT = 1000

# Card images are large; list views leave them out.
LIST_PROJECTION = {"cardFront": 0, "cardBack": 0}

_LEADING_INT = re.compile(r"^\s*([+-]?\d+)")


# -------------------- Helpers --------------------

def _invalid(exc: pydantic.ValidationError) -> ValidationError:
    fields = []
    for err in exc.errors():
        names = [part for part in err["loc"] if isinstance(part, str) and part not in ("Customer", "Lead")]
        if names and names[-1] not in fields:
            fields.append(names[-1])
    message = "Required fields are missing or invalid"
    if fields:
        message += ": " + ", ".join(fields)
    return ValidationError(message + ".")


def _object_id(record_id: str, what: str) -> ObjectId:
    # Malformed ids can never match a document.
    try:
        return ObjectId(record_id)
    except (InvalidId, TypeError):
        raise NotFound(f"{what} not found")


def _given(value: Optional[str]) -> bool:
    return bool(value) and value != ALL


def _exact_ci(value: str) -> Dict[str, Any]:
    return {"$regex": f"^{re.escape(value)}$", "$options": "i"}


def _contains_ci(value: str) -> Dict[str, Any]:
    return {"$regex": re.escape(value), "$options": "i"}


def parse_int(value: Any, default: int, maximum: Optional[int] = None) -> int:
    """
    Coerce a query value the way the mobile client has always been served:
    take the leading integer, fall back to the default when there is none or
    when it is not positive. Values above ``maximum`` are clamped to it.
    """
    if isinstance(value, int):
        n = value
    else:
        m = _LEADING_INT.match(str(value or ""))
        if not m:
            return default
        n = int(m.group(1))
    if n <= 0:
        return default
    if maximum is not None and n > maximum:
        return maximum
    return n


def person_filter(priority: Optional[str] = None, city: Optional[str] = None,
                  exhibition_name: Optional[str] = None) -> Dict[str, Any]:
    query: Dict[str, Any] = {}
    if _given(priority):
        query["priority"] = priority
    if _given(city):
        query["city"] = _exact_ci(city)
    if _given(exhibition_name):
        query["exhibitionName"] = exhibition_name
    return query


def resolve_city(city: Optional[str], exhibition_name: Optional[str]) -> str:
    """An explicit city wins; otherwise the exhibition's city, otherwise the default."""
    if _given(city):
        return city
    if exhibition_name:
        exhibition = database.collection(database.EXHIBITION_COLLECTION).find_one({"name": exhibition_name})
        if exhibition and exhibition.get("city"):
            return exhibition["city"]
    return config.DEFAULT_CITY


def _image_fields(urls: Dict[str, str]) -> Dict[str, str]:
    fields = dict(urls)
    if "cardFront" in urls:
        # legacy single-photo field follows the front of the card
        fields["photoUrl"] = urls["cardFront"]
    return fields


# -------------------- Person records --------------------

@log_call
async def create_person(variant: str, fields: Dict[str, Any], images: Dict[str, CardImage]) -> Dict[str, Any]:
    """
    Validate, upload card images, then persist a Customer or Lead.

    ``fields`` uses the wire (camelCase) names. Nothing is uploaded or written
    when validation fails.
    """
    try:
        record = person_record.validate_python({**fields, "type": variant})
    except pydantic.ValidationError as exc:
        raise _invalid(exc)

    record.city = resolve_city(record.city, record.exhibition_name)

    urls = await upload_card_images(images)
    doc = record.model_dump(by_alias=True, exclude_none=True)
    doc.update(_image_fields(urls))
    doc = database.create_document(database.PERSON_COLLECTION, doc)
    logger.info(f"{variant} created | id={doc['_id']} exhibition={doc.get('exhibitionName')} city={doc.get('city')}")
    return doc


@log_call
async def update_person(record_id: str, fields: Dict[str, Any], images: Dict[str, CardImage],
                        what: str = "Record") -> Dict[str, Any]:
    """Replace only the provided fields and images. City is not re-derived."""
    oid = _object_id(record_id, what)
    try:
        update = PersonUpdate.model_validate(fields)
    except pydantic.ValidationError as exc:
        raise _invalid(exc)

    people = database.collection(database.PERSON_COLLECTION)
    if people.find_one({"_id": oid}, {"_id": 1}) is None:
        raise NotFound(f"{what} not found")

    changes = update.model_dump(by_alias=True, exclude_none=True)
    changes.update(_image_fields(await upload_card_images(images)))
    changes["updatedAt"] = database.utcnow()

    doc = people.find_one_and_update({"_id": oid}, {"$set": changes}, return_document=ReturnDocument.AFTER)
    if doc is None:
        raise NotFound(f"{what} not found")
    return doc


def get_person(record_id: str, what: str = "Record") -> Dict[str, Any]:
    doc = database.collection(database.PERSON_COLLECTION).find_one({"_id": _object_id(record_id, what)})
    if doc is None:
        raise NotFound(f"{what} not found")
    return doc


@log_call
def delete_person(record_id: str) -> None:
    result = database.collection(database.PERSON_COLLECTION).delete_one({"_id": _object_id(record_id, "Customer")})
    if result.deleted_count == 0:
        raise NotFound("Customer not found")


def list_leads(priority: Optional[str] = None, city: Optional[str] = None,
               exhibition_name: Optional[str] = None) -> List[Dict[str, Any]]:
    """Every matching record of either type, newest first, unpaginated."""
    return database.get_documents(
        database.PERSON_COLLECTION,
        filter_dict=person_filter(priority, city, exhibition_name),
        sort=[("createdAt", DESCENDING)],
    )


def list_customers(priority: Optional[str] = None, city: Optional[str] = None,
                   exhibition_name: Optional[str] = None, search: Optional[str] = None,
                   record_type: Optional[str] = None, page: Any = None, limit: Any = None) -> Dict[str, Any]:
    page = parse_int(page, DEFAULT_PAGE, MAX_PAGE)
    limit = parse_int(limit, DEFAULT_LIMIT, MAX_LIMIT)

    query = person_filter(priority, city, exhibition_name)
    if _given(record_type):
        query["type"] = record_type
    if search:
        pattern = _contains_ci(search)
        query["$or"] = [
            {"name": pattern},
            {"companyName": pattern},
            {"mobileNumber": pattern},
            {"email": pattern},
        ]

    docs = database.get_documents(
        database.PERSON_COLLECTION,
        filter_dict=query,
        projection=LIST_PROJECTION,
        sort=[("createdAt", DESCENDING)],
        skip=(page - 1) * limit,
        limit=limit,
    )
    total = database.collection(database.PERSON_COLLECTION).count_documents(query)
    return {
        "data": docs,
        "pagination": {"page": page, "limit": limit, "total": total, "pages": math.ceil(total / limit)},
    }


def search_customers(text: Optional[str]) -> List[Dict[str, Any]]:
    if not text:
        raise ValidationError("Search query is required")
    pattern = _contains_ci(text)
    return database.get_documents(
        database.PERSON_COLLECTION,
        filter_dict={"$or": [{"email": pattern}, {"mobileNumber": pattern}, {"whatsappNumber": pattern}]},
        projection=LIST_PROJECTION,
        sort=[("createdAt", DESCENDING)],
    )


# -------------------- Exhibitions --------------------

@log_call
def create_exhibition(exhibition: Exhibition) -> Dict[str, Any]:
    exhibitions = database.collection(database.EXHIBITION_COLLECTION)
    if exhibitions.find_one({"name": exhibition.name}):
        raise Conflict("Exhibition with this name already exists")
    try:
        return database.create_document(database.EXHIBITION_COLLECTION, exhibition)
    except DuplicateKeyError:
        raise Conflict("Exhibition with this name already exists")


def list_exhibitions(city: Optional[str] = None) -> List[Dict[str, Any]]:
    """Exhibitions with ``customerCount``: person records of any type citing the name."""
    query = {"city": _exact_ci(city)} if _given(city) else {}
    people = database.collection(database.PERSON_COLLECTION)
    exhibitions = database.get_documents(database.EXHIBITION_COLLECTION, filter_dict=query, sort=[("name", 1)])
    for exhibition in exhibitions:
        exhibition["customerCount"] = people.count_documents({"exhibitionName": exhibition["name"]})
    return exhibitions


def get_exhibition(name: str) -> Dict[str, Any]:
    doc = database.collection(database.EXHIBITION_COLLECTION).find_one({"name": name})
    if doc is None:
        raise NotFound("Exhibition not found")
    return doc


def list_cities() -> List[str]:
    cities = set()
    for name in (database.EXHIBITION_COLLECTION, database.PERSON_COLLECTION):
        cities.update(database.collection(name).distinct("city"))
    return sorted({c.strip() for c in cities if isinstance(c, str) and c.strip()})
