import logging
import os
import time
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from bson import ObjectId
from fastapi import Depends, FastAPI, Form, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pymongo.errors import PyMongoError
from starlette.exceptions import HTTPException as StarletteHTTPException

import database
import records
from logging_config import configure_logging
from media import CardImage, card_images
from schemas import Exhibition

logger = logging.getLogger("leads")


@asynccontextmanager
async def lifespan(app: FastAPI):
    configure_logging()
    logger.info(f"Starting, MongoDB database: {database.db.name if database.db is not None else 'not configured'}")
    database.run_startup_tasks()
    yield
    if database.client is not None:
        database.client.close()
        logger.info("MongoDB connection closed")


app = FastAPI(title="Exhibition Leads API", lifespan=lifespan)

# CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.middleware("http")
async def log_requests(request: Request, call_next):
    start = time.perf_counter()
    response = await call_next(request)
    ms = int((time.perf_counter() - start) * 1000)
    logger.info(f"{request.method} {request.url.path} -> {response.status_code} | {ms}ms")
    return response


# -------------------- Envelope --------------------

def envelope(data: Any = None, message: Optional[str] = None, status_code: int = 200, **extra) -> JSONResponse:
    content: Dict[str, Any] = {"success": status_code < 400}
    if message:
        content["message"] = message
    if data is not None:
        content["data"] = data
    content.update(extra)
    return JSONResponse(status_code=status_code, content=jsonable_encoder(content, custom_encoder={ObjectId: str}))


@app.exception_handler(StarletteHTTPException)
async def http_error(request: Request, exc: StarletteHTTPException):
    extra = {}
    if getattr(exc, "error", None):
        extra["error"] = exc.error
    if exc.status_code >= 500:
        logger.error(f"{request.method} {request.url.path} | {exc.detail} | {extra.get('error', '')}")
    return envelope(message=str(exc.detail), status_code=exc.status_code, **extra)


@app.exception_handler(RequestValidationError)
async def request_validation_error(request: Request, exc: RequestValidationError):
    fields = [str(err["loc"][-1]) for err in exc.errors() if err.get("loc")]
    message = "Invalid request"
    if fields:
        message += ": " + ", ".join(dict.fromkeys(fields))
    return envelope(message=message, status_code=400)


@app.exception_handler(PyMongoError)
async def store_error(request: Request, exc: PyMongoError):
    logger.error(f"{request.method} {request.url.path} | store failure | {exc}")
    return envelope(message="Database error", status_code=500, error=str(exc)[:200])


@app.exception_handler(Exception)
async def unexpected_error(request: Request, exc: Exception):
    logger.exception(f"{request.method} {request.url.path} | unhandled {type(exc).__name__}")
    return envelope(message="Internal server error", status_code=500, error=str(exc)[:200])


# -------------------- Forms --------------------

def person_form(
    name: Optional[str] = Form(None),
    email: Optional[str] = Form(None),
    mobile_number: Optional[str] = Form(None, alias="mobileNumber"),
    company_name: Optional[str] = Form(None, alias="companyName"),
    whatsapp_number: Optional[str] = Form(None, alias="whatsappNumber"),
    requirement: Optional[str] = Form(None),
    requirement_description: Optional[str] = Form(None, alias="requirementDescription"),
    other_requirement: Optional[str] = Form(None, alias="otherRequirement"),
    priority: Optional[str] = Form(None),
    visit_date: Optional[str] = Form(None, alias="visitDate"),
    exhibition_name: Optional[str] = Form(None, alias="exhibitionName"),
    city: Optional[str] = Form(None),
) -> Dict[str, Any]:
    fields = {
        "name": name,
        "email": email,
        "mobileNumber": mobile_number,
        "companyName": company_name,
        "whatsappNumber": whatsapp_number,
        "requirement": requirement,
        "requirementDescription": requirement_description,
        "otherRequirement": other_requirement,
        "priority": priority,
        "visitDate": visit_date,
        "exhibitionName": exhibition_name,
        "city": city,
    }
    return {k: v for k, v in fields.items() if v is not None}


# -------------------- Routes --------------------

@app.get("/")
def read_root():
    return {"message": "Exhibition Leads Backend Running"}


@app.get("/api/health")
def health():
    return {
        "success": True,
        "status": "OK",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "mongodb": "Connected" if database.is_connected() else "Disconnected",
    }


# Leads

@app.post("/api/leads")
async def create_lead(
    fields: Dict[str, Any] = Depends(person_form),
    images: Dict[str, CardImage] = Depends(card_images),
):
    lead = await records.create_person("Lead", fields, images)
    return envelope(lead, message="Lead submitted successfully", status_code=201)


@app.get("/api/leads")
def list_leads(
    priority: Optional[str] = None,
    city: Optional[str] = None,
    exhibitionName: Optional[str] = None,
):
    return envelope(records.list_leads(priority, city, exhibitionName))


@app.get("/api/leads/{lead_id}")
def get_lead(lead_id: str):
    return envelope(records.get_person(lead_id, what="Lead/Customer"))


@app.put("/api/leads/{lead_id}")
async def update_lead(
    lead_id: str,
    fields: Dict[str, Any] = Depends(person_form),
    images: Dict[str, CardImage] = Depends(card_images),
):
    lead = await records.update_person(lead_id, fields, images, what="Lead")
    return envelope(lead, message="Lead updated successfully")


# Customers

@app.post("/api/customers")
async def create_customer(
    fields: Dict[str, Any] = Depends(person_form),
    images: Dict[str, CardImage] = Depends(card_images),
):
    customer = await records.create_person("Customer", fields, images)
    return envelope(customer, message="Customer details saved successfully", status_code=201)


@app.get("/api/customers")
def list_customers(
    priority: Optional[str] = None,
    city: Optional[str] = None,
    exhibitionName: Optional[str] = None,
    search: Optional[str] = None,
    type: Optional[str] = None,
    page: Optional[str] = None,
    limit: Optional[str] = None,
):
    result = records.list_customers(priority, city, exhibitionName, search, type, page, limit)
    return envelope(result["data"], pagination=result["pagination"])


# Must be registered before /api/customers/{customer_id}
@app.get("/api/customers/search")
def search_customers(query: Optional[str] = None):
    return envelope(records.search_customers(query))


@app.get("/api/customers/{customer_id}")
def get_customer(customer_id: str):
    return envelope(records.get_person(customer_id, what="Customer"))


@app.put("/api/customers/{customer_id}")
async def update_customer(
    customer_id: str,
    fields: Dict[str, Any] = Depends(person_form),
    images: Dict[str, CardImage] = Depends(card_images),
):
    customer = await records.update_person(customer_id, fields, images, what="Customer")
    return envelope(customer, message="Customer updated successfully")


@app.delete("/api/customers/{customer_id}")
def delete_customer(customer_id: str):
    records.delete_person(customer_id)
    return envelope(message="Customer deleted successfully")


# Exhibitions

@app.post("/api/exhibitions")
def create_exhibition(payload: Exhibition):
    exhibition = records.create_exhibition(payload)
    return envelope(exhibition, message="Exhibition created successfully", status_code=201)


@app.get("/api/exhibitions")
def list_exhibitions(city: Optional[str] = None):
    return envelope(records.list_exhibitions(city))


@app.get("/api/exhibitions/{name}")
def get_exhibition(name: str):
    return envelope(records.get_exhibition(name))


@app.get("/api/cities")
def list_cities():
    return envelope(records.list_cities())


if __name__ == "__main__":
    import uvicorn
    from config import config
    port = int(os.getenv("PORT", config.PORT))
    uvicorn.run(app, host="0.0.0.0", port=port)
