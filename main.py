import logging
from contextlib import asynccontextmanager
from typing import List

from fastapi import Depends, FastAPI, HTTPException, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from config import Settings, get_settings, setup_logging
from store import (
    Contact,
    ContactCreate,
    ContactStore,
    ContactUpdate,
    ContactValidationError,
    StoreError,
)

logger = logging.getLogger(__name__)

INTERNAL_ERROR = "Internal server error"
NOT_FOUND = "Contact not found"


@asynccontextmanager
async def lifespan(app: FastAPI):
    settings = get_settings()
    setup_logging(settings)
    logger.info("Starting %s with database %s", settings.app_name, settings.database_file)
    yield


_settings = get_settings()
app = FastAPI(
    title="Contacts API",
    lifespan=lifespan,
    docs_url="/docs" if _settings.debug else None,
    redoc_url="/redoc" if _settings.debug else None,
)


@app.exception_handler(ContactValidationError)
async def contact_validation_handler(_: Request, exc: ContactValidationError) -> JSONResponse:
    return JSONResponse(status_code=status.HTTP_400_BAD_REQUEST, content={"detail": str(exc)})


@app.exception_handler(RequestValidationError)
async def request_validation_handler(_: Request, exc: RequestValidationError) -> JSONResponse:
    messages = []
    for error in exc.errors():
        field = ".".join(str(loc) for loc in error["loc"])
        messages.append(f"{field}: {error['msg']}")
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={"detail": "; ".join(messages) or "Invalid request"},
    )


@app.exception_handler(StoreError)
async def store_error_handler(request: Request, exc: StoreError) -> JSONResponse:
    logger.error("Store failure on %s %s: %s", request.method, request.url.path, exc)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, content={"detail": INTERNAL_ERROR}
    )


@app.exception_handler(Exception)
async def unexpected_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, content={"detail": INTERNAL_ERROR}
    )


def get_store(settings: Settings = Depends(get_settings)) -> ContactStore:
    # Re-read on every request; nothing is cached between calls.
    return ContactStore.load(settings.database_file)


@app.get("/health")
def health_check():
    return {"status": "healthy"}


@app.get("/contacts", response_model=List[Contact])
def read_contacts(store: ContactStore = Depends(get_store)):
    return store.list_all()


@app.get("/contacts/active", response_model=List[Contact])
def read_active_contacts(store: ContactStore = Depends(get_store)):
    return store.find_active()


@app.get("/contacts/{contact_id}", response_model=Contact)
def read_contact(contact_id: int, store: ContactStore = Depends(get_store)):
    contact = store.find_by_id(contact_id)
    if contact is None:
        raise HTTPException(status_code=404, detail=NOT_FOUND)
    return contact


@app.post("/contacts", response_model=Contact, status_code=status.HTTP_201_CREATED)
def create_contact(contact: ContactCreate, store: ContactStore = Depends(get_store)):
    created = store.add(contact)
    store.save()
    logger.info("Created contact %d", created.id)
    return created


@app.put("/contacts/{contact_id}", response_model=Contact)
def update_contact(
    contact_id: int, changes: ContactUpdate, store: ContactStore = Depends(get_store)
):
    updated = store.update(contact_id, changes)
    if updated is None:
        raise HTTPException(status_code=404, detail=NOT_FOUND)
    store.save()
    logger.info("Updated contact %d", contact_id)
    return updated


@app.delete("/contacts/{contact_id}", response_model=Contact)
def delete_contact(contact_id: int, store: ContactStore = Depends(get_store)):
    deleted = store.delete(contact_id)
    if deleted is None:
        raise HTTPException(status_code=404, detail=NOT_FOUND)
    store.save()
    logger.info("Deleted contact %d", contact_id)
    return deleted
