"""
File-backed contact store.

Contacts live in a plain list while a request is being served and are
persisted as ``{"contacts": [...]}`` in a single JSON file. Each save
overwrites the whole file; there is no locking between writers.
"""

import json
import logging
from enum import Enum
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

from pydantic import BaseModel, ConfigDict, PositiveInt, ValidationError

logger = logging.getLogger(__name__)

REQUIRED_FIELDS = ("name", "email", "phone", "status")


class ContactStatus(str, Enum):
    ACTIVE = "active"
    INACTIVE = "inactive"


class Contact(BaseModel):
    id: PositiveInt
    name: str
    email: str
    phone: str
    status: ContactStatus


class ContactCreate(BaseModel):
    """Creation payload; missing fields are reported by the store, not the schema."""

    model_config = ConfigDict(extra="ignore")

    id: Optional[PositiveInt] = None
    name: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    status: Optional[str] = None


class ContactUpdate(BaseModel):
    model_config = ConfigDict(extra="ignore")

    name: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    status: Optional[str] = None


class ContactError(Exception):
    """Base class for contact store failures."""


class ContactValidationError(ContactError):
    """Rejected contact data: missing field, bad status or duplicate id."""


class StoreError(ContactError):
    """The backing file could not be read, parsed or written."""


Payload = Union[BaseModel, Dict[str, Any]]


def _as_dict(data: Payload, exclude_unset: bool = False) -> Dict[str, Any]:
    if isinstance(data, BaseModel):
        return data.model_dump(exclude_unset=exclude_unset)
    return dict(data)


def _parse_status(value: Any) -> ContactStatus:
    try:
        return ContactStatus(value)
    except ValueError:
        allowed = ", ".join(f'"{s.value}"' for s in ContactStatus)
        raise ContactValidationError(
            f"Invalid status {value!r}. Allowed values: {allowed}"
        ) from None


class ContactStore:
    def __init__(self, contacts: Optional[List[Contact]] = None, path: Optional[Path] = None):
        self.contacts: List[Contact] = list(contacts or [])
        self.path = Path(path) if path is not None else None

    @classmethod
    def load(cls, path: Union[str, Path]) -> "ContactStore":
        """Read the store from ``path``. A missing file is an empty store."""
        path = Path(path)
        if not path.exists():
            logger.debug("Database file %s not found, starting empty", path)
            return cls(path=path)

        try:
            document = json.loads(path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as exc:
            logger.error("Failed to read database file %s: %s", path, exc)
            raise StoreError(f"Cannot read database file {path}") from exc

        records = document.get("contacts") if isinstance(document, dict) else None
        if not isinstance(records, list):
            logger.error("Database file %s has no contacts list", path)
            raise StoreError(f"Malformed database file {path}")

        try:
            contacts = [Contact.model_validate(record) for record in records]
        except ValidationError as exc:
            logger.error("Invalid contact record in %s: %s", path, exc)
            raise StoreError(f"Malformed database file {path}") from exc

        ids = [c.id for c in contacts]
        duplicates = sorted({i for i in ids if ids.count(i) > 1})
        if duplicates:
            logger.error("Duplicate contact ids %s in %s", duplicates, path)
            raise StoreError(f"Duplicate contact ids in database file {path}")

        logger.debug("Loaded %d contacts from %s", len(contacts), path)
        return cls(contacts, path=path)

    def save(self, path: Optional[Union[str, Path]] = None) -> None:
        """Overwrite the backing file with the current contacts."""
        target = Path(path) if path is not None else self.path
        if target is None:
            raise StoreError("No database file to save to")

        document = {"contacts": [c.model_dump(mode="json") for c in self.contacts]}
        try:
            target.parent.mkdir(parents=True, exist_ok=True)
            target.write_text(
                json.dumps(document, indent=4, ensure_ascii=False), encoding="utf-8"
            )
        except OSError as exc:
            logger.error("Failed to write database file %s: %s", target, exc)
            raise StoreError(f"Cannot write database file {target}") from exc
        logger.debug("Saved %d contacts to %s", len(self.contacts), target)

    def list_all(self) -> List[Contact]:
        return list(self.contacts)

    def find_by_id(self, contact_id: int) -> Optional[Contact]:
        for contact in self.contacts:
            if contact.id == contact_id:
                return contact
        return None

    def find_by_status(self, status: Union[str, ContactStatus]) -> List[Contact]:
        status = _parse_status(status)
        return [c for c in self.contacts if c.status == status]

    def find_active(self) -> List[Contact]:
        return self.find_by_status(ContactStatus.ACTIVE)

    def next_id(self) -> int:
        return max([0] + [c.id for c in self.contacts]) + 1

    def add(self, data: Payload) -> Contact:
        """Validate ``data``, assign an id if none is given and append it.

        Raises:
            ContactValidationError: a required field is missing or empty, the
                status is not one of ``ContactStatus``, or the id is taken.
        """
        fields = _as_dict(data)
        missing = [name for name in REQUIRED_FIELDS if not fields.get(name)]
        if missing:
            raise ContactValidationError(
                "Missing required fields: " + ", ".join(missing)
            )
        status = _parse_status(fields["status"])

        try:
            contact_id = int(fields.get("id") or self.next_id())
        except (TypeError, ValueError):
            raise ContactValidationError(f"Invalid id {fields['id']!r}") from None
        if self.find_by_id(contact_id) is not None:
            raise ContactValidationError(f"Contact with id {contact_id} already exists")

        try:
            contact = Contact(
                id=contact_id,
                name=fields["name"],
                email=fields["email"],
                phone=fields["phone"],
                status=status,
            )
        except ValidationError as exc:
            raise ContactValidationError(str(exc)) from exc

        self.contacts.append(contact)
        return contact

    def update(self, contact_id: int, data: Payload) -> Optional[Contact]:
        """Merge the given fields into the contact; the id never changes."""
        for index, contact in enumerate(self.contacts):
            if contact.id == contact_id:
                break
        else:
            return None

        changes = {
            name: value
            for name, value in _as_dict(data, exclude_unset=True).items()
            if name in REQUIRED_FIELDS and value is not None
        }
        empty = [name for name, value in changes.items() if value == ""]
        if empty:
            raise ContactValidationError("Fields cannot be empty: " + ", ".join(empty))
        if "status" in changes:
            changes["status"] = _parse_status(changes["status"])

        merged = {**contact.model_dump(), **changes, "id": contact_id}
        try:
            updated = Contact(**merged)
        except ValidationError as exc:
            raise ContactValidationError(str(exc)) from exc

        self.contacts[index] = updated
        return updated

    def delete(self, contact_id: int) -> Optional[Contact]:
        for index, contact in enumerate(self.contacts):
            if contact.id == contact_id:
                return self.contacts.pop(index)
        return None
