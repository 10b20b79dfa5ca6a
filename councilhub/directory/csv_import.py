"""
Bulk import of directory contacts from CSV.

Rows are validated and inserted one at a time. A bad row is reported as
``row <n>: <reason>`` (``n`` counts data rows from 1) and never stops the
rows after it.
"""
from __future__ import annotations

import csv
import io
import re
from typing import Dict, Iterator, List, Optional, Set, Union

from loguru import logger
from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from councilhub.directory.enums import ContactType
from councilhub.directory.models import Contact
from councilhub.directory.schemas import ImportResult
from councilhub.settings import settings
from councilhub.utils import ValidationFailed

FIELDS = (
    "contact_name",
    "organization",
    "title",
    "email",
    "phone",
    "address",
    "city",
    "state",
    "zip_code",
    "website",
    "notes",
    "contact_type",
)

HEADER_ALIASES = {
    "name": "contact_name",
    "contact name": "contact_name",
    "full name": "contact_name",
    "company": "organization",
    "org": "organization",
    "job title": "title",
    "position": "title",
    "email address": "email",
    "e-mail": "email",
    "phone number": "phone",
    "telephone": "phone",
    "street": "address",
    "street address": "address",
    "zip": "zip_code",
    "postal code": "zip_code",
    "url": "website",
    "web": "website",
    "type": "contact_type",
    "category": "contact_type",
}

EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
CSV_CONTENT_TYPES = {"text/csv", "application/csv", "application/vnd.ms-excel"}

TEMPLATE_ROWS = (
    (
        "John Doe", "ACME Corp", "Director", "john@acme.example", "555-0100",
        "1 Main St", "Springfield", "IL", "62701", "https://acme.example",
        "Met at the annual tournament", "sponsor",
    ),
    (
        "Jane Smith", "Tech Solutions", "Coordinator", "jane@techsolutions.example",
        "555-0101", "22 Oak Ave", "Riverton", "WY", "82501", "",
        "", "vendor",
    ),
)


class RowError(Exception):
    pass


def normalize_header(header: str) -> str:
    key = " ".join(header.strip().lower().replace("_", " ").split())
    return HEADER_ALIASES.get(key, key.replace(" ", "_"))


def decode_upload(
    raw: bytes,
    *,
    filename: Optional[str],
    content_type: Optional[str],
    max_bytes: Optional[int] = None,
) -> str:
    """Check an uploaded file is a reasonably sized UTF-8 CSV and return its text."""
    limit = max_bytes or settings.max_csv_bytes
    is_csv_name = bool(filename) and filename.lower().endswith(".csv")
    if not is_csv_name and (content_type or "").split(";")[0] not in CSV_CONTENT_TYPES:
        raise ValidationFailed("Only CSV files are allowed")
    if len(raw) > limit:
        raise ValidationFailed(f"File is too large (limit {limit // (1024 * 1024)}MB)")
    try:
        return raw.decode("utf-8-sig")
    except UnicodeDecodeError as exc:
        raise ValidationFailed("File must be UTF-8 encoded") from exc


def iter_rows(content: str) -> Iterator[Union[Dict[str, str], RowError]]:
    """
    Yield rows keyed by canonical field name, skipping blank lines.

    A line the reader cannot parse is yielded as a ``RowError`` so the
    caller can report it and carry on with the next line.
    """
    reader = csv.reader(io.StringIO(content))
    try:
        header = next(reader)
    except StopIteration:
        return
    except csv.Error as e:
        raise ValidationFailed(f"Malformed CSV header ({e})") from e
    columns = [normalize_header(h) for h in header]
    while True:
        try:
            values = next(reader)
        except StopIteration:
            return
        except csv.Error as e:
            yield RowError(f"malformed CSV row ({e})")
            continue
        if not any(v.strip() for v in values):
            continue
        row = {}
        for column, value in zip(columns, values):
            if column in FIELDS and column not in row:
                row[column] = value
        yield row


def clean_row(row: Dict[str, str]) -> Dict[str, object]:
    """Trim, null out empties and validate one row; raises ``RowError``."""
    fields: Dict[str, object] = {}
    for name in FIELDS:
        value = (row.get(name) or "").strip()
        fields[name] = value or None

    if not fields["contact_name"]:
        raise RowError("contact name is required")

    email = fields["email"]
    if email is not None and not EMAIL_RE.match(str(email)):
        raise RowError(f"invalid email address '{email}'")

    raw_type = fields["contact_type"]
    if raw_type is None:
        fields["contact_type"] = ContactType.CONTACT
    else:
        try:
            fields["contact_type"] = ContactType(str(raw_type).lower())
        except ValueError:
            allowed = ", ".join(t.value for t in ContactType)
            raise RowError(f"invalid contact type '{raw_type}' (expected one of {allowed})")
    return fields


async def _existing_emails(session: AsyncSession) -> Set[str]:
    q = select(func.lower(Contact.email)).where(Contact.email.is_not(None))
    return set((await session.execute(q)).scalars().all())


async def import_contacts(
    session: AsyncSession, content: str, *, added_by_id: Optional[int]
) -> ImportResult:
    known_emails = await _existing_emails(session)
    seen_in_file: Set[str] = set()
    errors: List[str] = []
    imported = 0
    total = 0

    for number, row in enumerate(iter_rows(content), start=1):
        total = number
        try:
            if isinstance(row, RowError):
                raise row
            fields = clean_row(row)
            email_key = str(fields["email"]).lower() if fields["email"] else None
            if email_key in seen_in_file:
                raise RowError(f"duplicate email '{fields['email']}' in file")
            if email_key in known_emails:
                raise RowError(f"email '{fields['email']}' already exists in the directory")
        except RowError as e:
            errors.append(f"row {number}: {e}")
            continue

        try:
            async with session.begin_nested():
                session.add(
                    Contact(added_by_id=added_by_id, modified_by_id=added_by_id, **fields)
                )
                await session.flush()
        except SQLAlchemyError as e:
            logger.warning(f"CSV import row {number} failed to save: {e}")
            errors.append(f"row {number}: could not be saved")
            continue

        imported += 1
        if email_key:
            seen_in_file.add(email_key)

    logger.info(f"CSV import: {imported}/{total} rows imported, {len(errors)} errors")
    return ImportResult(
        success=imported > 0,
        imported_count=imported,
        total_rows=total,
        errors=errors,
    )


def template_csv() -> str:
    buffer = io.StringIO()
    writer = csv.writer(buffer)
    writer.writerow(FIELDS)
    writer.writerows(TEMPLATE_ROWS)
    return buffer.getvalue()
