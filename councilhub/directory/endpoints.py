from typing import List, Optional

from fastapi import APIRouter, Depends, File, Query, UploadFile, status
from fastapi.responses import Response
from sqlalchemy.ext.asyncio import AsyncSession

from councilhub.db.dependencies import get_db_session
from councilhub.directory import csv_import, services
from councilhub.directory.enums import ContactType
from councilhub.directory.schemas import ContactIn, ContactOut, ImportResult
from councilhub.members.models import User
from councilhub.members.permissions import require_editor
from councilhub.utils import ok
from councilhub.web.api.envelope import Envelope
from councilhub.web.api.errors import translate_service_errors

router = APIRouter()


@router.get("", response_model=Envelope[List[ContactOut]])
async def list_contacts(
    search: Optional[str] = None,
    contact_type: Optional[ContactType] = Query(None, alias="type"),
    current_user: User = Depends(require_editor),
    session: AsyncSession = Depends(get_db_session),
):
    contacts = await services.list_contacts(session, search=search, contact_type=contact_type)
    return ok([ContactOut.model_validate(c) for c in contacts])


@router.post("", response_model=Envelope[ContactOut], status_code=status.HTTP_201_CREATED)
@translate_service_errors
async def create_contact(
    payload: ContactIn,
    current_user: User = Depends(require_editor),
    session: AsyncSession = Depends(get_db_session),
):
    data = payload.model_dump()
    data["email"] = str(data["email"]) if data["email"] else None
    contact = await services.create_contact(session, added_by_id=current_user.id, **data)
    return ok(ContactOut.model_validate(contact), message="Contact created")


@router.get("/import/template")
async def download_template(current_user: User = Depends(require_editor)):
    return Response(
        content=csv_import.template_csv(),
        media_type="text/csv",
        headers={"Content-Disposition": 'attachment; filename="directory_template.csv"'},
    )


@router.post("/import", response_model=Envelope[ImportResult])
@translate_service_errors
async def import_contacts(
    file: UploadFile = File(...),
    current_user: User = Depends(require_editor),
    session: AsyncSession = Depends(get_db_session),
):
    """Best-effort bulk import; failing rows are listed in ``errors``."""
    content = csv_import.decode_upload(
        await file.read(), filename=file.filename, content_type=file.content_type
    )
    result = await csv_import.import_contacts(session, content, added_by_id=current_user.id)
    if result.total_rows == 0:
        message = "No rows found in file"
    else:
        message = f"Imported {result.imported_count} of {result.total_rows} contacts"
    return {
        "success": result.success,
        "data": result,
        "message": message,
        "warnings": result.errors,
    }


@router.get("/{contact_id}", response_model=Envelope[ContactOut])
@translate_service_errors
async def get_contact(
    contact_id: int,
    current_user: User = Depends(require_editor),
    session: AsyncSession = Depends(get_db_session),
):
    return ok(ContactOut.model_validate(await services.get_contact(session, contact_id)))


@router.put("/{contact_id}", response_model=Envelope[ContactOut])
@translate_service_errors
async def update_contact(
    contact_id: int,
    payload: ContactIn,
    current_user: User = Depends(require_editor),
    session: AsyncSession = Depends(get_db_session),
):
    data = payload.model_dump()
    data["email"] = str(data["email"]) if data["email"] else None
    contact = await services.update_contact(
        session, contact_id, modified_by_id=current_user.id, **data
    )
    return ok(ContactOut.model_validate(contact), message="Contact updated")


@router.delete("/{contact_id}", response_model=Envelope[None])
@translate_service_errors
async def delete_contact(
    contact_id: int,
    current_user: User = Depends(require_editor),
    session: AsyncSession = Depends(get_db_session),
):
    await services.delete_contact(session, contact_id)
    return ok(message="Contact deleted")
