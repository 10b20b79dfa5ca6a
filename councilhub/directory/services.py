from __future__ import annotations

from typing import Optional, Sequence

from sqlalchemy import or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from councilhub.directory.enums import ContactType
from councilhub.directory.models import Contact
from councilhub.utils import _get_or_404


async def list_contacts(
    session: AsyncSession,
    *,
    search: Optional[str] = None,
    contact_type: Optional[ContactType] = None,
) -> Sequence[Contact]:
    q = select(Contact)
    if search:
        pattern = f"%{search.strip()}%"
        q = q.where(
            or_(
                Contact.contact_name.ilike(pattern),
                Contact.organization.ilike(pattern),
                Contact.email.ilike(pattern),
                Contact.phone.ilike(pattern),
            )
        )
    if contact_type is not None:
        q = q.where(Contact.contact_type == contact_type)
    q = q.order_by(Contact.contact_name.asc(), Contact.id.asc())
    return (await session.execute(q)).scalars().all()


async def get_contact(session: AsyncSession, contact_id: int) -> Contact:
    return await _get_or_404(session, Contact, contact_id)


async def create_contact(session: AsyncSession, *, added_by_id: int, **fields) -> Contact:
    contact = Contact(added_by_id=added_by_id, modified_by_id=added_by_id, **fields)
    session.add(contact)
    await session.flush()
    await session.refresh(contact)
    return contact


async def update_contact(
    session: AsyncSession, contact_id: int, *, modified_by_id: int, **fields
) -> Contact:
    contact = await _get_or_404(session, Contact, contact_id)
    for k, v in fields.items():
        setattr(contact, k, v)
    contact.modified_by_id = modified_by_id
    await session.flush()
    await session.refresh(contact)
    return contact


async def delete_contact(session: AsyncSession, contact_id: int) -> None:
    contact = await _get_or_404(session, Contact, contact_id)
    await session.delete(contact)
    await session.flush()
