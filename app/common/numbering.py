"""
Document numbers for bills

- Order bills:    INV-YYYYMMDD-0001
- Purchase bills: PBYYYYMMDD-001

The sequence restarts every day and is scoped per tenant. A unique constraint
on the number column is the final guard against two saves racing for the
same number.
"""
from datetime import date
from sqlalchemy.orm import Session
from uuid import UUID


def next_document_number(
    db: Session,
    model,
    column,
    tenant_id: UUID,
    prefix: str,
    width: int,
    on: date
) -> str:
    day_prefix = f"{prefix}{on.strftime('%Y%m%d')}-"
    count = db.query(model).filter(
        model.tenant_id == tenant_id,
        column.like(f"{day_prefix}%")
    ).count()

    sequence = count + 1
    number = f"{day_prefix}{sequence:0{width}d}"
    # Skip numbers a user already typed in by hand
    while db.query(model).filter(model.tenant_id == tenant_id, column == number).first():
        sequence += 1
        number = f"{day_prefix}{sequence:0{width}d}"
    return number
