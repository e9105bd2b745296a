"""
Reservation Service — Tables API
"""
from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from reservation_service.db.database import get_db
from reservation_service.models.reservation import Table
from reservation_service.schemas.reservation import TableResponse, TableStatusUpdate

router = APIRouter(prefix="/tables", tags=["tables"])


@router.get("", response_model=list[TableResponse])
async def list_tables(db: AsyncSession = Depends(get_db)):
    result = await db.execute(select(Table).order_by(Table.table_number.asc()))
    return result.scalars().all()


@router.patch("/{table_id}/status", response_model=TableResponse)
async def update_table_status(table_id: int, payload: TableStatusUpdate, db: AsyncSession = Depends(get_db)):
    """Staff or other services (order service on checkout) move a table between states."""
    table = await db.get(Table, table_id)
    if table is None:
        raise HTTPException(status_code=404, detail="Table not found")

    table.status = payload.status
    await db.commit()
    await db.refresh(table)
    return table
