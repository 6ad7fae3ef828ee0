from typing import List

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from salon_booking.api.deps.database import get_db
from salon_booking.core.exceptions import NotFoundError
from salon_booking.schemas.client import Client
from salon_booking.services.client import ClientService

router = APIRouter()


@router.get("/", response_model=List[Client])
async def list_clients(db: AsyncSession = Depends(get_db)):
    return await ClientService(db).list_clients()


@router.get("/{client_id}", response_model=Client)
async def get_client(client_id: int, db: AsyncSession = Depends(get_db)):
    try:
        return await ClientService(db).get_client(client_id)
    except NotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))


@router.delete("/{client_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_client(client_id: int, db: AsyncSession = Depends(get_db)):
    """Delete a client without appointments, and its user when possible."""
    try:
        await ClientService(db).delete_client(client_id)
    except NotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
