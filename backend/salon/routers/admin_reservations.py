# backend/salon/routers/admin_reservations.py
# Reservations are never hard-deleted: DELETE = 405 (set status instead)

from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from redis import Redis
from sqlalchemy.orm import Session

from ..database import get_db
from ..redis_client import get_redis
from ..schemas.reservations import (
    AdminReservationCreate,
    ReservationCreated,
    ReservationDetail,
    ReservationListResponse,
    ReservationRead,
    ReservationStatus,
    ReservationUpdate,
)
from ..services.reservations import (
    create_reservation,
    get_reservation,
    list_reservations,
    update_reservation,
)
from ..services.system_settings import SystemSettings, get_system_settings

router = APIRouter(prefix="/admin/reservations", tags=["admin_reservations"])


@router.get("", response_model=ReservationListResponse)
def list_admin_reservations(
    store_id: Optional[int] = None,
    staff_id: Optional[int] = None,
    menu_id: Optional[int] = None,
    status_filter: Optional[ReservationStatus] = Query(None, alias="status"),
    date_from: Optional[date] = None,
    date_to: Optional[date] = None,
    search: Optional[str] = None,
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    db: Session = Depends(get_db),
):
    """
    Search reservations for the back office.
    Ordered by start_time DESC (latest first).
    """
    reservations, total = list_reservations(
        db,
        store_id=store_id,
        staff_id=staff_id,
        menu_id=menu_id,
        status=status_filter,
        date_from=date_from,
        date_to=date_to,
        search=search,
        page=page,
        limit=limit,
    )

    return ReservationListResponse(
        reservations=[ReservationRead.model_validate(r) for r in reservations],
        page=page,
        limit=limit,
        total=total,
        total_pages=(total + limit - 1) // limit,
    )


@router.post("", response_model=ReservationCreated, status_code=status.HTTP_201_CREATED)
def create_admin_reservation(
    data: AdminReservationCreate,
    db: Session = Depends(get_db),
    redis: Redis = Depends(get_redis),
    system_settings: SystemSettings = Depends(get_system_settings),
):
    """Phone/walk-in booking: any interval, outside the public slot grid."""
    result = create_reservation(
        db,
        store_id=data.store_id,
        menu_id=data.menu_id,
        staff_id=data.staff_id,
        start_time=data.start_time,
        end_time=data.end_time,
        customer=data,
        coupon_code=data.coupon_code,
        system_settings=system_settings,
        channel=data.channel,
        status=data.status,
        admin_note=data.admin_note,
        performed_by="admin",
        enforce_schedule=False,
        redis=redis,
    )

    return ReservationCreated(
        reservation=ReservationRead.model_validate(result.reservation),
        cancel_token=result.reservation.cancel_token,
        original_price=result.original_price,
        discount_amount=result.discount_amount,
        final_price=result.final_price,
    )


@router.get("/{id}", response_model=ReservationDetail)
def get_admin_reservation(id: int, db: Session = Depends(get_db)):
    return get_reservation(db, id)


@router.patch("/{id}", response_model=ReservationRead)
def patch_admin_reservation(
    id: int,
    data: ReservationUpdate,
    db: Session = Depends(get_db),
    redis: Redis = Depends(get_redis),
):
    patch = data.model_dump(exclude_unset=True)
    send_notification = patch.pop("send_notification", False)

    return update_reservation(
        db,
        id,
        patch,
        performed_by="admin",
        send_notification=send_notification,
        redis=redis,
    )


@router.delete("/{id}")
def delete_not_allowed():
    raise HTTPException(
        status_code=status.HTTP_405_METHOD_NOT_ALLOWED,
        detail="Method not allowed",
    )
