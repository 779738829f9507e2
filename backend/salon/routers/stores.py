# backend/salon/routers/stores.py
# Public catalogue, read-only: stores, the menus they offer, their staff

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from ..database import get_db
from ..models.generated import (
    Menus as DBMenus,
    Staff as DBStaff,
    StaffMenus as DBStaffMenus,
    StoreMenus as DBStoreMenus,
    Stores as DBStores,
)
from ..schemas.stores import MenuRead, StaffRead, StoreRead
from ..services.pricing import calculate_original_price

router = APIRouter(prefix="/stores", tags=["stores"])


def _get_active_store(db: Session, id: int) -> DBStores:
    obj = db.get(DBStores, id)
    if not obj or not obj.is_active:
        raise HTTPException(status_code=404, detail="Not found")
    return obj


@router.get("", response_model=list[StoreRead])
def list_stores(db: Session = Depends(get_db)):
    return (
        db.query(DBStores)
        .filter(DBStores.is_active == 1)
        .order_by(DBStores.name)
        .all()
    )


@router.get("/{id}/menus", response_model=list[MenuRead])
def list_store_menus(id: int, db: Session = Depends(get_db)):
    _get_active_store(db, id)

    menus = (
        db.query(DBMenus)
        .join(DBStoreMenus, DBStoreMenus.menu_id == DBMenus.id)
        .filter(
            DBStoreMenus.store_id == id,
            DBStoreMenus.is_active == 1,
            DBMenus.is_active == 1,
        )
        .order_by(DBMenus.display_order, DBMenus.id)
        .all()
    )

    return [
        MenuRead(
            id=m.id,
            name=m.name,
            description=m.description,
            duration=m.duration,
            buffer_before=m.buffer_before,
            buffer_after=m.buffer_after,
            price=m.price,
            tax_rate=m.tax_rate,
            price_with_tax=calculate_original_price(m.price, m.tax_rate),
            display_order=m.display_order,
        )
        for m in menus
    ]


@router.get("/{id}/staff", response_model=list[StaffRead])
def list_store_staff(
    id: int,
    menu_id: int | None = None,
    db: Session = Depends(get_db),
):
    """Active staff; with menu_id, those linked to the menu (no links = everyone)."""
    _get_active_store(db, id)

    query = db.query(DBStaff).filter(
        DBStaff.store_id == id,
        DBStaff.is_active == 1,
    )

    if menu_id is not None:
        linked = (
            db.query(DBStaffMenus.staff_id)
            .filter(DBStaffMenus.menu_id == menu_id)
            .all()
        )
        if linked:
            query = query.filter(DBStaff.id.in_([row.staff_id for row in linked]))

    return query.order_by(DBStaff.display_order, DBStaff.id).all()
