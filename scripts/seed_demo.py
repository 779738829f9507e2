"""
Create the schema and seed a demo salon.

    python scripts/seed_demo.py

Idempotent: rows that already exist (matched by natural key) are left alone.
"""

import logging
import pathlib
import sys
from datetime import datetime

from dotenv import load_dotenv

ROOT = pathlib.Path(__file__).resolve().parents[1]
load_dotenv(ROOT / ".env")
sys.path.append(str(ROOT / "backend"))

from salon.database import SessionLocal, engine  # noqa: E402
from salon.models.generated import (  # noqa: E402
    Base,
    BusinessHours,
    CampaignMenus,
    CampaignStores,
    Campaigns,
    Coupons,
    Menus,
    Staff,
    StoreMenus,
    Stores,
    SystemSettings,
)

logging.basicConfig(level=logging.INFO, format="%(levelname)s %(message)s")
logger = logging.getLogger("seed_demo")


STORES = [
    {
        "name": "Shibuya",
        "address": "1-1-1 Shibuya, Shibuya-ku, Tokyo",
        "phone": "03-1234-5678",
        "email": "shibuya@example.com",
        "staff": ["Taro Yamada", "Hanako Sato", "Ichiro Suzuki"],
    },
    {
        "name": "Shinjuku",
        "address": "2-2-2 Shinjuku, Shinjuku-ku, Tokyo",
        "phone": "03-2345-6789",
        "email": "shinjuku@example.com",
        "staff": ["Misaki Tanaka", "Kenji Takahashi", "Sakura Ito", "Daisuke Watanabe"],
    },
]

MENUS = [
    {"name": "Body Care 60min", "description": "Standard full body course", "duration": 60, "buffer_after": 10, "price": 6000},
    {"name": "Body Care 90min", "description": "Extended full body course", "duration": 90, "buffer_after": 10, "price": 8500},
    {"name": "Foot Care 40min", "description": "Foot and lower leg care", "duration": 40, "buffer_after": 10, "price": 4500},
    {"name": "Head Care 30min", "description": "Head, neck and shoulders", "duration": 30, "buffer_after": 10, "price": 3500},
]

SETTINGS = {
    "timezone": "Asia/Tokyo",
    "default_language": "ja",
    "reminder_enabled": "true",
    "cancel_deadline_hours": "24",
    "booking_range_days": "90",
}


def _get_or_create(db, model, defaults=None, **lookup):
    obj = db.query(model).filter_by(**lookup).first()
    if obj:
        return obj, False
    obj = model(**lookup, **(defaults or {}))
    db.add(obj)
    db.flush()
    return obj, True


def seed(db) -> None:
    year = datetime.now().year
    valid_from = datetime(year, 1, 1)
    valid_to = datetime(year, 12, 31, 23, 59, 59)

    menus = []
    for i, data in enumerate(MENUS):
        menu, _ = _get_or_create(
            db, Menus,
            name=data["name"],
            defaults={
                "description": data["description"],
                "duration": data["duration"],
                "buffer_after": data["buffer_after"],
                "price": data["price"],
                "tax_rate": 0.1,
                "display_order": i,
            },
        )
        menus.append(menu)

    stores = []
    for data in STORES:
        store, created = _get_or_create(
            db, Stores,
            name=data["name"],
            defaults={k: data[k] for k in ("address", "phone", "email")},
        )
        stores.append(store)
        if created:
            logger.info(f"Created store: {store.name}")

        # Weekends close earlier
        for day in range(7):
            _get_or_create(
                db, BusinessHours,
                store_id=store.id,
                day_of_week=day,
                defaults={
                    "open_time": "10:00",
                    "close_time": "20:00" if day in (0, 6) else "22:00",
                    "is_open": 1,
                },
            )

        for menu in menus:
            _get_or_create(db, StoreMenus, store_id=store.id, menu_id=menu.id)

        for order, name in enumerate(data["staff"]):
            _get_or_create(
                db, Staff,
                store_id=store.id,
                name=name,
                defaults={"display_order": order},
            )

    campaign, created = _get_or_create(
        db, Campaigns,
        name="Spring Relaxation Campaign",
        defaults={
            "description": "10% off all courses",
            "discount_type": "percent",
            "discount_value": 10,
            "start_date": valid_from,
            "end_date": valid_to,
        },
    )
    if created:
        for store in stores:
            db.add(CampaignStores(campaign_id=campaign.id, store_id=store.id))
        for menu in menus:
            db.add(CampaignMenus(campaign_id=campaign.id, menu_id=menu.id))

    _get_or_create(
        db, Coupons,
        code="WELCOME500",
        defaults={
            "name": "First visit 500 yen off",
            "discount_type": "fixed",
            "discount_value": 500,
            "start_date": valid_from,
            "end_date": valid_to,
            "max_usage_total": 100,
        },
    )

    for key, value in SETTINGS.items():
        _get_or_create(db, SystemSettings, key=key, defaults={"value": value})

    db.commit()


def main():
    (ROOT / "data").mkdir(exist_ok=True)
    Base.metadata.create_all(bind=engine)

    db = SessionLocal()
    try:
        seed(db)
        logger.info("Seeding completed")
    finally:
        db.close()


if __name__ == "__main__":
    main()
