from sqlalchemy import (
    CheckConstraint,
    Column,
    Date,
    DateTime,
    Enum,
    Float,
    ForeignKey,
    Index,
    Integer,
    Text,
    UniqueConstraint,
    text,
)

from sqlalchemy.orm import declarative_base, relationship

Base = declarative_base()
metadata = Base.metadata

RESERVATION_STATUSES = ('reserved', 'visited', 'cancelled', 'noshow')
RESERVATION_CHANNELS = ('web', 'phone')
DISCOUNT_TYPES = ('percent', 'fixed')


class Stores(Base):
    __tablename__ = 'stores'

    name = Column(Text, nullable=False)
    id = Column(Integer, primary_key=True)
    address = Column(Text)
    phone = Column(Text)
    email = Column(Text)
    is_active = Column(Integer, nullable=False, server_default=text('1'))
    created_at = Column(Text, server_default=text('CURRENT_TIMESTAMP'))

    business_hours = relationship('BusinessHours', back_populates='store', order_by='BusinessHours.day_of_week')
    holidays = relationship('Holidays', back_populates='store')
    staff = relationship('Staff', back_populates='store')
    store_menus = relationship('StoreMenus', back_populates='store')
    reservations = relationship('Reservations', back_populates='store')


class BusinessHours(Base):
    __tablename__ = 'business_hours'
    __table_args__ = (
        UniqueConstraint('store_id', 'day_of_week'),
    )

    store_id = Column(ForeignKey('stores.id', ondelete='CASCADE'), nullable=False)
    day_of_week = Column(Integer, nullable=False)  # 0 = Sunday … 6 = Saturday
    open_time = Column(Text, nullable=False)  # "HH:MM"
    close_time = Column(Text, nullable=False)  # "HH:MM"
    is_open = Column(Integer, nullable=False, server_default=text('1'))
    id = Column(Integer, primary_key=True)

    store = relationship('Stores', back_populates='business_hours')


class Holidays(Base):
    __tablename__ = 'holidays'
    __table_args__ = (
        UniqueConstraint('store_id', 'date'),
    )

    store_id = Column(ForeignKey('stores.id', ondelete='CASCADE'), nullable=False)
    date = Column(Date, nullable=False)
    id = Column(Integer, primary_key=True)
    name = Column(Text)

    store = relationship('Stores', back_populates='holidays')


class Menus(Base):
    __tablename__ = 'menus'

    name = Column(Text, nullable=False)
    duration = Column(Integer, nullable=False)
    buffer_before = Column(Integer, nullable=False, server_default=text('0'))
    buffer_after = Column(Integer, nullable=False, server_default=text('0'))
    price = Column(Integer, nullable=False)  # pre-tax
    tax_rate = Column(Float, nullable=False, server_default=text('0.1'))
    id = Column(Integer, primary_key=True)
    description = Column(Text)
    display_order = Column(Integer, nullable=False, server_default=text('0'))
    is_active = Column(Integer, nullable=False, server_default=text('1'))

    store_menus = relationship('StoreMenus', back_populates='menu')
    staff_menus = relationship('StaffMenus', back_populates='menu')
    reservations = relationship('Reservations', back_populates='menu')

    @property
    def effective_duration(self) -> int:
        """Minutes a staff member is occupied: service time plus both buffers."""
        return self.duration + (self.buffer_before or 0) + (self.buffer_after or 0)


class StoreMenus(Base):
    __tablename__ = 'store_menus'
    __table_args__ = (
        UniqueConstraint('store_id', 'menu_id'),
    )

    store_id = Column(ForeignKey('stores.id', ondelete='CASCADE'), nullable=False)
    menu_id = Column(ForeignKey('menus.id', ondelete='CASCADE'), nullable=False)
    is_active = Column(Integer, nullable=False, server_default=text('1'))
    id = Column(Integer, primary_key=True)

    store = relationship('Stores', back_populates='store_menus')
    menu = relationship('Menus', back_populates='store_menus')


class Staff(Base):
    __tablename__ = 'staff'

    store_id = Column(ForeignKey('stores.id', ondelete='CASCADE'), nullable=False)
    name = Column(Text, nullable=False)
    id = Column(Integer, primary_key=True)
    display_order = Column(Integer, nullable=False, server_default=text('0'))
    is_active = Column(Integer, nullable=False, server_default=text('1'))
    created_at = Column(Text, server_default=text('CURRENT_TIMESTAMP'))

    store = relationship('Stores', back_populates='staff')
    staff_menus = relationship('StaffMenus', back_populates='staff')
    reservations = relationship('Reservations', back_populates='staff')


class StaffMenus(Base):
    __tablename__ = 'staff_menus'
    __table_args__ = (
        UniqueConstraint('staff_id', 'menu_id'),
    )

    staff_id = Column(ForeignKey('staff.id', ondelete='CASCADE'), nullable=False)
    menu_id = Column(ForeignKey('menus.id', ondelete='CASCADE'), nullable=False)
    id = Column(Integer, primary_key=True)

    staff = relationship('Staff', back_populates='staff_menus')
    menu = relationship('Menus', back_populates='staff_menus')


class Coupons(Base):
    __tablename__ = 'coupons'
    __table_args__ = (
        CheckConstraint(
            'max_usage_total IS NULL OR usage_count <= max_usage_total',
            name='ck_coupons_usage_cap',
        ),
    )

    code = Column(Text, nullable=False, unique=True)
    name = Column(Text, nullable=False)
    discount_type = Column(Enum(*DISCOUNT_TYPES), nullable=False)
    discount_value = Column(Integer, nullable=False)
    start_date = Column(DateTime, nullable=False)
    end_date = Column(DateTime, nullable=False)
    id = Column(Integer, primary_key=True)
    is_active = Column(Integer, nullable=False, server_default=text('1'))
    max_usage_total = Column(Integer)  # NULL = unlimited
    usage_count = Column(Integer, nullable=False, server_default=text('0'))
    min_purchase_amount = Column(Integer)
    created_at = Column(Text, server_default=text('CURRENT_TIMESTAMP'))

    coupon_stores = relationship('CouponStores', back_populates='coupon')
    coupon_menus = relationship('CouponMenus', back_populates='coupon')
    reservations = relationship('Reservations', back_populates='coupon')

    @property
    def store_ids(self) -> set[int]:
        return {cs.store_id for cs in self.coupon_stores}

    @property
    def menu_ids(self) -> set[int]:
        return {cm.menu_id for cm in self.coupon_menus}


class CouponStores(Base):
    __tablename__ = 'coupon_stores'
    __table_args__ = (
        UniqueConstraint('coupon_id', 'store_id'),
    )

    coupon_id = Column(ForeignKey('coupons.id', ondelete='CASCADE'), nullable=False)
    store_id = Column(ForeignKey('stores.id', ondelete='CASCADE'), nullable=False)
    id = Column(Integer, primary_key=True)

    coupon = relationship('Coupons', back_populates='coupon_stores')


class CouponMenus(Base):
    __tablename__ = 'coupon_menus'
    __table_args__ = (
        UniqueConstraint('coupon_id', 'menu_id'),
    )

    coupon_id = Column(ForeignKey('coupons.id', ondelete='CASCADE'), nullable=False)
    menu_id = Column(ForeignKey('menus.id', ondelete='CASCADE'), nullable=False)
    id = Column(Integer, primary_key=True)

    coupon = relationship('Coupons', back_populates='coupon_menus')


class Campaigns(Base):
    __tablename__ = 'campaigns'

    name = Column(Text, nullable=False)
    discount_type = Column(Enum(*DISCOUNT_TYPES), nullable=False)
    discount_value = Column(Integer, nullable=False)
    start_date = Column(DateTime, nullable=False)
    end_date = Column(DateTime, nullable=False)
    id = Column(Integer, primary_key=True)
    description = Column(Text)
    is_active = Column(Integer, nullable=False, server_default=text('1'))
    created_at = Column(Text, server_default=text('CURRENT_TIMESTAMP'))

    campaign_stores = relationship('CampaignStores', back_populates='campaign')
    campaign_menus = relationship('CampaignMenus', back_populates='campaign')
    reservations = relationship('Reservations', back_populates='campaign')

    @property
    def store_ids(self) -> set[int]:
        return {cs.store_id for cs in self.campaign_stores}

    @property
    def menu_ids(self) -> set[int]:
        return {cm.menu_id for cm in self.campaign_menus}


class CampaignStores(Base):
    __tablename__ = 'campaign_stores'
    __table_args__ = (
        UniqueConstraint('campaign_id', 'store_id'),
    )

    campaign_id = Column(ForeignKey('campaigns.id', ondelete='CASCADE'), nullable=False)
    store_id = Column(ForeignKey('stores.id', ondelete='CASCADE'), nullable=False)
    id = Column(Integer, primary_key=True)

    campaign = relationship('Campaigns', back_populates='campaign_stores')


class CampaignMenus(Base):
    __tablename__ = 'campaign_menus'
    __table_args__ = (
        UniqueConstraint('campaign_id', 'menu_id'),
    )

    campaign_id = Column(ForeignKey('campaigns.id', ondelete='CASCADE'), nullable=False)
    menu_id = Column(ForeignKey('menus.id', ondelete='CASCADE'), nullable=False)
    id = Column(Integer, primary_key=True)

    campaign = relationship('Campaigns', back_populates='campaign_menus')


class Reservations(Base):
    __tablename__ = 'reservations'
    __table_args__ = (
        CheckConstraint(
            'coupon_id IS NULL OR campaign_id IS NULL',
            name='ck_reservations_single_discount_source',
        ),
        CheckConstraint('final_price >= 0', name='ck_reservations_final_price'),
        Index('ix_reservations_staff_start', 'staff_id', 'start_time'),
    )

    store_id = Column(ForeignKey('stores.id'), nullable=False)
    menu_id = Column(ForeignKey('menus.id'), nullable=False)
    staff_id = Column(ForeignKey('staff.id', ondelete='SET NULL'))
    # Salon-local wall-clock time
    start_time = Column(DateTime, nullable=False)
    end_time = Column(DateTime, nullable=False)
    customer_name = Column(Text, nullable=False)
    customer_email = Column(Text, nullable=False)
    customer_phone = Column(Text, nullable=False)
    cancel_token = Column(Text, nullable=False, unique=True)
    id = Column(Integer, primary_key=True)
    language = Column(Text, nullable=False, server_default=text("'ja'"))
    channel = Column(Enum(*RESERVATION_CHANNELS), nullable=False, server_default=text("'web'"))
    status = Column(Enum(*RESERVATION_STATUSES), nullable=False, server_default=text("'reserved'"))
    original_price = Column(Integer, nullable=False, server_default=text('0'))
    discount_amount = Column(Integer, nullable=False, server_default=text('0'))
    final_price = Column(Integer, nullable=False, server_default=text('0'))
    coupon_id = Column(ForeignKey('coupons.id', ondelete='SET NULL'))
    campaign_id = Column(ForeignKey('campaigns.id', ondelete='SET NULL'))
    admin_note = Column(Text)
    created_by = Column(Text, nullable=False, server_default=text("'customer'"))
    updated_by = Column(Text)
    created_at = Column(Text, nullable=False, server_default=text('CURRENT_TIMESTAMP'))
    updated_at = Column(Text, nullable=False, server_default=text('CURRENT_TIMESTAMP'))

    store = relationship('Stores', back_populates='reservations')
    menu = relationship('Menus', back_populates='reservations')
    staff = relationship('Staff', back_populates='reservations')
    coupon = relationship('Coupons', back_populates='reservations')
    campaign = relationship('Campaigns', back_populates='reservations')
    audit_logs = relationship(
        'ReservationAuditLogs',
        back_populates='reservation',
        order_by='ReservationAuditLogs.id.desc()',
    )

    @property
    def discount_source(self):
        from ..services.pricing import DiscountSource
        return DiscountSource.from_ids(self.coupon_id, self.campaign_id)


class ReservationAuditLogs(Base):
    __tablename__ = 'reservation_audit_logs'

    id = Column(Integer, primary_key=True)
    reservation_id = Column(ForeignKey('reservations.id', ondelete='CASCADE'), nullable=False)
    action = Column(Text, nullable=False)
    changes = Column(Text)  # JSON
    performed_by = Column(Text, nullable=False)
    performed_at = Column(
        Text,
        nullable=False,
        server_default=text('CURRENT_TIMESTAMP')
    )

    reservation = relationship('Reservations', back_populates='audit_logs')


class SystemSettings(Base):
    __tablename__ = 'system_settings'

    key = Column(Text, nullable=False, unique=True)
    value = Column(Text, nullable=False)
    id = Column(Integer, primary_key=True)
    updated_at = Column(Text, server_default=text('CURRENT_TIMESTAMP'))
