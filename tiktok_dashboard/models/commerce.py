"""
TikTok Shop snapshots: orders, products, settlements, daily performance
"""
from sqlalchemy import Column, String, Text, Integer, Numeric, Date, DateTime, UniqueConstraint

from tiktok_dashboard.core.database import Base
from .base import UUIDMixin, TimestampMixin, JSONType


class ShopOrder(Base, UUIDMixin, TimestampMixin):
    __tablename__ = "shop_orders"

    order_id = Column(String(100), nullable=False, unique=True, index=True)
    shop_id = Column(String(100), nullable=False, index=True)
    account_id = Column(String(64), nullable=False, index=True)
    order_status = Column(String(50))
    order_amount = Column(Numeric(14, 2), default=0)
    currency = Column(String(10))
    payment_method = Column(String(100))
    shipping_provider = Column(String(100))
    tracking_number = Column(String(100))
    buyer_uid = Column(String(100))
    created_time = Column(DateTime)
    updated_time = Column(DateTime)
    line_items = Column(JSONType)
    recipient_address = Column(JSONType)

    def __repr__(self):
        return f"<ShopOrder {self.order_id} {self.order_status}>"


class ShopProduct(Base, UUIDMixin, TimestampMixin):
    __tablename__ = "shop_products"

    product_id = Column(String(100), nullable=False, unique=True, index=True)
    shop_id = Column(String(100), nullable=False, index=True)
    account_id = Column(String(64), nullable=False, index=True)
    name = Column(Text)
    sku = Column(String(200))
    status = Column(String(50))
    price = Column(Numeric(14, 2))
    currency = Column(String(10))
    stock_quantity = Column(Integer, default=0)
    sales_count = Column(Integer, default=0)
    main_image_url = Column(Text)
    created_time = Column(DateTime)
    updated_time = Column(DateTime)

    def __repr__(self):
        return f"<ShopProduct {self.product_id} {self.sku}>"


class ShopSettlement(Base, UUIDMixin, TimestampMixin):
    __tablename__ = "shop_settlements"

    settlement_id = Column(String(100), nullable=False, unique=True, index=True)
    shop_id = Column(String(100), nullable=False, index=True)
    account_id = Column(String(64), nullable=False, index=True)
    settlement_time = Column(DateTime)
    currency = Column(String(10))
    settlement_amount = Column(Numeric(14, 2), default=0)
    revenue_amount = Column(Numeric(14, 2), default=0)
    fee_amount = Column(Numeric(14, 2), default=0)
    adjustment_amount = Column(Numeric(14, 2), default=0)
    status = Column(String(50))

    def __repr__(self):
        return f"<ShopSettlement {self.settlement_id}>"


class ShopPerformance(Base, UUIDMixin, TimestampMixin):
    __tablename__ = "shop_performance"

    shop_id = Column(String(100), nullable=False, index=True)
    account_id = Column(String(64), nullable=False, index=True)
    date = Column(Date, nullable=False)
    orders_count = Column(Integer, default=0)
    gross_revenue = Column(Numeric(14, 2), default=0)
    items_sold = Column(Integer, default=0)
    average_order_value = Column(Numeric(14, 2), default=0)
    shop_rating = Column(Numeric(4, 2))
    performance_data = Column(JSONType)

    __table_args__ = (
        UniqueConstraint("shop_id", "date", name="uq_shop_performance_shop_date"),
    )

    def __repr__(self):
        return f"<ShopPerformance {self.shop_id} {self.date}>"
