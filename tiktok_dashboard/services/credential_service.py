"""
Credential store - OAuth tokens per account and authorized shops per (account, shop)
"""
from typing import Optional, List, Dict, Any, Sequence
import logging

from sqlalchemy.orm import Session

from tiktok_dashboard.integrations.base import TokenSet, utcnow
from tiktok_dashboard.models import TikTokAuthToken, TikTokShop

logger = logging.getLogger(__name__)


# ========== Upsert helper ==========

def _dialect_insert(db: Session):
    dialect = db.get_bind().dialect.name
    if dialect == "postgresql":
        from sqlalchemy.dialects.postgresql import insert
    elif dialect == "sqlite":
        from sqlalchemy.dialects.sqlite import insert
    else:
        raise RuntimeError(f"Upsert not supported for dialect: {dialect}")
    return insert


def upsert(
    db: Session,
    model,
    values: Dict[str, Any],
    conflict_columns: Sequence[str],
    update_columns: Optional[Sequence[str]] = None,
    commit: bool = True,
):
    """
    INSERT ... ON CONFLICT (conflict_columns) DO UPDATE, committed on its own.
    Columns not listed in `values` keep their stored value on update.
    """
    insert = _dialect_insert(db)
    stmt = insert(model).values(**values)

    if update_columns is None:
        update_columns = [c for c in values if c not in conflict_columns]
    set_ = {c: stmt.excluded[c] for c in update_columns}
    if "updated_at" in model.__table__.c:
        set_["updated_at"] = utcnow()

    stmt = stmt.on_conflict_do_update(index_elements=list(conflict_columns), set_=set_)
    try:
        db.execute(stmt)
        if commit:
            db.commit()
    except Exception:
        db.rollback()
        raise


# ========== Personal account tokens ==========

def get_account_token(db: Session, account_id: str) -> Optional[TikTokAuthToken]:
    return db.query(TikTokAuthToken).filter(TikTokAuthToken.account_id == account_id).first()


def save_account_token(db: Session, account_id: str, token: TokenSet) -> TikTokAuthToken:
    """Insert or replace the account's token row"""
    now = utcnow()
    upsert(
        db,
        TikTokAuthToken,
        {
            "account_id": account_id,
            "access_token": token.access_token,
            "refresh_token": token.refresh_token,
            "token_type": token.token_type,
            "expires_at": token.expires_at(now),
            "refresh_expires_at": token.refresh_expires_at(now),
            "scope": token.scope,
            "open_id": token.open_id,
        },
        conflict_columns=["account_id"],
    )
    logger.info(f"Saved TikTok token for account {account_id}")
    db.expire_all()
    return get_account_token(db, account_id)


def update_account_token(db: Session, row: TikTokAuthToken, token: TokenSet) -> TikTokAuthToken:
    now = utcnow()
    row.access_token = token.access_token
    row.refresh_token = token.refresh_token or row.refresh_token
    row.expires_at = token.expires_at(now)
    if token.refresh_expires_in:
        row.refresh_expires_at = token.refresh_expires_at(now)
    if token.scope:
        row.scope = token.scope
    if token.open_id:
        row.open_id = token.open_id
    db.commit()
    db.refresh(row)
    return row


def delete_account_token(db: Session, account_id: str) -> bool:
    deleted = db.query(TikTokAuthToken).filter(TikTokAuthToken.account_id == account_id).delete()
    db.commit()
    if deleted:
        logger.info(f"Deleted TikTok token for account {account_id}")
    return bool(deleted)


# ========== Shops ==========

def get_shops(db: Session, account_id: str) -> List[TikTokShop]:
    return (
        db.query(TikTokShop)
        .filter(TikTokShop.account_id == account_id)
        .order_by(TikTokShop.created_at)
        .all()
    )


def get_all_shops(db: Session) -> List[TikTokShop]:
    return db.query(TikTokShop).order_by(TikTokShop.account_id, TikTokShop.created_at).all()


def get_shop(db: Session, account_id: str, shop_id: Optional[str] = None) -> Optional[TikTokShop]:
    """A specific shop, or the account's first shop when shop_id is omitted"""
    query = db.query(TikTokShop).filter(TikTokShop.account_id == account_id)
    if shop_id:
        query = query.filter(TikTokShop.shop_id == shop_id)
    return query.order_by(TikTokShop.created_at).first()


def save_shops(db: Session, account_id: str, shops: List[Dict[str, Any]], token: TokenSet) -> List[TikTokShop]:
    """
    Upsert every authorized shop keyed by (account_id, shop_id).
    Re-authorizing updates the existing rows in place.
    """
    now = utcnow()
    for shop in shops:
        shop_id = str(shop.get("id") or shop.get("shop_id") or "")
        if not shop_id:
            logger.warning(f"Skipping authorized shop without id: {shop}")
            continue
        upsert(
            db,
            TikTokShop,
            {
                "account_id": account_id,
                "shop_id": shop_id,
                "shop_cipher": shop.get("cipher") or shop.get("shop_cipher"),
                "shop_name": shop.get("name") or shop.get("shop_name"),
                "region": shop.get("region"),
                "seller_type": shop.get("seller_type"),
                "seller_name": token.seller_name,
                "access_token": token.access_token,
                "refresh_token": token.refresh_token,
                "token_expires_at": token.expires_at(now),
                "refresh_token_expires_at": token.refresh_expires_at(now),
            },
            conflict_columns=["account_id", "shop_id"],
        )
    logger.info(f"Saved {len(shops)} TikTok shop(s) for account {account_id}")
    db.expire_all()
    return get_shops(db, account_id)


def update_shop_tokens(db: Session, shop: TikTokShop, token: TokenSet) -> List[TikTokShop]:
    """
    Apply refreshed tokens to every shop of the account that shared the old refresh token
    """
    now = utcnow()
    siblings = (
        db.query(TikTokShop)
        .filter(
            TikTokShop.account_id == shop.account_id,
            TikTokShop.refresh_token == shop.refresh_token,
        )
        .all()
    )
    if shop not in siblings:
        siblings.append(shop)

    for row in siblings:
        row.access_token = token.access_token
        row.refresh_token = token.refresh_token or row.refresh_token
        row.token_expires_at = token.expires_at(now)
        if token.refresh_expires_in:
            row.refresh_token_expires_at = token.refresh_expires_at(now)
    db.commit()
    for row in siblings:
        db.refresh(row)
    return siblings


def delete_shops(db: Session, account_id: str, shop_id: Optional[str] = None) -> int:
    query = db.query(TikTokShop).filter(TikTokShop.account_id == account_id)
    if shop_id:
        query = query.filter(TikTokShop.shop_id == shop_id)
    deleted = query.delete(synchronize_session=False)
    db.commit()
    logger.info(f"Deleted {deleted} TikTok shop(s) for account {account_id}")
    return deleted
