"""
Request bodies - the frontend speaks camelCase
"""
from typing import Optional
from pydantic import BaseModel, Field


class AuthStartRequest(BaseModel):
    account_id: Optional[str] = Field(default=None, alias="accountId")

    class Config:
        populate_by_name = True


class ShopFinalizeRequest(BaseModel):
    code: str
    account_id: str = Field(alias="accountId")

    class Config:
        populate_by_name = True


class TikTokSyncRequest(BaseModel):
    sync_type: str = Field(default="all", alias="syncType", pattern="^(all|user|videos)$")

    class Config:
        populate_by_name = True


class ShopSyncRequest(BaseModel):
    sync_type: str = Field(
        default="all",
        alias="syncType",
        pattern="^(all|orders|products|settlements|performance)$",
    )
    shop_id: Optional[str] = Field(default=None, alias="shopId")

    class Config:
        populate_by_name = True
