# =============================================================================
# core/models/coins.py - Coin Economy & Reward Shop Schemas
# =============================================================================
# The coin ledger is append-only: every change to a balance is a row in
# coin_transactions with a signed amount (earned > 0, spent < 0).
# =============================================================================

from datetime import datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field


class TransactionType(str, Enum):
    EARNED = "earned"
    SPENT = "spent"
    BONUS = "bonus"
    REFUND = "refund"
    PENALTY = "penalty"


class CoinBalance(BaseModel):
    user_id: str
    current_balance: int = Field(default=0, ge=0)
    lifetime_earned: int = Field(default=0, ge=0)
    last_updated: datetime | None = None


class CoinTransaction(BaseModel):
    id: str | None = None
    user_id: str
    amount: int
    transaction_type: TransactionType
    source: str
    description: str | None = None
    metadata: dict[str, Any] = Field(default_factory=dict)
    created_at: datetime | None = None


class CoinTransactionResult(BaseModel):
    """Outcome of an earn/spend call."""

    success: bool = True
    amount: int
    new_balance: int
    transaction: CoinTransaction


class CoinAnalytics(BaseModel):
    total_earned: int = 0
    total_spent: int = 0
    net: int = 0
    transaction_count: int = 0
    most_common_earning_source: str | None = None
    most_common_spending_source: str | None = None
    period_days: int | None = None


class EarningSummary(BaseModel):
    today: int = 0
    last_7_days: int = 0
    current_balance: int = 0


class EarnCoinsRequest(BaseModel):
    """POST /gamification/coins/earn body."""

    source: str = Field(..., min_length=1, examples=["study_session"])
    # Omit to use the source's base earning
    amount: int | None = Field(default=None, gt=0)
    description: str | None = None
    metadata: dict[str, Any] = Field(default_factory=dict)


# =============================================================================
# Reward Shop
# =============================================================================

class ShopItem(BaseModel):
    """Item from coin_spending_categories, in the shape the shop UI expects."""

    id: str
    item_name: str
    description: str | None = None
    category_name: str = "theme"
    cost: int = Field(..., ge=0)
    requirements: dict[str, Any] = Field(default_factory=dict)
    metadata: dict[str, Any] = Field(default_factory=dict)
    created_at: datetime | None = None


class ShopItemCreate(BaseModel):
    """POST /gamification/shop-items body."""

    id: str | None = None
    name: str = Field(..., min_length=1)
    description: str | None = None
    base_cost: int = Field(..., gt=0)
    category: str = "theme"
    rarity: str = "common"
    requirements: dict[str, Any] = Field(default_factory=dict)
    metadata: dict[str, Any] = Field(default_factory=dict)


class PurchaseRequest(BaseModel):
    item_id: str = Field(..., min_length=1)


class PurchaseResult(BaseModel):
    success: bool = True
    item: ShopItem
    cost: int
    new_balance: int
    message: str = "Purchase successful"
