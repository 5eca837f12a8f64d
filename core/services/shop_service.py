# =============================================================================
# core/services/shop_service.py - Reward Shop
# =============================================================================
# Shop items live in coin_spending_categories. Themes are the main item
# type; owning a theme is recorded in user_purchased_themes so it can't be
# bought twice.
# =============================================================================

import logging
import re
from typing import Any

from lib.supabase_client import SupabaseClient
from lib.utils import utcnow
from core.models.coins import PurchaseResult, ShopItem, ShopItemCreate
from core.services.coin_service import CoinService
from app.exceptions import (
    InsufficientCoinsError,
    ItemAlreadyOwnedError,
    ShopItemNotFoundError,
)

logger = logging.getLogger(__name__)

SHOP_TABLE = "coin_spending_categories"


def slugify(name: str) -> str:
    """Lowercase a name and join words with hyphens (Ocean Breeze -> ocean-breeze)."""
    return re.sub(r"\s+", "-", name.strip().lower())


def to_shop_item(row: dict[str, Any]) -> ShopItem:
    """Convert a coin_spending_categories row to the shop's item shape."""
    metadata = row.get("metadata") or {}
    return ShopItem(
        id=str(row["id"]),
        item_name=row.get("name") or row.get("item_name") or str(row["id"]),
        description=row.get("description"),
        category_name=metadata.get("category") or "theme",
        cost=row.get("base_cost", row.get("cost", 0)) or 0,
        requirements=row.get("unlock_requirements") or {},
        metadata=metadata,
        created_at=row.get("created_at"),
    )


class ShopService:
    """Reward shop listing and purchases."""

    @staticmethod
    def list_items(category: str | None = None) -> list[ShopItem]:
        """Active items, cheapest first, optionally filtered by category."""
        rows = SupabaseClient.select_many(
            SHOP_TABLE,
            {"is_active": True},
            order_by="base_cost",
        )
        items = [to_shop_item(r) for r in rows]
        if category and category != "all":
            items = [i for i in items if i.category_name == category]
        return items

    @staticmethod
    def get_item(item_id: str) -> ShopItem:
        """
        Raises:
            ShopItemNotFoundError: If the item doesn't exist or is inactive
        """
        row = SupabaseClient.select_one(SHOP_TABLE, {"id": item_id})
        if not row or row.get("is_active") is False:
            raise ShopItemNotFoundError(item_id)
        return to_shop_item(row)

    @staticmethod
    def create_item(data: ShopItemCreate) -> ShopItem:
        row = SupabaseClient.insert(
            SHOP_TABLE,
            {
                "id": data.id or slugify(data.name),
                "name": data.name,
                "description": data.description,
                "base_cost": data.base_cost,
                "is_active": True,
                "unlock_requirements": data.requirements,
                "metadata": {
                    "category": data.category,
                    "rarity": data.rarity,
                    **data.metadata,
                },
            },
        )
        logger.info(f"Created shop item {row['id']} ({data.base_cost} coins)")
        return to_shop_item(row)

    @staticmethod
    def list_owned_themes(user_id: str) -> list[dict[str, Any]]:
        return SupabaseClient.select_many(
            "user_purchased_themes",
            {"user_id": user_id},
            order_by="purchased_at",
            desc=True,
        )

    @staticmethod
    def purchase_item(user_id: str, item_id: str) -> PurchaseResult:
        """
        Buy a shop item with coins.

        Raises:
            ShopItemNotFoundError: Unknown or inactive item (404)
            InsufficientCoinsError: Balance below cost (400)
            ItemAlreadyOwnedError: Theme already owned (400)
        """
        item = ShopService.get_item(item_id)

        balance = CoinService.get_balance(user_id)
        if balance.current_balance < item.cost:
            raise InsufficientCoinsError(required=item.cost, current=balance.current_balance)

        is_theme = item.metadata.get("type") == "theme"
        theme_id = item.metadata.get("theme_id") or item.id
        if is_theme:
            owned = SupabaseClient.select_one(
                "user_purchased_themes",
                {"user_id": user_id, "theme_id": theme_id},
            )
            if owned:
                raise ItemAlreadyOwnedError(theme_id)

        new_balance = balance.current_balance
        # Free items skip the ledger
        if item.cost > 0:
            new_balance = CoinService.spend_coins(
                user_id,
                item.cost,
                source="shop_purchase",
                description=f"Purchased {item.item_name}",
                metadata={"item_id": item.id, "category": item.category_name},
            ).new_balance

        if is_theme:
            SupabaseClient.insert(
                "user_purchased_themes",
                {
                    "user_id": user_id,
                    "theme_id": theme_id,
                    "item_id": item.id,
                    "cost": item.cost,
                    "purchased_at": utcnow().isoformat(),
                },
            )

        logger.info(f"User {user_id} purchased {item.id} for {item.cost} coins")
        return PurchaseResult(
            item=item,
            cost=item.cost,
            new_balance=new_balance,
        )
