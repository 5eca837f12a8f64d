# =============================================================================
# app/routers/gamification.py - Coins, Shop, Streaks & Achievements
# =============================================================================
# All endpoints act on the authenticated user.
#
#   /coins...          balance, ledger, analytics, earning
#   /shop-items        reward shop catalogue
#   /purchase          buy a shop item
#   /themes            themes the user owns
#   /streaks...        daily streak tracking and recovery
#   /achievements...   achievement progress and unlocks
# =============================================================================

import logging
from typing import Annotated

from fastapi import APIRouter, Depends, Query

from app.auth import get_current_user, AuthUser
from core.models.coins import (
    CoinAnalytics,
    CoinBalance,
    CoinTransactionResult,
    EarnCoinsRequest,
    EarningSummary,
    PurchaseRequest,
    PurchaseResult,
    ShopItem,
    ShopItemCreate,
    TransactionType,
)
from core.models.streak import (
    AchievementTrigger,
    MarkCompletionRequest,
    RecoverStreakRequest,
    RecoveryOption,
    StreakSummary,
    StreakUpdate,
    UserStats,
)
from core.services.achievement_service import AchievementService
from core.services.coin_service import CoinService
from core.services.shop_service import ShopService
from core.services.streak_service import StreakService

logger = logging.getLogger(__name__)

router = APIRouter()


# =============================================================================
# Coins
# =============================================================================

@router.get("/coins", response_model=CoinBalance)
async def get_balance(user: AuthUser = Depends(get_current_user)):
    return CoinService.get_balance(user.id)


@router.get("/coins/transactions")
async def get_transactions(
    user: AuthUser = Depends(get_current_user),
    limit: Annotated[int, Query(ge=1, le=200)] = 50,
    transaction_type: Annotated[TransactionType | None, Query(alias="type")] = None,
):
    """Ledger entries, newest first."""
    transactions = CoinService.get_transactions(user.id, limit=limit, transaction_type=transaction_type)
    return {"transactions": transactions, "count": len(transactions)}


@router.get("/coins/analytics", response_model=CoinAnalytics)
async def get_analytics(
    user: AuthUser = Depends(get_current_user),
    days: Annotated[int | None, Query(ge=1, le=365, description="Omit for all time")] = None,
):
    return CoinService.get_analytics(user.id, days=days)


@router.get("/coins/summary", response_model=EarningSummary)
async def get_earning_summary(user: AuthUser = Depends(get_current_user)):
    """Coins earned today and over the last week."""
    return CoinService.get_earning_summary(user.id)


@router.post("/coins/earn", response_model=CoinTransactionResult)
async def earn_coins(
    request: EarnCoinsRequest,
    user: AuthUser = Depends(get_current_user),
):
    """Credit coins for an activity. Amount defaults to the source's base rate."""
    return CoinService.earn_coins(
        user.id,
        request.source,
        amount=request.amount,
        description=request.description,
        metadata=request.metadata,
    )


@router.post("/coins/daily-login")
async def daily_login(user: AuthUser = Depends(get_current_user)):
    """Award the once-a-day login bonus."""
    result = CoinService.award_daily_login_bonus(user.id)
    if result is None:
        return {
            "awarded": False,
            "message": "Daily login bonus already claimed today",
            "new_balance": CoinService.get_balance(user.id).current_balance,
        }
    return {
        "awarded": True,
        "amount": result.amount,
        "new_balance": result.new_balance,
    }


# =============================================================================
# Shop
# =============================================================================

@router.get("/shop-items", response_model=list[ShopItem])
async def list_shop_items(
    user: AuthUser = Depends(get_current_user),
    category: Annotated[str | None, Query(description="Category, or 'all'")] = None,
):
    return ShopService.list_items(category)


@router.post("/shop-items", response_model=ShopItem, status_code=201)
async def create_shop_item(
    request: ShopItemCreate,
    user: AuthUser = Depends(get_current_user),
):
    return ShopService.create_item(request)


@router.post("/purchase", response_model=PurchaseResult)
async def purchase_item(
    request: PurchaseRequest,
    user: AuthUser = Depends(get_current_user),
):
    """
    Buy a shop item.

    400 if the balance is too low or the theme is already owned, 404 if the
    item doesn't exist.
    """
    return ShopService.purchase_item(user.id, request.item_id)


@router.get("/themes")
async def list_owned_themes(user: AuthUser = Depends(get_current_user)):
    return {"themes": ShopService.list_owned_themes(user.id)}


# =============================================================================
# Streaks
# =============================================================================

@router.get("/streaks", response_model=StreakSummary)
async def get_streak(user: AuthUser = Depends(get_current_user)):
    """Streak analytics, the next milestone, and recovery options."""
    return StreakService.get_streak_summary(user.id)


@router.post("/streaks/checkin")
async def checkin(user: AuthUser = Depends(get_current_user)):
    update = StreakService.auto_checkin(user.id)
    if update is None:
        return {"checked_in": False, "message": "Already checked in today"}
    return {"checked_in": True, "streak": update}


@router.post("/streaks/complete", response_model=StreakUpdate)
async def mark_completion(
    request: MarkCompletionRequest,
    user: AuthUser = Depends(get_current_user),
):
    return StreakService.mark_daily_completion(
        user.id,
        tasks_completed=request.tasks_completed,
        points_earned=request.points_earned,
        on_date=request.date,
    )


@router.get("/streaks/recovery-options", response_model=list[RecoveryOption])
async def get_recovery_options(user: AuthUser = Depends(get_current_user)):
    return StreakService.get_recovery_options(user.id)


@router.post("/streaks/recover", response_model=StreakUpdate)
async def recover_streak(
    request: RecoverStreakRequest,
    user: AuthUser = Depends(get_current_user),
):
    """Spend coins to fill missed days."""
    return StreakService.recover_streak(user.id, request.option)


# =============================================================================
# Achievements
# =============================================================================

@router.get("/achievements")
async def list_achievements(user: AuthUser = Depends(get_current_user)):
    return AchievementService.list_achievements(user.id)


@router.post("/achievements/check")
async def check_achievements(
    request: AchievementTrigger,
    user: AuthUser = Depends(get_current_user),
):
    """Unlock whatever the user now qualifies for after an action."""
    unlocked = AchievementService.check_achievements(user.id, request)
    return {"unlocked": unlocked, "count": len(unlocked)}


@router.post("/achievements/recalculate", response_model=UserStats)
async def recalculate_points(user: AuthUser = Depends(get_current_user)):
    return AchievementService.recalculate_points(user.id)
