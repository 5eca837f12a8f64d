# =============================================================================
# workers/tasks.py - Celery Task Definitions
# =============================================================================
# Scheduled jobs (see beat_schedule in workers/config.py) and on-demand
# background work.
#
# Tasks:
# - send_due_streak_reminders: push daily streak reminders that are due
# - send_due_reminders: push standalone reminders whose time has come
# - process_streak_breaks: reset broken streaks and apply penalties
# - charge_due_subscriptions: expire cancelled subscriptions, renew the rest
# - charge_recurring_subscription: renew one user's subscription
# - send_notification: push a single notification
#
# Sweep tasks handle users one at a time so one bad row doesn't stop the
# rest; failures are logged and counted in the returned summary.
# =============================================================================

import logging
from typing import Any

from celery import shared_task

from app.exceptions import PushSubscriptionNotFoundError, StudySparkException
from lib.supabase_client import SupabaseClient, SupabaseClientError
from lib.utils import ApplicationError, utcnow

logger = logging.getLogger(__name__)

# Per-item errors a sweep logs and moves past
SWEEP_ERRORS = (StudySparkException, ApplicationError, SupabaseClientError)


# =============================================================================
# Notifications
# =============================================================================

@shared_task(bind=True, name="workers.tasks.send_notification")
def send_notification(
    self,
    user_id: str,
    title: str | None,
    message: str,
    data: dict[str, Any] | None = None,
) -> dict[str, Any]:
    """
    Push a notification to all of a user's devices.

    Retried on database errors; a user without devices is not retried.
    """
    from core.services.notification_service import NotificationService

    try:
        result = NotificationService.send_to_user(user_id, title, message, data=data)
    except SupabaseClientError as e:
        raise self.retry(exc=e)
    except StudySparkException as e:
        logger.warning(f"Notification to {user_id} not sent: {e.message}")
        return {"success": False, "error": e.message}

    return result.model_dump(mode="json")


@shared_task(bind=True, name="workers.tasks.send_due_streak_reminders")
def send_due_streak_reminders(self) -> dict[str, Any]:
    """Send every enabled streak reminder whose next_reminder_at has passed."""
    from core.services.notification_service import NotificationService

    now = utcnow()
    due = NotificationService.due_streak_reminders(now)

    sent = failed = 0
    for preference in due:
        try:
            if NotificationService.deliver_streak_reminder(preference, now):
                sent += 1
            else:
                failed += 1
        except SWEEP_ERRORS as e:
            failed += 1
            logger.error(f"Streak reminder for {preference.get('user_id')} failed: {e}")

    logger.info(f"Streak reminders: {sent} sent, {failed} failed of {len(due)} due")
    return {"due": len(due), "sent": sent, "failed": failed}


@shared_task(bind=True, name="workers.tasks.send_due_reminders")
def send_due_reminders(self, window_minutes: int = 5) -> dict[str, Any]:
    """
    Push reminders that are due or overdue and not yet notified.

    A reminder is marked notified once it is sent, or when its owner has no
    devices. Provider and database errors leave it due for the next sweep.
    """
    from core.services.notification_service import NotificationService
    from core.services.reminder_service import ReminderService

    now = utcnow()
    due = ReminderService.due_reminders(now, window_minutes=window_minutes)

    sent = failed = 0
    for reminder in due:
        try:
            NotificationService.send_task_reminder(reminder["user_id"], reminder)
            sent += 1
        except PushSubscriptionNotFoundError as e:
            failed += 1
            logger.warning(f"Reminder {reminder.get('id')} not delivered: {e}")
        except SWEEP_ERRORS as e:
            failed += 1
            logger.warning(f"Reminder {reminder.get('id')} not delivered, will retry: {e}")
            continue

        try:
            ReminderService.mark_notified(reminder["id"], now)
        except SupabaseClientError as e:
            logger.error(f"Reminder {reminder['id']} could not be marked notified: {e}")

    logger.info(f"Reminders: {sent} sent, {failed} failed of {len(due)} due")
    return {"due": len(due), "sent": sent, "failed": failed}


# =============================================================================
# Streaks
# =============================================================================

@shared_task(bind=True, name="workers.tasks.process_streak_breaks")
def process_streak_breaks(self) -> dict[str, Any]:
    """
    Reset streaks that ended yesterday.

    Runs just after midnight UTC, when anyone who missed yesterday has a
    broken streak.
    """
    from core.services.streak_service import StreakService

    candidates = SupabaseClient.select_many(
        "user_stats",
        columns="user_id,current_streak",
        gte={"current_streak": 1},
    )

    broken = failed = 0
    for row in candidates:
        try:
            if StreakService.handle_streak_break(row["user_id"]):
                broken += 1
        except SWEEP_ERRORS as e:
            failed += 1
            logger.error(f"Streak break check for {row['user_id']} failed: {e}")

    logger.info(f"Streak breaks: {broken} of {len(candidates)} active streaks ended")
    return {"checked": len(candidates), "broken": broken, "failed": failed}


# =============================================================================
# Billing
# =============================================================================

@shared_task(bind=True, name="workers.tasks.charge_recurring_subscription")
def charge_recurring_subscription(self, user_id: str) -> dict[str, Any]:
    """Renew one subscription. Retried on database errors only."""
    from core.services.billing_service import BillingService

    try:
        return BillingService.charge_recurring(user_id)
    except SupabaseClientError as e:
        raise self.retry(exc=e)
    except StudySparkException as e:
        logger.warning(f"Recurring charge for {user_id} skipped: {e.message}")
        return {"success": False, "error": e.message}


@shared_task(bind=True, name="workers.tasks.charge_due_subscriptions")
def charge_due_subscriptions(self) -> dict[str, Any]:
    """
    Expire subscriptions cancelled at period end, then queue a renewal
    charge for each paid subscription ending within a day.
    """
    from core.services.billing_service import BillingService
    from core.services.subscription_service import SubscriptionService

    now = utcnow()
    expired = SubscriptionService.expire_ended_subscriptions(now)

    due = BillingService.due_renewals(now)
    for subscription in due:
        charge_recurring_subscription.delay(subscription["clerk_user_id"])

    logger.info(f"Expired {expired} subscription(s), queued {len(due)} renewal(s)")
    return {"expired": expired, "queued": len(due)}
