"""Notification Fan-out Engine.

For one change event: match active subscriptions, send one multicast push to every
active token of the matched users, email users who opted in (throttled per
subscription), stamp last_notified and write one in-app Notification per user.
Delivery failures are counted, never raised. Repository calls run on worker threads
so events overlap on storage as well as on delivery.
"""

import asyncio
from datetime import datetime, timedelta
from typing import Optional

from shortage_sync.config import NOTIFY_EMAIL_COOLDOWN_SECONDS, NOTIFY_WORKER_COUNT
from shortage_sync.db.base import as_utc, utcnow
from shortage_sync.db.repositories import notification_repo, product_repo, subscription_repo
from shortage_sync.db.repositories.subscription_repo import SubscriptionTarget
from shortage_sync.models.status import NotificationType
from shortage_sync.models.sync import ChangeEvent, FanOutResult, FanOutSummary, PushResult
from shortage_sync.notify.protocol import EmailSender, PushProvider
from shortage_sync.notify.templates import build_alert_email, build_push_message
from shortage_sync.utils.logger import get_logger

logger = get_logger("shortage_sync.notify.fanout")


def match_subscriptions(event: ChangeEvent, targets: list[SubscriptionTarget]) -> list[SubscriptionTarget]:
    """Subscriptions to notify: deduped by alert id, type matching, owner reachable on some channel."""
    unique: dict[int, SubscriptionTarget] = {}
    for target in targets:
        unique.setdefault(target.alert_id, target)
    return [
        t
        for t in unique.values()
        if t.alert_type.matches(event.status) and (t.notify_push or t.notify_email)
    ]


def _is_throttled(target: SubscriptionTarget, now: datetime, cooldown_seconds: int) -> bool:
    if target.last_notified is None or cooldown_seconds <= 0:
        return False
    return as_utc(target.last_notified) > now - timedelta(seconds=cooldown_seconds)


async def _resolve_product_id(event: ChangeEvent) -> Optional[int]:
    if event.product_id is not None:
        return event.product_id
    product = await asyncio.to_thread(product_repo.get_by_code, event.product_code)
    return product["id"] if product else None


async def _send_push(
    push_provider: PushProvider, tokens: list[str], event: ChangeEvent, result: FanOutResult
) -> PushResult:
    message = build_push_message(event)
    try:
        push = await push_provider.send_multicast(tokens, message)
    except Exception as e:
        logger.exception("fanout.push_failed", product_code=event.product_code, tokens=len(tokens))
        push = PushResult(failure_count=len(tokens), failed_tokens=list(tokens), errors=[str(e)])
    result.push_attempted = len(tokens)
    result.push_succeeded = push.success_count
    result.failed_tokens = list(push.failed_tokens)
    result.errors.extend(push.errors)
    logger.info(
        "fanout.push_sent",
        product_code=event.product_code,
        attempted=len(tokens),
        succeeded=push.success_count,
        failed=push.failure_count,
    )
    return push


async def _send_email(
    email_sender: EmailSender, target: SubscriptionTarget, event: ChangeEvent, result: FanOutResult
) -> bool:
    content = build_alert_email(event, user_name=target.user_name)
    result.emails_attempted += 1
    try:
        sent = await email_sender.send(target.user_email, content.subject, content.html)
    except Exception as e:
        logger.warning("fanout.email_failed", product_code=event.product_code, user_id=target.user_id, error=str(e))
        result.errors.append(f"{target.user_email}: {e}")
        return False
    if sent:
        result.emails_sent += 1
    else:
        result.errors.append(f"{target.user_email}: email rejected")
    return sent


async def notify_status_change(
    event: ChangeEvent,
    push_provider: PushProvider,
    email_sender: EmailSender | None = None,
    email_cooldown_seconds: int = NOTIFY_EMAIL_COOLDOWN_SECONDS,
    now: datetime | None = None,
) -> FanOutResult:
    """Fan one change event out to its subscribers. Returns per-channel counts."""
    now = now or utcnow()
    result = FanOutResult(product_code=event.product_code, status=event.status)
    log = logger.bind(product_code=event.product_code, status=event.status.value)

    product_id = await _resolve_product_id(event)
    if product_id is None:
        log.info("fanout.unknown_product")
        return result
    result.product_id = product_id
    if event.product_id is None:
        event = event.model_copy(update={"product_id": product_id})

    targets = await asyncio.to_thread(subscription_repo.find_active_for_product, product_id)
    matched = match_subscriptions(event, targets)
    result.matched_subscriptions = len(matched)
    if not matched:
        log.debug("fanout.no_matching_subscriptions")
        return result

    by_user: dict[int, list[SubscriptionTarget]] = {}
    for target in matched:
        by_user.setdefault(target.user_id, []).append(target)

    tokens: list[str] = []
    for targets in by_user.values():
        if targets[0].notify_push:
            tokens.extend(targets[0].push_tokens)
    tokens = list(dict.fromkeys(tokens))

    failed_tokens: set[str] = set()
    if tokens:
        push = await _send_push(push_provider, tokens, event, result)
        failed_tokens = set(push.failed_tokens)

    email_outcome: dict[int, bool] = {}
    for user_id, targets in by_user.items():
        owner = targets[0]
        if not owner.notify_email or email_sender is None:
            continue
        if all(_is_throttled(t, now, email_cooldown_seconds) for t in targets):
            result.emails_throttled += 1
            log.debug("fanout.email_throttled", user_id=user_id)
            continue
        email_outcome[user_id] = await _send_email(email_sender, owner, event, result)

    await asyncio.to_thread(subscription_repo.touch_last_notified, [t.alert_id for t in matched], now)

    message = build_push_message(event)
    rows = []
    for user_id, targets in by_user.items():
        owner = targets[0]
        delivered_tokens = [t for t in owner.push_tokens if t not in failed_tokens]
        rows.append(
            {
                "user_id": user_id,
                "type": NotificationType.for_status(event.status).value,
                "title": message.title,
                "message": message.body,
                "data": message.data,
                "sent_push": bool(owner.notify_push and delivered_tokens),
                "sent_email": email_outcome.get(user_id, False),
            }
        )
    result.notification_ids = await asyncio.to_thread(notification_repo.insert_many, rows)
    result.notified_users = len(rows)

    log.info(
        "fanout.event_complete",
        matched=result.matched_subscriptions,
        notified_users=result.notified_users,
        push_attempted=result.push_attempted,
        push_succeeded=result.push_succeeded,
        emails_sent=result.emails_sent,
        emails_throttled=result.emails_throttled,
    )
    return result


async def fan_out(
    events: list[ChangeEvent],
    push_provider: PushProvider,
    email_sender: EmailSender | None = None,
    worker_count: int = NOTIFY_WORKER_COUNT,
    email_cooldown_seconds: int = NOTIFY_EMAIL_COOLDOWN_SECONDS,
) -> FanOutSummary:
    """Process change events on a bounded pool of workers; one event's failure never stops the others."""
    summary = FanOutSummary()
    if not events:
        return summary

    unique: dict[str, ChangeEvent] = {}
    for event in events:
        unique.setdefault(event.product_code, event)

    queue: asyncio.Queue[ChangeEvent] = asyncio.Queue()
    for event in unique.values():
        queue.put_nowait(event)
    lock = asyncio.Lock()
    now = utcnow()

    async def _worker(worker_id: int) -> None:
        while True:
            try:
                event = queue.get_nowait()
            except asyncio.QueueEmpty:
                return
            try:
                result = await notify_status_change(
                    event,
                    push_provider,
                    email_sender,
                    email_cooldown_seconds=email_cooldown_seconds,
                    now=now,
                )
            except Exception as e:
                logger.exception("fanout.event_failed", product_code=event.product_code, worker_id=worker_id)
                result = FanOutResult(
                    product_code=event.product_code,
                    product_id=event.product_id,
                    status=event.status,
                    errors=[f"{event.product_code}: {e}"],
                )
            finally:
                queue.task_done()
            async with lock:
                summary.add(result)

    pool_size = max(1, min(worker_count, len(unique), 64))
    logger.info("fanout.start", events=len(unique), workers=pool_size)
    await asyncio.gather(*(_worker(i) for i in range(pool_size)))
    logger.info(
        "fanout.complete",
        events=summary.events,
        notified_users=summary.notified_users,
        push_attempted=summary.push_attempted,
        push_succeeded=summary.push_succeeded,
        emails_sent=summary.emails_sent,
        errors=len(summary.errors),
    )
    return summary
