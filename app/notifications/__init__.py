"""
Notifications app for settlement events.

This app provides:
- Notification model for storing notifications addressed to a user id
- NotificationService, the NotificationSender used by payment services

Usage:
    from notifications.services import NotificationService

    NotificationService.notify(
        user_id=booking.professional_id,
        event_kind=NotificationKind.PAYMENT_RECEIVED,
        payload={"amount": "850.00", "currency": "MXN"},
        idempotency_key=f"payment_received:{payment.id}",
    )
"""
