"""
Payments app: escrow and settlement for marketplace bookings and orders.

This app handles:
- Payment intents held in escrow until capture and release
- Platform commission and professional balances
- Payout requests and transfer execution
- Invoice and receipt generation with sequential numbering
- Webhook event reconciliation

Related apps:
    - bookings: Bookings and orders that payments are made for
    - notifications: Payment event notifications

Usage:
    from payments.services import PaymentLifecycleManager

    intent = PaymentLifecycleManager().create_intent(
        amount=Decimal("500.00"), booking_id=booking.id
    )
"""
