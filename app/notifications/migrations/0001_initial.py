import uuid

from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = []

    operations = [
        migrations.CreateModel(
            name="Notification",
            fields=[
                (
                    "created_at",
                    models.DateTimeField(
                        auto_now_add=True,
                        db_index=True,
                        help_text="Timestamp when this record was created",
                    ),
                ),
                (
                    "updated_at",
                    models.DateTimeField(
                        auto_now=True,
                        help_text="Timestamp when this record was last modified",
                    ),
                ),
                (
                    "id",
                    models.UUIDField(
                        default=uuid.uuid4,
                        editable=False,
                        help_text="Unique identifier for this record",
                        primary_key=True,
                        serialize=False,
                    ),
                ),
                (
                    "recipient_id",
                    models.UUIDField(
                        db_index=True, help_text="User receiving this notification"
                    ),
                ),
                (
                    "kind",
                    models.CharField(
                        choices=[
                            ("payment_received", "Payment Received"),
                            ("payment_refunded", "Payment Refunded"),
                            ("invoice_generated", "Invoice Generated"),
                            ("receipt_generated", "Receipt Generated"),
                            ("payout_completed", "Payout Completed"),
                            ("payout_failed", "Payout Failed"),
                        ],
                        help_text="Event kind",
                        max_length=50,
                    ),
                ),
                (
                    "title",
                    models.CharField(
                        help_text="Fully rendered notification title", max_length=500
                    ),
                ),
                (
                    "data",
                    models.JSONField(blank=True, default=dict, help_text="Event payload"),
                ),
                ("is_read", models.BooleanField(default=False)),
                (
                    "idempotency_key",
                    models.CharField(
                        blank=True,
                        help_text="Prevents duplicate notifications for the same event",
                        max_length=255,
                        null=True,
                    ),
                ),
            ],
            options={
                "ordering": ["-created_at"],
                "indexes": [
                    models.Index(
                        fields=["recipient_id", "is_read"],
                        name="notif_recipient_read_idx",
                    )
                ],
                "constraints": [
                    models.UniqueConstraint(
                        condition=models.Q(("idempotency_key__isnull", False)),
                        fields=("idempotency_key",),
                        name="notif_unique_idempotency_key",
                    )
                ],
            },
        ),
    ]
