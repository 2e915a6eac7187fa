"""
Payment admin configuration.

Payments, holds, revenue entries and transfers are written by the
settlement engine; admin exposes them read-only for support and audit.
"""

from django.contrib import admin

from payments.models import (
    EscrowHold,
    Payment,
    PlatformRevenueEntry,
    Transfer,
    VendorRevenueEntry,
    WebhookEvent,
)

__all__ = [
    "EscrowHoldAdmin",
    "PaymentAdmin",
    "PlatformRevenueEntryAdmin",
    "TransferAdmin",
    "VendorRevenueEntryAdmin",
    "WebhookEventAdmin",
]


def format_minor_units(amount: int, currency: str) -> str:
    return f"{amount / 100:.2f} {currency.upper()}"


class ReadOnlyAdminMixin:
    """Engine-owned rows: no add, change or delete through admin."""

    def has_add_permission(self, request) -> bool:
        return False

    def has_change_permission(self, request, obj=None) -> bool:
        return False

    def has_delete_permission(self, request, obj=None) -> bool:
        return False


class EscrowHoldInline(admin.StackedInline):
    model = EscrowHold
    extra = 0
    can_delete = False
    fields = ["status", "vendor_amount", "work_completed", "release_method", "released_at"]
    readonly_fields = fields


@admin.register(Payment)
class PaymentAdmin(ReadOnlyAdminMixin, admin.ModelAdmin):
    """
    Admin configuration for Payment.

    Status is an FSM field and only moves through webhook or status
    reconciliation, never through admin.
    """

    list_display = [
        "id",
        "invoice",
        "vendor",
        "amount_display",
        "status",
        "refunded_amount",
        "processor_reference",
        "created_at",
    ]
    list_filter = ["status", "currency", "method", "created_at"]
    search_fields = ["id", "processor_reference", "idempotency_key", "invoice__invoice_number"]
    date_hierarchy = "created_at"
    ordering = ["-created_at"]
    inlines = [EscrowHoldInline]

    fieldsets = (
        (None, {"fields": ("id", "invoice", "vendor", "payer", "inquiry_id")}),
        ("Amount", {"fields": ("amount", "currency", "method", "refunded_amount")}),
        (
            "Status",
            {
                "fields": (
                    "status",
                    "failure_reason",
                    "processed_at",
                    "failed_at",
                    "cancelled_at",
                    "refunded_at",
                ),
            },
        ),
        ("Processor", {"fields": ("processor_reference", "idempotency_key", "processor_metadata")}),
        ("Metadata", {"fields": ("description", "metadata", "version"), "classes": ("collapse",)}),
        ("Timestamps", {"fields": ("created_at", "updated_at")}),
    )

    @admin.display(description="Amount")
    def amount_display(self, obj: Payment) -> str:
        return format_minor_units(obj.amount, obj.currency)


@admin.register(EscrowHold)
class EscrowHoldAdmin(ReadOnlyAdminMixin, admin.ModelAdmin):
    """Holds are released through the API or the auto-release task."""

    list_display = [
        "id",
        "vendor",
        "vendor_amount_display",
        "status",
        "work_completed",
        "work_completed_at",
        "release_method",
        "released_at",
    ]
    list_filter = ["status", "work_completed", "release_method"]
    search_fields = ["id", "payment__processor_reference", "vendor__business_name"]
    ordering = ["-created_at"]

    @admin.display(description="Vendor amount")
    def vendor_amount_display(self, obj: EscrowHold) -> str:
        return format_minor_units(obj.vendor_amount, obj.currency)


@admin.register(PlatformRevenueEntry)
class PlatformRevenueEntryAdmin(ReadOnlyAdminMixin, admin.ModelAdmin):
    list_display = ["id", "payment", "amount", "currency", "fee_rate", "created_at"]
    list_filter = ["currency"]
    search_fields = ["payment__processor_reference"]


@admin.register(VendorRevenueEntry)
class VendorRevenueEntryAdmin(ReadOnlyAdminMixin, admin.ModelAdmin):
    list_display = ["id", "payment", "vendor", "amount", "transfer_status", "transfer_id", "transferred_at"]
    list_filter = ["transfer_status", "currency"]
    search_fields = ["payment__processor_reference", "transfer_id", "vendor__business_name"]


@admin.register(Transfer)
class TransferAdmin(ReadOnlyAdminMixin, admin.ModelAdmin):
    list_display = ["id", "escrow_hold", "vendor", "amount", "status", "processor_transfer_id", "created_at"]
    list_filter = ["status", "currency"]
    search_fields = ["processor_transfer_id", "destination_account"]


@admin.register(WebhookEvent)
class WebhookEventAdmin(admin.ModelAdmin):
    """
    Admin configuration for WebhookEvent.

    Events are immutable once received. Failed events are reprocessed when
    the processor redelivers them.
    """

    list_display = [
        "id",
        "processor_event_id",
        "event_type",
        "status",
        "retry_count",
        "processed_at",
        "created_at",
    ]
    list_filter = ["status", "event_type", "created_at"]
    search_fields = ["id", "processor_event_id", "event_type"]
    readonly_fields = [
        "id",
        "processor_event_id",
        "event_type",
        "payload",
        "status",
        "processed_at",
        "error_message",
        "retry_count",
        "created_at",
        "updated_at",
    ]
    date_hierarchy = "created_at"
    ordering = ["-created_at"]

    def has_add_permission(self, request) -> bool:
        return False

    def has_delete_permission(self, request, obj=None) -> bool:
        return False
