"""
Marketplace admin configuration.
"""

from django.contrib import admin

from marketplace.models import Invoice, Vendor


@admin.register(Vendor)
class VendorAdmin(admin.ModelAdmin):
    """Vendor payout configuration at a glance."""

    list_display = [
        "business_name",
        "owner",
        "payout_destination_id",
        "payouts_enabled",
        "created_at",
    ]
    list_filter = ["payouts_enabled"]
    search_fields = ["business_name", "payout_destination_id", "owner__email"]
    readonly_fields = ["id", "created_at", "updated_at"]


@admin.register(Invoice)
class InvoiceAdmin(admin.ModelAdmin):
    """
    Admin configuration for Invoice.

    paid_amount is maintained by settlement and is read-only here.
    """

    list_display = [
        "invoice_number",
        "vendor",
        "customer",
        "total_amount",
        "paid_amount",
        "currency",
        "status",
        "created_at",
    ]
    list_filter = ["status", "currency"]
    search_fields = ["invoice_number", "vendor__business_name", "customer__email"]
    readonly_fields = ["id", "paid_amount", "created_at", "updated_at"]
