"""
Payments app: settlement and escrow engine for marketplace invoices.

This app handles:
- Payment intent creation against vendor invoices
- Stripe webhook verification and idempotent processing
- Platform fee / vendor share settlement
- Escrow holds, their release and the vendor transfer
- Refunds reported by the processor

Related apps:
    - marketplace: Vendor and Invoice models

Usage:
    from payments.services import PaymentIntentService, EscrowHoldManager

    result = PaymentIntentService().create_intent(invoice_id, payer=user)
    if result.success:
        client_secret = result.data.client_secret

    EscrowHoldManager().release(hold_id, release_method="manual", actor=operator)
"""
