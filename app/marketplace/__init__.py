"""
Marketplace app: vendors and invoices consumed by the payments engine.

Vendors and invoices are created and administered elsewhere in the
marketplace; the settlement engine reads them and only ever touches an
invoice's paid-amount bookkeeping.
"""
