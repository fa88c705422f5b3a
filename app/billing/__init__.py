"""
Billing app: finder's-fee escrow, subscriptions and their reconciliation.

This app handles:
- Fee tiers and feature limits driven by admin-editable settings
- Escrow deposits gating owner-buyer contact (hold, release, refund, expire)
- Subscription state mirrored from Stripe webhooks
- The daily expiry sweep and the admin override API

Related apps:
    - marketplace: Inquiry status drives escrow release and refund
    - notifications: Owners are told when a deposit resolves
"""
