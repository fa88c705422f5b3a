"""
Authentication application.

Email-identified users and JWT token endpoints. Marketplace roles live in
the marketplace app; entitlements live in billing.
"""
