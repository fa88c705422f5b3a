"""
Marketplace app: owner/buyer roles, properties and inquiry threads.

Only the pieces the billing subsystem touches live here. An inquiry's
status drives the escrow deposit that gates it (see billing.services).
"""
