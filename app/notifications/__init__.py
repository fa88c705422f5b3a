"""
In-app notifications with an optional email copy.

Other apps use notifications.services.notify(), which never raises.
"""
