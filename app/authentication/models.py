"""
Authentication models.

User is the only model here: an email-identified account. Marketplace
roles (owner, buyer) hang off it as one-to-one profiles in the
marketplace app, and billing state hangs off it as a Subscription.

Related files:
    - managers.py: Email-based user creation
    - marketplace.models: OwnerProfile / BuyerProfile
    - billing.models: Subscription
"""

from django.contrib.auth.models import AbstractBaseUser, PermissionsMixin
from django.db import models

from authentication.managers import UserManager


class User(AbstractBaseUser, PermissionsMixin):
    """
    Custom User model using email as the login identifier.

    Fields:
        email: Unique login identifier
        display_name: Name shown to the other party of an inquiry
        is_active: Whether the account may log in
        is_staff: Whether the user may use the admin billing API and site
        date_joined / updated_at: Timestamps

    Usage:
        user = User.objects.create_user(email="owner@example.com", password="pw")
        admin = User.objects.create_superuser(email="ops@example.com", password="pw")
    """

    email = models.EmailField(
        unique=True,
        db_index=True,
        max_length=254,
        help_text="User's email address (login identifier)",
    )
    display_name = models.CharField(
        max_length=120,
        blank=True,
        default="",
        help_text="Name shown to counterparties",
    )

    is_active = models.BooleanField(
        default=True,
        help_text="Whether this user account is active. Deselect instead of deleting.",
    )
    is_staff = models.BooleanField(
        default=False,
        help_text="Whether the user can access admin endpoints.",
    )

    date_joined = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    USERNAME_FIELD = "email"
    REQUIRED_FIELDS = []

    objects = UserManager()

    class Meta:
        verbose_name = "user"
        verbose_name_plural = "users"
        ordering = ["-date_joined"]

    def __str__(self):
        return self.email

    def get_full_name(self):
        return self.display_name or self.email

    def get_short_name(self):
        return self.display_name or self.email.split("@")[0]
