"""
Factory Boy factories for authentication models.

Usage:
    from authentication.tests.factories import UserFactory, StaffUserFactory

    user = UserFactory()
    admin = StaffUserFactory()
"""

import factory

from authentication.models import User


class UserFactory(factory.django.DjangoModelFactory):
    """Factory for active, non-staff users."""

    class Meta:
        model = User
        skip_postgeneration_save = True

    email = factory.Sequence(lambda n: f"user{n}@example.com")
    display_name = factory.Faker("name")
    password = factory.PostGenerationMethodCall("set_password", "testpass123")
    is_active = True


class StaffUserFactory(UserFactory):
    """Factory for staff users allowed on the admin billing API."""

    email = factory.Sequence(lambda n: f"staff{n}@example.com")
    is_staff = True
