"""
Factory Boy factories for marketplace models.

Usage:
    from marketplace.tests.factories import InquiryFactory, PropertyFactory

    prop = PropertyFactory(estimated_value=1_200_000)
    inquiry = InquiryFactory(owner=prop.owner, property=prop)
"""

import factory

from authentication.tests.factories import UserFactory
from marketplace.models import BuyerProfile, Inquiry, OwnerProfile, Property
from marketplace.states import InitiatedBy, InquiryStatus


class OwnerProfileFactory(factory.django.DjangoModelFactory):
    class Meta:
        model = OwnerProfile

    user = factory.SubFactory(UserFactory)


class BuyerProfileFactory(factory.django.DjangoModelFactory):
    class Meta:
        model = BuyerProfile

    user = factory.SubFactory(UserFactory)


class PropertyFactory(factory.django.DjangoModelFactory):
    """Standard-tier property by default (below the premium threshold)."""

    class Meta:
        model = Property

    owner = factory.SubFactory(OwnerProfileFactory)
    address = factory.Sequence(lambda n: f"{n} Queen Street, Auckland")
    estimated_value = 750_000
    rateable_value = None


class InquiryFactory(factory.django.DjangoModelFactory):
    """Owner-initiated, PENDING inquiry."""

    class Meta:
        model = Inquiry

    owner = factory.SubFactory(OwnerProfileFactory)
    buyer = factory.SubFactory(BuyerProfileFactory)
    property = factory.SubFactory(
        PropertyFactory, owner=factory.SelfAttribute("..owner")
    )
    initiated_by = InitiatedBy.OWNER
    status = InquiryStatus.PENDING
    message = "Is your search still open?"
