from django.contrib import admin

from marketplace.models import BuyerProfile, Inquiry, OwnerProfile, Property


@admin.register(OwnerProfile)
class OwnerProfileAdmin(admin.ModelAdmin):
    list_display = ["id", "user", "created_at"]
    search_fields = ["user__email"]
    raw_id_fields = ["user"]


@admin.register(BuyerProfile)
class BuyerProfileAdmin(admin.ModelAdmin):
    list_display = ["id", "user", "created_at"]
    search_fields = ["user__email"]
    raw_id_fields = ["user"]


@admin.register(Property)
class PropertyAdmin(admin.ModelAdmin):
    list_display = ["address", "owner", "estimated_value", "rateable_value"]
    search_fields = ["address"]
    raw_id_fields = ["owner"]


@admin.register(Inquiry)
class InquiryAdmin(admin.ModelAdmin):
    list_display = ["id", "owner", "buyer", "property", "status", "initiated_by", "created_at"]
    list_filter = ["status", "initiated_by"]
    raw_id_fields = ["owner", "buyer", "property"]
    readonly_fields = ["status", "responded_at", "created_at", "updated_at"]
