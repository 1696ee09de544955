from django.contrib import admin
from django.contrib.auth.admin import UserAdmin as BaseUserAdmin
from accounts.models import User, Notification, ReferralEntry, VipPurchase


@admin.register(User)
class UserAdmin(BaseUserAdmin):
    """Admin panel for custom User model"""

    list_display = [
        "username",
        "email",
        "is_driver",
        "phone_number",
        "referral_code",
        "referral_points",
        "vip_level",
        "is_active",
    ]

    list_filter = [
        "is_driver",
        "vip_level",
        "is_active",
        "is_staff",
        "date_joined",
    ]

    search_fields = [
        "username",
        "email",
        "phone_number",
        "referral_code",
    ]

    ordering = ("username",)

    # Extend default Django UserAdmin fieldsets
    fieldsets = BaseUserAdmin.fieldsets + (
        (
            "Marketplace",
            {
                "fields": (
                    "full_name",
                    "is_driver",
                    "phone_number",
                )
            },
        ),
        (
            "Referrals & VIP",
            {
                "fields": (
                    "referral_code",
                    "referred_by",
                    "referral_points",
                    "referral_count",
                    "free_rides",
                    "vip_level",
                    "purchased_vip_level",
                    "vip_purchase_date",
                    "vip_expiry_date",
                )
            },
        ),
    )

    readonly_fields = ("referral_code",)

    # For create user page in admin
    add_fieldsets = BaseUserAdmin.add_fieldsets + (
        (
            "Additional Info",
            {
                "fields": (
                    "full_name",
                    "is_driver",
                    "phone_number",
                )
            },
        ),
    )


@admin.register(Notification)
class NotificationAdmin(admin.ModelAdmin):
    list_display = ("user", "title", "type", "read", "created_at")
    list_filter = ("type", "read")
    search_fields = ("user__username", "title", "key")


@admin.register(ReferralEntry)
class ReferralEntryAdmin(admin.ModelAdmin):
    list_display = ("referrer", "referred_user", "points", "status", "date")
    search_fields = ("referrer__username", "referred_user__username")


@admin.register(VipPurchase)
class VipPurchaseAdmin(admin.ModelAdmin):
    list_display = ("user", "level", "price", "payment_id", "purchase_date", "expiry_date")
    list_filter = ("level",)
    search_fields = ("user__username", "payment_id")
