"""Tells what to show in the Django admin interface for trips app"""

from django.contrib import admin
from .models import Trip, UserLocation, TrackingToken

@admin.register(Trip)
class TripAdmin(admin.ModelAdmin):
    """Trip admin"""
    list_display = ['id', 'customer', 'driver', 'status', 'created_at', 'completed_at', 'cancelled_at']
    list_filter = ['status', 'created_at']
    search_fields = ['customer__username', 'driver__username', 'pickup_location', 'destination']
    readonly_fields = ['created_at', 'completed_at', 'cancelled_at', 'last_location_update']
    date_hierarchy = 'created_at'


@admin.register(UserLocation)
class UserLocationAdmin(admin.ModelAdmin):
    list_display = ("user", "is_sharing", "lat", "lng", "trip", "updated_at")
    list_filter = ("is_sharing",)
    search_fields = ("user__username", "address")


@admin.register(TrackingToken)
class TrackingTokenAdmin(admin.ModelAdmin):
    list_display = ("user", "contact_label", "is_valid", "created_at", "expires_at")
    list_filter = ("is_valid",)
    search_fields = ("user__username", "contact_label")
