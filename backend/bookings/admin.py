"""Tells what to show in the Django admin interface for bookings app"""

from django.contrib import admin
from .models import BookingRequest, Offer


class OfferInline(admin.TabularInline):
    model = Offer
    extra = 0
    readonly_fields = ['driver', 'price', 'car_make', 'status', 'created_at']


@admin.register(BookingRequest)
class BookingRequestAdmin(admin.ModelAdmin):
    list_display = ['id', 'customer', 'car_type', 'location', 'urgent', 'status', 'views', 'expires_at']
    list_filter = ['status', 'urgent', 'trip_type']
    search_fields = ['customer__username', 'car_type', 'location', 'destination']
    readonly_fields = ['created_at', 'updated_at', 'views']
    inlines = [OfferInline]


@admin.register(Offer)
class OfferAdmin(admin.ModelAdmin):
    list_display = ("request", "driver", "price", "status", "created_at")
    list_filter = ("status",)
    search_fields = ("driver__username", "car_make")
