from django.contrib import admin
from django.urls import path, include

from .views import health_check

urlpatterns = [
    path('admin/', admin.site.urls),
    path("health/", health_check), # Health check endpoint
    
    # Authentication endpoints (at /api/auth/)
    path('api/auth/', include('accounts.urls')),  # register, login, refresh, me, notifications

    # VIP tiers and payment webhook
    path('api/vip/', include('accounts.vip_urls')),

    # Trips and location sharing (at /api/trips/)
    path('api/trips/', include('trips.urls')),

    # Public tracking links (at /api/track/)
    path('api/track/', include('trips.tracking_urls')),

    # Pre-booking chats (at /api/chats/)
    path('api/chats/', include('chats.urls')),

    # Booking requests and offers (at /api/bookings/)
    path('api/bookings/', include('bookings.urls')),
]
