from django.urls import path
from . import views

app_name = 'trips'

urlpatterns = [
    # Trips
    path('', views.trips, name='trips'),
    path('<int:trip_id>/', views.trip_detail, name='trip-detail'),
    path('<int:trip_id>/tracking/', views.trip_tracking_view, name='trip-tracking'),
    path('<int:trip_id>/complete/', views.complete_trip_view, name='complete-trip'),
    path('<int:trip_id>/cancel/', views.cancel_trip_view, name='cancel-trip'),
    path('<int:trip_id>/rate/', views.rate_trip_view, name='rate-trip'),

    # Location sharing without a WebSocket
    path('location/', views.my_location, name='my-location'),
    path('location/start/', views.start_sharing, name='start-sharing'),
    path('location/update/', views.update_location, name='update-location'),
    path('location/stop/', views.stop_sharing, name='stop-sharing'),
]
