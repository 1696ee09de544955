from django.urls import path
from . import views

app_name = 'bookings'

urlpatterns = [
    # Requests
    path('', views.booking_requests, name='requests'),
    path('mine/', views.my_booking_requests, name='my-requests'),
    path('<int:request_id>/', views.booking_request_detail, name='request-detail'),

    # Offers
    path('<int:request_id>/offers/', views.make_offer_view, name='make-offer'),
    path('offers/<int:offer_id>/', views.withdraw_offer_view, name='withdraw-offer'),
    path('offers/<int:offer_id>/accept/', views.accept_offer_view, name='accept-offer'),
]
