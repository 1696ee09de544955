from django.urls import path
from . import vip_views

app_name = 'vip'

urlpatterns = [
    path('tiers/', vip_views.vip_tiers, name='tiers'),
    path('me/', vip_views.my_vip_status, name='my-status'),
    path('payment-webhook/', vip_views.payment_webhook, name='payment-webhook'),
]
