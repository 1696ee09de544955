from django.urls import path
from . import views

app_name = 'tracking'

urlpatterns = [
    path('tokens/', views.create_tracking_token, name='create-token'),
    path('tokens/<str:token>/revoke/', views.revoke_tracking_token_view, name='revoke-token'),
    path('<int:user_id>/<str:token>/', views.public_tracking_view, name='public-view'),
]
