from django.urls import path
from . import views

app_name = 'chats'

urlpatterns = [
    path('', views.ChatThreadListView.as_view(), name='threads'),
    path('<int:thread_id>/', views.ChatThreadDetailView.as_view(), name='thread-detail'),
    path('<int:thread_id>/messages/', views.ChatMessageView.as_view(), name='send-message'),
    path('<int:thread_id>/read/', views.ChatMarkReadView.as_view(), name='mark-read'),
]
