import logging

from rest_framework import status
from rest_framework.views import APIView
from rest_framework.response import Response
from rest_framework.permissions import IsAuthenticated

from common.api import error_response
from services.chat import (
    open_or_create_thread,
    send_message,
    mark_read,
    delete_thread,
    list_threads_for,
    get_thread_for,
)
from services.exceptions import ServiceError
from .serializers import (
    ChatThreadSerializer,
    ChatMessageSerializer,
    OpenThreadSerializer,
    SendMessageSerializer,
)
from .tasks import purge_expired_threads

logger = logging.getLogger(__name__)


class ChatThreadListView(APIView):
    """
    GET: my live chats, newest first, with unread counts.
    POST: open (or reopen) a chat with another user about a vehicle.
    """
    permission_classes = [IsAuthenticated]

    def get(self, request):
        listing = list_threads_for(request.user.id)
        if listing.expired_ids:
            try:
                purge_expired_threads.delay(listing.expired_ids)
            except Exception:
                # The next listing reports them again
                logger.exception("Failed to queue purge of %d expired threads", len(listing.expired_ids))
        return Response(listing.as_dict())

    def post(self, request):
        serializer = OpenThreadSerializer(data=request.data)
        if not serializer.is_valid():
            return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
        data = serializer.validated_data

        try:
            thread, created = open_or_create_thread(
                request.user,
                request.user.id,
                data['other_user_id'],
                {'id': data.get('car_id'), 'title': data.get('car_title')},
            )
        except ServiceError as e:
            return error_response(e)

        return Response(
            ChatThreadSerializer(thread).data,
            status=status.HTTP_201_CREATED if created else status.HTTP_200_OK,
        )


class ChatThreadDetailView(APIView):
    permission_classes = [IsAuthenticated]

    def get(self, request, thread_id):
        try:
            thread = get_thread_for(request.user, thread_id)
        except ServiceError as e:
            return error_response(e)
        return Response(ChatThreadSerializer(thread).data)

    def delete(self, request, thread_id):
        try:
            delete_thread(request.user, thread_id)
        except ServiceError as e:
            return error_response(e)
        return Response(status=status.HTTP_204_NO_CONTENT)


class ChatMessageView(APIView):
    permission_classes = [IsAuthenticated]

    def post(self, request, thread_id):
        serializer = SendMessageSerializer(data=request.data)
        if not serializer.is_valid():
            return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
        try:
            message = send_message(request.user, thread_id, request.user.id, serializer.validated_data['text'])
        except ServiceError as e:
            return error_response(e)
        return Response(ChatMessageSerializer(message).data, status=status.HTTP_201_CREATED)


class ChatMarkReadView(APIView):
    permission_classes = [IsAuthenticated]

    def post(self, request, thread_id):
        try:
            updated = mark_read(request.user, thread_id, request.user.id)
        except ServiceError as e:
            return error_response(e)
        return Response({'marked_read': updated})
