import logging

from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.response import Response
from rest_framework.permissions import IsAuthenticated

from chats.serializers import ChatThreadSerializer
from common.api import error_response
from services.bookings import (
    get_request,
    open_requests,
    requests_for,
    create_request,
    update_request,
    delete_request,
    accept_offer,
    record_view,
    make_offer,
    withdraw_offer,
)
from services.exceptions import ServiceError
from .serializers import (
    BookingRequestSerializer,
    BookingRequestWriteSerializer,
    MakeOfferSerializer,
    OfferSerializer,
)

logger = logging.getLogger(__name__)


def _request_data(booking, viewer):
    return BookingRequestSerializer(booking, context={'viewer': viewer}).data


# ==================== Booking requests ====================

@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated])
def booking_requests(request):
    """
    GET: open requests, newest first. ``?filter=urgent`` keeps urgent ones only.
    POST: post a new request.
    """
    if request.method == 'GET':
        qs = open_requests(urgent_only=request.query_params.get('filter') == 'urgent')
        return Response(BookingRequestSerializer(qs, many=True, context={'viewer': request.user}).data)

    serializer = BookingRequestWriteSerializer(data=request.data)
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
    try:
        booking = create_request(request.user, **serializer.validated_data)
    except ServiceError as e:
        return error_response(e)
    return Response(_request_data(booking, request.user), status=status.HTTP_201_CREATED)


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def my_booking_requests(request):
    qs = requests_for(request.user)
    return Response(BookingRequestSerializer(qs, many=True, context={'viewer': request.user}).data)


@api_view(['GET', 'PATCH', 'DELETE'])
@permission_classes([IsAuthenticated])
def booking_request_detail(request, request_id):
    try:
        if request.method == 'GET':
            record_view(request.user, request_id)
            return Response(_request_data(get_request(request_id), request.user))

        if request.method == 'DELETE':
            delete_request(request.user, request_id)
            return Response(status=status.HTTP_204_NO_CONTENT)

        serializer = BookingRequestWriteSerializer(data=request.data, partial=True)
        if not serializer.is_valid():
            return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
        booking = update_request(request.user, request_id, **serializer.validated_data)
    except ServiceError as e:
        return error_response(e)
    return Response(_request_data(booking, request.user))


# ==================== Offers ====================

@api_view(['POST'])
@permission_classes([IsAuthenticated])
def make_offer_view(request, request_id):
    serializer = MakeOfferSerializer(data=request.data)
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
    try:
        offer = make_offer(request.user, request_id, **serializer.validated_data)
    except ServiceError as e:
        return error_response(e)
    return Response(OfferSerializer(offer).data, status=status.HTTP_201_CREATED)


@api_view(['DELETE'])
@permission_classes([IsAuthenticated])
def withdraw_offer_view(request, offer_id):
    try:
        withdraw_offer(request.user, offer_id)
    except ServiceError as e:
        return error_response(e)
    return Response(status=status.HTTP_204_NO_CONTENT)


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def accept_offer_view(request, offer_id):
    """Accept an offer and return the chat opened with its driver."""
    try:
        result = accept_offer(request.user, offer_id)
    except ServiceError as e:
        return error_response(e)
    return Response({
        'offer': OfferSerializer(result.offer).data,
        'rejected_offers': result.rejected_count,
        'chat': ChatThreadSerializer(result.thread).data,
    })
