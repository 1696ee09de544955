import logging

from rest_framework import status
from rest_framework.decorators import api_view, permission_classes, authentication_classes
from rest_framework.response import Response
from rest_framework.permissions import AllowAny, IsAuthenticated

from common.api import error_response
from services.exceptions import ServiceError, StateConflict
from services.location_sharing import (
    ClientReportedGeolocation,
    LocationPublisher,
    PositionFix,
    apply_position_update,
    get_resume_state,
    get_user_snapshot,
    reverse_geocode,
)
from services.trip_management import (
    create_trip,
    get_trip_for,
    complete_trip,
    cancel_trip,
    rate_trip,
    trip_history,
)
from services.trip_tracking import authorize_tracker, build_tracker_for_trip
from services.tracking_links import (
    issue_tracking_token,
    revoke_tracking_token,
    resolve_tracking_token,
    public_location_view,
)
from .serializers import (
    TripSerializer,
    TripCreateSerializer,
    TripRateSerializer,
    StartSharingSerializer,
    LocationFixSerializer,
    StopSharingSerializer,
    TrackingTokenSerializer,
)

logger = logging.getLogger(__name__)


# ==================== Trip APIs ====================

@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated])
def trips(request):
    """GET: my trip history. POST: book a trip with a driver."""
    if request.method == 'GET':
        return Response(TripSerializer(trip_history(request.user), many=True).data)

    serializer = TripCreateSerializer(data=request.data)
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)

    try:
        result = create_trip(request.user, **serializer.validated_data)
    except ServiceError as e:
        return error_response(e)

    return Response({
        **TripSerializer(result.trip).data,
        'message': result.message,
    }, status=status.HTTP_201_CREATED)


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def trip_detail(request, trip_id):
    try:
        trip = get_trip_for(request.user, trip_id)
    except ServiceError as e:
        return error_response(e)
    return Response(TripSerializer(trip).data)


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def trip_tracking_view(request, trip_id):
    """Current tracker view (the same payload the trip WebSocket pushes)"""
    try:
        trip = authorize_tracker(request.user, trip_id)
    except ServiceError as e:
        return error_response(e)
    return Response(build_tracker_for_trip(trip).view().as_dict())


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def complete_trip_view(request, trip_id):
    try:
        result = complete_trip(request.user, trip_id)
    except ServiceError as e:
        return error_response(e)
    return Response({'message': result.message, 'trip': TripSerializer(result.trip).data})


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def cancel_trip_view(request, trip_id):
    try:
        result = cancel_trip(request.user, trip_id)
    except ServiceError as e:
        return error_response(e)
    return Response({'message': result.message, 'trip': TripSerializer(result.trip).data})


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def rate_trip_view(request, trip_id):
    serializer = TripRateSerializer(data=request.data)
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
    try:
        result = rate_trip(request.user, trip_id, **serializer.validated_data)
    except ServiceError as e:
        return error_response(e)
    return Response({'message': result.message, 'trip': TripSerializer(result.trip).data})


# ==================== Location sharing (HTTP fallback) ====================

@api_view(['GET'])
@permission_classes([IsAuthenticated])
def my_location(request):
    """Current location record plus whether the device should resume sharing"""
    snapshot = get_user_snapshot(request.user.id)
    return Response({
        'location': snapshot.to_document() if snapshot else None,
        'resume': get_resume_state(request.user.id),
    })


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def start_sharing(request):
    serializer = StartSharingSerializer(data=request.data)
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
    data = serializer.validated_data

    try:
        geolocation = ClientReportedGeolocation()
        geolocation.report_position(PositionFix.from_payload(data))
        snapshot = LocationPublisher(geolocation).start_sharing(
            request.user,
            request.user.id,
            trip_id=data.get('trip_id'),
            vehicle_id=data.get('vehicle_id') or None,
        )
    except ServiceError as e:
        return error_response(e)

    return Response({
        'message': 'Location sharing started',
        'location': snapshot.to_document(),
    }, status=status.HTTP_201_CREATED)


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def update_location(request):
    serializer = LocationFixSerializer(data=request.data)
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)

    try:
        fix = PositionFix.from_payload(serializer.validated_data)
        snapshot = apply_position_update(request.user.id, fix, reverse_geocode(fix.lat, fix.lng))
        if snapshot is None:
            raise StateConflict("Location sharing is not active")
    except ServiceError as e:
        return error_response(e)

    return Response({'location': snapshot.to_document()})


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def stop_sharing(request):
    serializer = StopSharingSerializer(data=request.data)
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)

    try:
        LocationPublisher(ClientReportedGeolocation()).stop_sharing(
            request.user,
            request.user.id,
            trip_id=serializer.validated_data.get('trip_id'),
        )
    except ServiceError as e:
        return error_response(e)

    return Response({'message': 'Location sharing stopped'})


# ==================== Tracking links ====================

@api_view(['POST'])
@permission_classes([IsAuthenticated])
def create_tracking_token(request):
    serializer = TrackingTokenSerializer(data=request.data)
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
    try:
        token = issue_tracking_token(request.user, serializer.validated_data.get('contact_label', ''))
    except ServiceError as e:
        return error_response(e)
    return Response(TrackingTokenSerializer(token).data, status=status.HTTP_201_CREATED)


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def revoke_tracking_token_view(request, token):
    if not revoke_tracking_token(request.user, token):
        return Response({'error': 'Tracking link not found'}, status=status.HTTP_404_NOT_FOUND)
    return Response({'message': 'Tracking link revoked'})


@api_view(['GET'])
@authentication_classes([])
@permission_classes([AllowAny])
def public_tracking_view(request, user_id, token):
    """Read-only live location for whoever holds a valid link"""
    try:
        user = resolve_tracking_token(user_id, token)
    except ServiceError as e:
        return error_response(e)
    return Response(public_location_view(user))
