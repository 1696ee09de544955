import logging

from rest_framework import status
from rest_framework.views import APIView
from rest_framework.response import Response
from rest_framework.permissions import AllowAny, IsAuthenticated
from rest_framework_simplejwt.exceptions import TokenError
from rest_framework_simplejwt.tokens import RefreshToken

from common.api import error_response
from services.account_deletion import delete_account
from services.exceptions import ServiceError
from services.notifications import mark_all_read
from services.referrals import resolve_referrer, award_referral
from .serializers import (
    RegisterSerializer,
    LoginSerializer,
    UserSerializer,
    ProfileSerializer,
    NotificationSerializer,
)

logger = logging.getLogger(__name__)

NOTIFICATION_PAGE_SIZE = 50


def _tokens_for(user):
    refresh = RefreshToken.for_user(user)
    return {
        'refresh': str(refresh),
        'access': str(refresh.access_token),
    }


def _credit_referrer(code, new_user) -> bool:
    """Award the owner of ``code`` for this signup. Never blocks registration."""
    referrer_id = resolve_referrer(code)
    if referrer_id is None:
        if code:
            logger.info("Signup %s used unknown referral code %r", new_user.id, code)
        return False
    try:
        return award_referral(referrer_id, new_user.id).created
    except ServiceError:
        logger.exception("Referral award %s -> %s failed", referrer_id, new_user.id)
        return False


class RegisterView(APIView):
    """
    Create a customer or driver account.

    POST Body:
    {
        "username": "ada",
        "password": "...",
        "email": "ada@example.com",
        "full_name": "Ada Obi",
        "is_driver": false,
        "phone_number": "+2348000000000",  // drivers only, required
        "ref": "K7P2QX9M"                  // optional referral code
    }
    """
    permission_classes = (AllowAny,)
    authentication_classes = []

    def post(self, request):
        serializer = RegisterSerializer(data=request.data)
        if not serializer.is_valid():
            return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)

        user = serializer.save()
        referred = _credit_referrer(serializer.validated_data.get('ref'), user)

        return Response({
            'message': 'Account created',
            'user': UserSerializer(user).data,
            'referred': referred,
            'tokens': _tokens_for(user),
        }, status=status.HTTP_201_CREATED)


class LoginView(APIView):
    """Exchange username and password for a JWT pair"""
    permission_classes = (AllowAny,)
    authentication_classes = []

    def post(self, request):
        serializer = LoginSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        user = serializer.validated_data

        return Response({
            'message': 'Signed in',
            'user': UserSerializer(user).data,
            'tokens': _tokens_for(user),
        })


class RefreshTokenView(APIView):
    """Trade a refresh token for a new access token"""
    permission_classes = (AllowAny,)
    authentication_classes = []

    def post(self, request):
        raw = request.data.get('refresh')
        if not raw:
            return Response({'error': 'refresh is required'}, status=status.HTTP_400_BAD_REQUEST)

        try:
            refresh = RefreshToken(raw)
        except TokenError as e:
            logger.debug("Rejected refresh token: %s", e)
            return Response({'error': 'Invalid refresh token'}, status=status.HTTP_401_UNAUTHORIZED)

        return Response({'access': str(refresh.access_token)})


class MeView(APIView):
    """GET/PATCH the signed-in user's profile, referral link and VIP status. DELETE removes the account and all its data"""
    permission_classes = [IsAuthenticated]

    def get(self, request):
        return Response(ProfileSerializer(request.user).data)

    def patch(self, request):
        serializer = ProfileSerializer(request.user, data=request.data, partial=True)
        if not serializer.is_valid():
            return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
        serializer.save()
        return Response(serializer.data)

    def delete(self, request):
        try:
            stats = delete_account(request.user)
        except ServiceError as e:
            return error_response(e)
        return Response({
            'message': 'Account and all data permanently deleted',
            'stats': stats.as_dict(),
        })


class NotificationListView(APIView):
    permission_classes = [IsAuthenticated]

    def get(self, request):
        notifications = request.user.notifications.all()[:NOTIFICATION_PAGE_SIZE]
        return Response({
            'has_unread': request.user.has_unread_notifications,
            'notifications': NotificationSerializer(notifications, many=True).data,
        })


class NotificationMarkReadView(APIView):
    permission_classes = [IsAuthenticated]

    def post(self, request):
        return Response({'marked_read': mark_all_read(request.user)})
