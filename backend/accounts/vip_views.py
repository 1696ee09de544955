"""VIP tiers and the payment webhook that records purchases."""

import hashlib
import hmac
import logging

from django.conf import settings
from rest_framework import serializers, status
from rest_framework.decorators import api_view, permission_classes, authentication_classes
from rest_framework.permissions import AllowAny, IsAuthenticated
from rest_framework.response import Response

from common.api import error_response
from services.exceptions import ServiceError
from services.vip import VIP_TIERS, purchase_vip, vip_summary

logger = logging.getLogger(__name__)

SIGNATURE_HEADER = "HTTP_X_PAYMENT_SIGNATURE"


class PaymentWebhookSerializer(serializers.Serializer):
    """Payload posted by the payment gateway once a VIP payment settles"""
    user_id = serializers.IntegerField(required=False)
    level = serializers.IntegerField(required=False)
    payment_reference = serializers.CharField(required=False, allow_blank=True)


def sign_payload(body: bytes, secret: str = None) -> str:
    secret = settings.PAYMENT_WEBHOOK_SECRET if secret is None else secret
    return hmac.new(secret.encode(), body, hashlib.sha256).hexdigest()


def signature_is_valid(body: bytes, signature: str) -> bool:
    if not settings.PAYMENT_WEBHOOK_SECRET or not signature:
        return False
    return hmac.compare_digest(sign_payload(body), signature)


@api_view(['GET'])
@authentication_classes([])
@permission_classes([AllowAny])
def vip_tiers(request):
    return Response({'tiers': [tier.as_dict() for tier in VIP_TIERS]})


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def my_vip_status(request):
    return Response(vip_summary(request.user))


@api_view(['POST'])
@authentication_classes([])
@permission_classes([AllowAny])
def payment_webhook(request):
    """
    Record a VIP purchase confirmed by the payment gateway.

    The raw body must be signed with HMAC-SHA256 using PAYMENT_WEBHOOK_SECRET,
    hex digest in the X-Payment-Signature header.
    """
    body = request.body
    if not signature_is_valid(body, request.META.get(SIGNATURE_HEADER, "")):
        logger.warning("Rejected payment webhook with a bad signature")
        return Response({'error': 'Invalid signature'}, status=status.HTTP_403_FORBIDDEN)

    serializer = PaymentWebhookSerializer(data=request.data)
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
    data = serializer.validated_data

    try:
        receipt = purchase_vip(data.get('user_id'), data.get('level'), data.get('payment_reference'))
    except ServiceError as e:
        return error_response(e)

    return Response({
        'success': True,
        'message': f"Successfully upgraded to {receipt.name}",
        'data': receipt.as_dict(),
    }, status=status.HTTP_201_CREATED if receipt.created else status.HTTP_200_OK)
