from django.utils import timezone
from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from restock.catalog.serializers import ProductSummarySerializer
from restock.core.exceptions import RestockError
from restock.core.permissions import require_permission
from restock.core.utils import error_response, validation_error_response

from . import services
from .serializers import (
    AcknowledgeAlertSerializer,
    AlertMarkerSerializer,
    AlertSerializer,
    AlertSummarySerializer,
    IgnoreAlertSerializer,
    IgnoredAlertSerializer,
    ReorderSuggestionSerializer,
    ResolvedAlertSerializer,
    ThresholdUpdateSerializer,
)

CAN_VIEW_ALERTS = require_permission('alerts.view_alertmarker')
CAN_MARK_ALERTS = require_permission('alerts.add_alertmarker')


@api_view(['GET'])
@permission_classes([IsAuthenticated, CAN_VIEW_ALERTS])
def active_alerts(request):
    """Active low-stock alerts, most critical first"""
    try:
        alerts = services.list_active(
            category=request.query_params.get('category') or None,
            priority=request.query_params.get('priority') or None,
        )
    except RestockError as e:
        return error_response(e)
    return Response(AlertSerializer(alerts, many=True).data)


@api_view(['GET'])
@permission_classes([IsAuthenticated, CAN_VIEW_ALERTS])
def ignored_alerts(request):
    return Response(IgnoredAlertSerializer(services.list_ignored(), many=True).data)


@api_view(['GET'])
@permission_classes([IsAuthenticated, CAN_VIEW_ALERTS])
def resolved_alerts(request):
    return Response(ResolvedAlertSerializer(services.list_resolved(), many=True).data)


@api_view(['GET'])
@permission_classes([IsAuthenticated, CAN_VIEW_ALERTS])
def alert_summary(request):
    """Dashboard counts (cached, invalidated on stock and marker changes)"""
    return Response(AlertSummarySerializer(services.alert_summary()).data)


@api_view(['GET'])
@permission_classes([IsAuthenticated, CAN_VIEW_ALERTS])
def reorder_suggestions(request):
    suggestions = services.reorder_suggestions()
    total_cost = sum((s.estimated_cost for s in suggestions), 0)
    return Response({
        'suggestions': ReorderSuggestionSerializer(suggestions, many=True).data,
        'summary': {
            'totalItems': len(suggestions),
            'totalEstimatedCost': f"{total_cost:.2f}",
        },
    })


@api_view(['GET'])
@permission_classes([IsAuthenticated, CAN_VIEW_ALERTS])
def alert_history(request, product_id):
    try:
        markers = services.alert_history(product_id)
    except RestockError as e:
        return error_response(e)
    return Response(AlertMarkerSerializer(markers, many=True).data)


@api_view(['POST'])
@permission_classes([IsAuthenticated, CAN_MARK_ALERTS])
def ignore_alert(request, product_id):
    """Hide an alert until the product is restocked and runs low again"""
    serializer = IgnoreAlertSerializer(data=request.data)
    if not serializer.is_valid():
        return validation_error_response(serializer.errors)

    try:
        marker = services.ignore_alert(
            product_id,
            reason=serializer.validated_data.get('reason'),
            user=request.user,
            request=request,
        )
    except RestockError as e:
        return error_response(e)

    return Response({
        'message': f"Alert for {marker.product.name} ignored",
        'productId': marker.product_id,
        'reason': marker.reason,
    })


@api_view(['POST'])
@permission_classes([IsAuthenticated, CAN_MARK_ALERTS])
def acknowledge_alert(request, product_id):
    serializer = AcknowledgeAlertSerializer(data=request.data)
    if not serializer.is_valid():
        return validation_error_response(serializer.errors)

    try:
        marker = services.acknowledge_alert(
            product_id,
            notes=serializer.validated_data.get('notes'),
            user=request.user,
            request=request,
        )
    except RestockError as e:
        return error_response(e)

    return Response({
        'message': f"Alert for {marker.product.name} acknowledged",
        'productId': marker.product_id,
        'acknowledgedAt': timezone.localtime(marker.created_at).isoformat(),
    })


@api_view(['PUT'])
@permission_classes([IsAuthenticated, require_permission('catalog.change_product')])
def update_threshold(request):
    serializer = ThresholdUpdateSerializer(data=request.data)
    if not serializer.is_valid():
        return validation_error_response(serializer.errors)
    data = serializer.validated_data

    try:
        product = services.update_threshold(
            data['productId'],
            data['threshold'],
            user=request.user,
            request=request,
        )
    except RestockError as e:
        return error_response(e)

    return Response({
        'message': f"Threshold for {product.name} updated to {product.low_stock_threshold}",
        'product': ProductSummarySerializer(product).data,
    })
