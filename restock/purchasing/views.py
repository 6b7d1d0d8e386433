from django.core.paginator import Paginator
from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from restock.core.exceptions import RestockError
from restock.core.permissions import require_method_permissions, require_permission
from restock.core.utils import error_response, validation_error_response

from . import services
from .filters import PurchaseOrderFilter
from .models import PurchaseOrder
from .serializers import CreatePurchaseOrderSerializer, PurchaseOrderSerializer, SendPurchaseOrderSerializer

DEFAULT_PAGE_SIZE = 15
MAX_PAGE_SIZE = 100


def _int_param(request, name, default):
    try:
        return max(1, int(request.query_params.get(name, default)))
    except (TypeError, ValueError):
        return default


@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated, require_method_permissions({
    'GET': 'purchasing.view_purchaseorder',
    'POST': 'purchasing.add_purchaseorder',
})])
def purchase_order_list_create(request):
    """List purchase orders or raise a new one for a product"""
    if request.method == 'GET':
        queryset = (
            PurchaseOrder.objects
            .select_related('supplier', 'created_by')
            .prefetch_related('items', 'items__product')
        )
        filterset = PurchaseOrderFilter(request.query_params, queryset=queryset)
        if not filterset.is_valid():
            return validation_error_response(filterset.errors, message='Invalid filter parameters')
        queryset = filterset.qs.order_by('-created_at', '-id')

        page = _int_param(request, 'page', 1)
        limit = min(_int_param(request, 'limit', DEFAULT_PAGE_SIZE), MAX_PAGE_SIZE)

        paginator = Paginator(queryset, limit)
        page_obj = paginator.get_page(page)

        serializer = PurchaseOrderSerializer(page_obj, many=True)
        return Response({
            'results': serializer.data,
            'count': paginator.count,
            'next': page_obj.next_page_number() if page_obj.has_next() else None,
            'previous': page_obj.previous_page_number() if page_obj.has_previous() else None,
            'page': page_obj.number,
            'page_size': limit,
            'total_pages': paginator.num_pages,
        })

    # POST
    serializer = CreatePurchaseOrderSerializer(data=request.data)
    if not serializer.is_valid():
        return validation_error_response(serializer.errors)
    data = serializer.validated_data

    try:
        order = services.create_purchase_order(
            data['productId'],
            data['quantity'],
            notes=data.get('notes'),
            expected_delivery_date=data.get('expectedDeliveryDate'),
            user=request.user,
            request=request,
        )
    except RestockError as e:
        return error_response(e)

    return Response({
        'message': f"Purchase order {order.order_number} created",
        'poNumber': order.order_number,
        'poId': order.pk,
        'totalAmount': order.total_amount,
    }, status=status.HTTP_201_CREATED)


@api_view(['GET'])
@permission_classes([IsAuthenticated, require_permission('purchasing.view_purchaseorder')])
def purchase_order_detail(request, pk):
    try:
        order = services.get_purchase_order(pk)
    except RestockError as e:
        return error_response(e)
    return Response(PurchaseOrderSerializer(order).data)


def _transition(request, pk, new_status):
    try:
        order = services.transition_purchase_order(pk, new_status, user=request.user, request=request)
    except RestockError as e:
        return error_response(e)
    return Response(PurchaseOrderSerializer(order).data)


@api_view(['POST'])
@permission_classes([IsAuthenticated, require_permission('purchasing.change_purchaseorder')])
def purchase_order_complete(request, pk):
    """Mark a sent purchase order as received"""
    return _transition(request, pk, PurchaseOrder.STATUS_COMPLETED)


@api_view(['POST'])
@permission_classes([IsAuthenticated, require_permission('purchasing.change_purchaseorder')])
def purchase_order_cancel(request, pk):
    return _transition(request, pk, PurchaseOrder.STATUS_CANCELLED)


@api_view(['POST'])
@permission_classes([IsAuthenticated, require_permission('purchasing.change_purchaseorder')])
def purchase_order_send(request):
    """Send a purchase order to its supplier by email or WhatsApp"""
    serializer = SendPurchaseOrderSerializer(data=request.data)
    if not serializer.is_valid():
        return validation_error_response(serializer.errors)
    data = serializer.validated_data

    try:
        message = services.send_purchase_order(
            data['poId'],
            data['method'],
            data.get('recipientInfo'),
            user=request.user,
            request=request,
        )
    except RestockError as e:
        return error_response(e)

    return Response({'message': message})
