"""
Alert payloads use the camelCase keys the dashboard frontend reads.
"""
from rest_framework import serializers

from restock.parties.serializers import SupplierSerializer


class AlertSerializer(serializers.Serializer):
    id = serializers.IntegerField(read_only=True)
    productId = serializers.IntegerField(source='product.pk')
    name = serializers.CharField(source='product.name')
    sku = serializers.CharField(source='product.sku', default=None)
    category = serializers.CharField(source='product.category.name', default=None)
    currentStock = serializers.IntegerField(source='product.current_stock')
    threshold = serializers.IntegerField(source='product.low_stock_threshold')
    shortfall = serializers.IntegerField(source='product.shortfall')
    unit = serializers.CharField(source='product.unit')
    unitPrice = serializers.DecimalField(source='product.unit_price', max_digits=10, decimal_places=2)
    priority = serializers.CharField()
    status = serializers.CharField()
    createdAt = serializers.DateTimeField(source='created_at')
    acknowledgedAt = serializers.DateTimeField(source='acknowledged_at')
    supplier = SupplierSerializer(source='product.supplier', default=None)


class IgnoredAlertSerializer(serializers.Serializer):
    id = serializers.IntegerField()
    productId = serializers.IntegerField(source='product.pk')
    name = serializers.CharField(source='product.name')
    sku = serializers.CharField(source='product.sku', default=None)
    category = serializers.CharField(source='product.category.name', default=None)
    currentStock = serializers.IntegerField(source='product.current_stock')
    threshold = serializers.IntegerField(source='product.low_stock_threshold')
    priority = serializers.CharField(source='product.priority')
    supplier = serializers.CharField(source='product.supplier.name', default=None)
    reason = serializers.CharField()
    ignoredAt = serializers.DateTimeField(source='created_at')
    ignoredBy = serializers.CharField(source='created_by.username', default=None)


class ResolvedAlertSerializer(serializers.Serializer):
    id = serializers.IntegerField()
    productId = serializers.IntegerField(source='product.pk')
    name = serializers.CharField(source='product.name')
    category = serializers.CharField(source='product.category.name', default=None)
    supplier = serializers.SerializerMethodField()
    stockAtResolution = serializers.IntegerField(source='stock_at_marking')
    thresholdAtResolution = serializers.IntegerField(source='threshold_at_marking')
    poId = serializers.IntegerField(source='purchase_order.pk', default=None)
    poNumber = serializers.CharField(source='purchase_order.order_number', default=None)
    poStatus = serializers.CharField(source='purchase_order.status', default=None)
    quantityOrdered = serializers.SerializerMethodField()
    unitPrice = serializers.SerializerMethodField()
    totalAmount = serializers.DecimalField(source='purchase_order.total_amount', max_digits=12, decimal_places=2, default=None)
    resolvedAt = serializers.DateTimeField(source='created_at')
    resolvedBy = serializers.CharField(source='created_by.username', default=None)

    def _order_item(self, obj):
        if obj.purchase_order is None:
            return None
        for item in obj.purchase_order.items.all():
            if item.product_id == obj.product_id:
                return item
        return None

    def get_supplier(self, obj):
        if obj.purchase_order is not None:
            return obj.purchase_order.supplier.name
        return obj.product.supplier.name if obj.product.supplier else None

    def get_quantityOrdered(self, obj):
        item = self._order_item(obj)
        return item.quantity if item else None

    def get_unitPrice(self, obj):
        item = self._order_item(obj)
        return str(item.unit_price) if item else None


class AlertMarkerSerializer(serializers.Serializer):
    """One entry of a product's alert history"""
    id = serializers.IntegerField()
    kind = serializers.CharField()
    episode = serializers.IntegerField()
    reason = serializers.CharField()
    stockAtMarking = serializers.IntegerField(source='stock_at_marking')
    thresholdAtMarking = serializers.IntegerField(source='threshold_at_marking')
    poNumber = serializers.CharField(source='purchase_order.order_number', default=None)
    createdBy = serializers.CharField(source='created_by.username', default=None)
    createdAt = serializers.DateTimeField(source='created_at')


class CategoryBreakdownSerializer(serializers.Serializer):
    category = serializers.CharField()
    count = serializers.IntegerField()
    estimatedValue = serializers.DecimalField(source='estimated_value', max_digits=14, decimal_places=2)


class AlertSummarySerializer(serializers.Serializer):
    total = serializers.IntegerField()
    high = serializers.IntegerField()
    medium = serializers.IntegerField()
    low = serializers.IntegerField()
    ignored = serializers.IntegerField()
    estimatedRestockValue = serializers.DecimalField(source='estimated_restock_value', max_digits=14, decimal_places=2)
    categoryBreakdown = CategoryBreakdownSerializer(source='category_breakdown', many=True)


class ReorderSuggestionSerializer(serializers.Serializer):
    productId = serializers.IntegerField(source='product.pk')
    name = serializers.CharField(source='product.name')
    sku = serializers.CharField(source='product.sku', default=None)
    currentStock = serializers.IntegerField(source='product.current_stock')
    threshold = serializers.IntegerField(source='product.low_stock_threshold')
    priority = serializers.CharField(source='alert.priority')
    suggestedQuantity = serializers.IntegerField(source='suggested_quantity')
    unitCost = serializers.DecimalField(source='product.unit_price', max_digits=10, decimal_places=2)
    estimatedCost = serializers.DecimalField(source='estimated_cost', max_digits=14, decimal_places=2)
    supplierId = serializers.IntegerField(source='product.supplier.pk', default=None)
    supplier = serializers.CharField(source='product.supplier.name', default=None)


# Request bodies

class IgnoreAlertSerializer(serializers.Serializer):
    reason = serializers.CharField(required=False, allow_blank=True, allow_null=True, max_length=1000)


class AcknowledgeAlertSerializer(serializers.Serializer):
    notes = serializers.CharField(required=False, allow_blank=True, allow_null=True, max_length=1000)


class ThresholdUpdateSerializer(serializers.Serializer):
    productId = serializers.IntegerField()
    threshold = serializers.IntegerField()
