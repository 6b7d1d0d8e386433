from rest_framework import serializers

from .models import MAX_ITEM_QUANTITY, PurchaseOrder, PurchaseOrderItem


class PurchaseOrderItemSerializer(serializers.ModelSerializer):
    product_name = serializers.CharField(source='product.name', read_only=True)
    product_sku = serializers.CharField(source='product.sku', read_only=True, default=None)
    unit = serializers.CharField(source='product.unit', read_only=True)
    line_total = serializers.SerializerMethodField()

    class Meta:
        model = PurchaseOrderItem
        fields = ['id', 'product', 'product_name', 'product_sku', 'unit', 'quantity', 'unit_price', 'line_total']

    def get_line_total(self, obj):
        return str(obj.get_line_total())


class PurchaseOrderSerializer(serializers.ModelSerializer):
    items = PurchaseOrderItemSerializer(many=True, read_only=True)
    supplier_name = serializers.CharField(source='supplier.name', read_only=True)
    created_by_username = serializers.CharField(source='created_by.username', read_only=True, default=None)
    is_terminal = serializers.BooleanField(read_only=True)

    class Meta:
        model = PurchaseOrder
        fields = [
            'id', 'order_number', 'supplier', 'supplier_name', 'status', 'is_terminal',
            'total_amount', 'notes', 'expected_delivery_date',
            'sent_method', 'sent_to', 'sent_at',
            'items', 'created_by', 'created_by_username', 'created_at', 'updated_at',
        ]
        read_only_fields = fields


class CreatePurchaseOrderSerializer(serializers.Serializer):
    """Request body for raising a purchase order from an alert"""
    productId = serializers.IntegerField()
    quantity = serializers.IntegerField(max_value=MAX_ITEM_QUANTITY)
    notes = serializers.CharField(required=False, allow_blank=True, allow_null=True, max_length=2000)
    expectedDeliveryDate = serializers.DateField(required=False, allow_null=True)


class SendPurchaseOrderSerializer(serializers.Serializer):
    poId = serializers.IntegerField()
    method = serializers.CharField()
    recipientInfo = serializers.CharField(required=False, allow_blank=True, allow_null=True, max_length=255)
