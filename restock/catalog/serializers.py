from rest_framework import serializers
from .models import Product


class ProductSummarySerializer(serializers.ModelSerializer):
    category_name = serializers.CharField(source='category.name', read_only=True, default=None)

    class Meta:
        model = Product
        fields = ['id', 'name', 'sku', 'category_name', 'unit', 'unit_price', 'current_stock', 'low_stock_threshold']
