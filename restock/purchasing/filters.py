import django_filters
from django.db.models import Q

from .models import PurchaseOrder


class PurchaseOrderFilter(django_filters.FilterSet):
    """Filter for the purchase order list"""
    search = django_filters.CharFilter(method='filter_search', label='Search')
    status = django_filters.ChoiceFilter(choices=PurchaseOrder.STATUS_CHOICES)
    supplier = django_filters.NumberFilter(field_name='supplier_id', lookup_expr='exact')
    product = django_filters.NumberFilter(field_name='items__product_id', lookup_expr='exact', distinct=True)
    date_from = django_filters.DateFilter(field_name='created_at', lookup_expr='date__gte')
    date_to = django_filters.DateFilter(field_name='created_at', lookup_expr='date__lte')

    class Meta:
        model = PurchaseOrder
        fields = ['search', 'status', 'supplier', 'product', 'date_from', 'date_to']

    def filter_search(self, queryset, name, value):
        """Match order number, supplier name or notes"""
        value = value.strip()
        if not value:
            return queryset
        return queryset.filter(
            Q(order_number__icontains=value) |
            Q(supplier__name__icontains=value) |
            Q(notes__icontains=value)
        )
