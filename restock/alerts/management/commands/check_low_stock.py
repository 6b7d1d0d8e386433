"""
Django management command that prints the active low-stock alerts,
suitable for a cron job or a quick look from the shell
"""
from django.core.management.base import BaseCommand, CommandError

from restock.alerts import services
from restock.catalog.models import PRIORITY_CHOICES
from restock.core.exceptions import RestockError


class Command(BaseCommand):
    help = 'List active low-stock alerts, most critical first'

    def add_arguments(self, parser):
        parser.add_argument(
            '--priority',
            choices=[value for value, _ in PRIORITY_CHOICES],
            help='Only show alerts with this priority',
        )
        parser.add_argument(
            '--category',
            help='Only show alerts for this category name',
        )
        parser.add_argument(
            '--fail-on-high',
            action='store_true',
            help='Exit with an error when any product is out of stock',
        )

    def handle(self, *args, **options):
        try:
            alerts = services.list_active(category=options.get('category'), priority=options.get('priority'))
        except RestockError as e:
            raise CommandError(e.public_message)

        if not alerts:
            self.stdout.write(self.style.SUCCESS('No active low-stock alerts'))
            return

        self.stdout.write("=" * 80)
        self.stdout.write(self.style.WARNING(f"ACTIVE LOW-STOCK ALERTS: {len(alerts)}"))
        self.stdout.write("=" * 80)

        style_for = {
            'high': self.style.ERROR,
            'medium': self.style.WARNING,
            'low': self.style.NOTICE,
        }
        for alert in alerts:
            product = alert.product
            supplier = product.supplier.name if product.supplier else '-'
            line = (
                f"[{alert.priority.upper():6}] {product.name} ({product.sku or 'NO-SKU'}) "
                f"stock {product.current_stock}/{product.low_stock_threshold} supplier {supplier}"
            )
            self.stdout.write(style_for[alert.priority](line))

        high_count = sum(1 for alert in alerts if alert.priority == 'high')
        if options.get('fail_on_high') and high_count:
            raise CommandError(f'{high_count} product(s) out of stock')
