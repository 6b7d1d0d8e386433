import django.db.models.deletion
from django.conf import settings
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        ('catalog', '0001_initial'),
        ('purchasing', '0001_initial'),
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name='AlertMarker',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('episode', models.PositiveIntegerField()),
                ('kind', models.CharField(choices=[('ignored', 'Ignored'), ('resolved', 'Resolved'), ('acknowledged', 'Acknowledged')], max_length=20)),
                ('reason', models.TextField(blank=True)),
                ('stock_at_marking', models.PositiveIntegerField()),
                ('threshold_at_marking', models.PositiveIntegerField()),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('created_by', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='alert_markers', to=settings.AUTH_USER_MODEL)),
                ('product', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='alert_markers', to='catalog.product')),
                ('purchase_order', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='alert_markers', to='purchasing.purchaseorder')),
            ],
            options={
                'db_table': 'alert_markers',
                'ordering': ['-created_at', '-id'],
                'indexes': [
                    models.Index(fields=['product', 'episode', 'kind'], name='idx_marker_product_episode'),
                    models.Index(fields=['kind', '-created_at'], name='idx_marker_kind_created'),
                ],
            },
        ),
    ]
