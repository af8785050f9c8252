from decimal import Decimal

import django.core.validators
import django.db.models.deletion
from django.conf import settings
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        ('catalog', '0001_initial'),
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name='Sale',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('invoice_number', models.CharField(help_text='Unique invoice number, e.g. INV-1718000000000', max_length=40, unique=True)),
                ('total_amount', models.DecimalField(decimal_places=2, default=Decimal('0.00'), help_text='Sum of line totals', max_digits=12)),
                ('total_profit', models.DecimalField(decimal_places=2, default=Decimal('0.00'), help_text='Sum of line profits', max_digits=12)),
                ('payment_method', models.CharField(blank=True, default='', help_text='Free-text payment label (cash, card, ...)', max_length=50)),
                ('created_at', models.DateTimeField(auto_now_add=True, db_index=True)),
                ('staff', models.ForeignKey(blank=True, help_text='Staff member who rang up the sale', null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='sales', to=settings.AUTH_USER_MODEL)),
            ],
            options={
                'verbose_name': 'Sale',
                'verbose_name_plural': 'Sales',
                'ordering': ['-created_at'],
            },
        ),
        migrations.CreateModel(
            name='SaleLineItem',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('quantity', models.PositiveIntegerField(help_text='Units sold', validators=[django.core.validators.MinValueValidator(1)])),
                ('selling_price', models.DecimalField(decimal_places=2, help_text='Unit price charged', max_digits=10)),
                ('cost_price', models.DecimalField(decimal_places=2, help_text='Unit cost at time of sale', max_digits=10)),
                ('profit', models.DecimalField(decimal_places=2, help_text='(selling_price - cost_price) * quantity', max_digits=12)),
                ('sale', models.ForeignKey(help_text='Parent sale', on_delete=django.db.models.deletion.CASCADE, related_name='items', to='sales.sale')),
                ('variant', models.ForeignKey(help_text='Sold variant', on_delete=django.db.models.deletion.PROTECT, related_name='sale_items', to='catalog.variant')),
            ],
            options={
                'verbose_name': 'Sale Line Item',
                'verbose_name_plural': 'Sale Line Items',
                'ordering': ['id'],
            },
        ),
    ]
