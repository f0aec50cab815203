from decimal import Decimal

import django.core.validators
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = []

    operations = [
        migrations.CreateModel(
            name='Product',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('sku', models.CharField(help_text='Stock-keeping unit, unique per product', max_length=64, unique=True)),
                ('name', models.CharField(db_index=True, help_text='Product name for display and search', max_length=200)),
                ('category', models.CharField(db_index=True, help_text='Brand or category the product belongs to', max_length=100)),
                ('description', models.TextField(blank=True, default='', help_text='Optional product description')),
                ('image', models.CharField(blank=True, default='', help_text='Image URL or storage reference', max_length=500)),
                ('price', models.DecimalField(decimal_places=2, help_text='List price before discount', max_digits=10, validators=[django.core.validators.MinValueValidator(Decimal('0.00'))])),
                ('discount', models.DecimalField(decimal_places=2, default=Decimal('0.00'), help_text='Discount percentage (0-100)', max_digits=5, validators=[django.core.validators.MinValueValidator(Decimal('0')), django.core.validators.MaxValueValidator(Decimal('100'))])),
                ('sizes', models.JSONField(blank=True, default=list, help_text='Per-size stock: list of {size, quantity}')),
                ('stock', models.PositiveIntegerField(default=0, help_text='Total stock across all sizes (derived)')),
                ('talle', models.JSONField(blank=True, default=list, help_text='Size labels mirroring sizes (derived)')),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
            ],
            options={
                'verbose_name': 'Product',
                'verbose_name_plural': 'Products',
                'ordering': ['name'],
                'indexes': [models.Index(fields=['category', 'name'], name='product_category_name_idx')],
            },
        ),
    ]
