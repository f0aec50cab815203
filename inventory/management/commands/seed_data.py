"""
Management command to seed the database with a sample footwear catalogue.

Generates:
- Products across several brands, each with generated SKU
- Per-size stock for every product

Usage:
    python manage.py seed_data
    python manage.py seed_data --clear  # Clear existing data first
"""
import random
from decimal import Decimal
from django.core.management.base import BaseCommand
from django.db import transaction

from inventory.models import Product
from inventory.normalizers import normalize_size_entries
from inventory.services import generate_sku

MODELS_BY_BRAND = {
    'Nike': ['Air Max 90', 'Air Force 1', 'Dunk Low', 'Pegasus 40', 'Blazer Mid'],
    'Adidas': ['Superstar', 'Stan Smith', 'Ultraboost 22', 'Gazelle', 'Samba OG'],
    'Vans': ['Old Skool', 'Sk8 Hi', 'Authentic', 'Slip On', 'Era 95'],
    'Puma': ['Suede Classic', 'RS X', 'Palermo', 'Speedcat'],
    'New Balance': ['574 Core', '550 White', '9060', '2002R'],
}

NUMERIC_SIZES = ['35', '36', '37', '38', '39', '40', '41', '42', '43', '44', '45']
US_SIZES = ['7', '7.5', '8', '8.5', '9', '9.5', '10', '10.5', '11']

COLORWAYS = ['Black', 'White', 'Triple White', 'Panda', 'Navy', 'Grey', 'University Red']


class Command(BaseCommand):
    help = 'Seed the database with a sample footwear catalogue and per-size stock'

    def add_arguments(self, parser):
        parser.add_argument(
            '--clear',
            action='store_true',
            help='Clear existing data before seeding',
        )
        parser.add_argument(
            '--products',
            type=int,
            default=60,
            help='Number of products to create (default: 60)',
        )

    def handle(self, *args, **options):
        if options['clear']:
            self.stdout.write('Clearing existing data...')
            self._clear_data()

        self.stdout.write('Starting database seeding...')

        with transaction.atomic():
            products = self._create_products(options['products'])

        total_units = sum(product.stock for product in products)
        self.stdout.write(self.style.SUCCESS(
            f'Database seeding completed: {len(products)} products, {total_units} units'
        ))

    def _clear_data(self):
        """Clear all existing data."""
        from invoices.services import delete_all_invoices

        delete_all_invoices()
        Product.objects.all().delete()

        self.stdout.write(self.style.WARNING('All existing data cleared.'))

    def _random_sizes(self):
        """Random size ledger; some sizes come out empty and are dropped."""
        size_range = random.choice([NUMERIC_SIZES, US_SIZES])
        start = random.randint(0, len(size_range) // 2)
        labels = size_range[start:start + random.randint(3, len(size_range) - start)]
        return normalize_size_entries(
            {'size': label, 'quantity': random.randint(0, 12)} for label in labels
        )

    def _create_products(self, count):
        """Create products one by one so SKUs follow the category count."""
        products = []

        self.stdout.write(f'Creating {count} products...')

        for i in range(count):
            brand = random.choice(list(MODELS_BY_BRAND))
            model = random.choice(MODELS_BY_BRAND[brand])
            name = f"{model} {random.choice(COLORWAYS)}"

            product = Product(
                sku=generate_sku(brand, name),
                name=name,
                category=brand,
                description=random.choice([
                    f"{brand} {model} in a limited colourway.",
                    f"Everyday {model} from {brand}.",
                    "",  # Some products without description
                ]),
                price=Decimal(str(round(random.uniform(60, 250), 2))),
                discount=Decimal(random.choice([0, 0, 0, 10, 15, 25])),
                sizes=self._random_sizes(),
            )
            product.save()
            products.append(product)

            if (i + 1) % 20 == 0:
                self.stdout.write(f'  Created {i + 1} products...')

        self.stdout.write(self.style.SUCCESS(f'Created {len(products)} products'))
        return products
