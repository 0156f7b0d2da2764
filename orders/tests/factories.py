from decimal import Decimal

import factory
from django.contrib.auth import get_user_model
from factory.django import DjangoModelFactory
from orders.models import Order, OrderLine


class UserFactory(DjangoModelFactory):
    class Meta:
        model = get_user_model()

    username = factory.Sequence(lambda n: f"operator{n}")
    email = factory.Faker("email")
    password = factory.PostGenerationMethodCall("set_password", "pass")


class OrderFactory(DjangoModelFactory):
    class Meta:
        model = Order

    kind = Order.KIND_SALES_ORDER
    number = factory.Sequence(lambda n: f"SO-20250101-{n + 1:05d}")
    status = Order.STATUS_CONFIRMED


class OrderLineFactory(DjangoModelFactory):
    class Meta:
        model = OrderLine

    order = factory.SubFactory(OrderFactory)
    sku = factory.Sequence(lambda n: f"SKU-{n:04d}")
    product_name = factory.Faker("word")
    ordered_quantity = Decimal("10")
