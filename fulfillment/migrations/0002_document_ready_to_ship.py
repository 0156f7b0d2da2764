from django.db import migrations, models


class Migration(migrations.Migration):

    dependencies = [
        ("fulfillment", "0001_initial"),
    ]

    operations = [
        migrations.AlterField(
            model_name="document",
            name="status",
            field=models.CharField(
                choices=[
                    ("pending", "Pending"),
                    ("requested", "Requested"),
                    ("in_preparation", "In preparation"),
                    ("ready_to_ship", "Ready to ship"),
                    ("approved", "Approved"),
                    ("shipped", "Shipped"),
                    ("in_transit", "In transit"),
                    ("partially_received", "Partially received"),
                    ("delivered", "Delivered"),
                    ("received", "Received"),
                    ("cancelled", "Cancelled"),
                    ("failed_delivery", "Failed delivery"),
                    ("rejected", "Rejected"),
                ],
                db_index=True,
                max_length=24,
            ),
        ),
    ]
