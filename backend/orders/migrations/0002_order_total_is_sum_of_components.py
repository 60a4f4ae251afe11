from decimal import Decimal

from django.db import migrations, models


class Migration(migrations.Migration):

    dependencies = [
        ("orders", "0001_initial"),
    ]

    operations = [
        migrations.AddConstraint(
            model_name="order",
            constraint=models.CheckConstraint(
                condition=models.Q(
                    total__gte=models.F("subtotal") + models.F("delivery_fee") + models.F("tax_amount") - Decimal("0.005")
                )
                & models.Q(
                    total__lte=models.F("subtotal") + models.F("delivery_fee") + models.F("tax_amount") + Decimal("0.005")
                ),
                name="order_total_is_sum_of_components",
            ),
        ),
    ]
