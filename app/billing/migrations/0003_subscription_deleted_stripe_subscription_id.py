from django.db import migrations, models


class Migration(migrations.Migration):
    dependencies = [
        ("billing", "0002_add_billing_schedules"),
    ]

    operations = [
        migrations.AddField(
            model_name="subscription",
            name="deleted_stripe_subscription_id",
            field=models.CharField(
                blank=True,
                help_text="Last Stripe Subscription ID deleted for this user",
                max_length=255,
                null=True,
            ),
        ),
    ]
