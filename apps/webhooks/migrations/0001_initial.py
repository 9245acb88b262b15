from django.db import migrations, models
import django.utils.timezone


class Migration(migrations.Migration):

    initial = True

    dependencies = []

    operations = [
        migrations.CreateModel(
            name="WebhookEvent",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("payment_id", models.CharField(max_length=100)),
                ("request_id", models.CharField(max_length=255)),
                ("event_type", models.CharField(max_length=50)),
                (
                    "status",
                    models.CharField(
                        choices=[("processed", "Processed"), ("failed", "Failed")], max_length=16
                    ),
                ),
                ("request_body", models.JSONField(default=dict)),
                ("request_headers", models.JSONField(default=dict)),
                ("response_body", models.JSONField(blank=True, null=True)),
                ("error_message", models.TextField(blank=True)),
                ("processed_at", models.DateTimeField(default=django.utils.timezone.now)),
            ],
            options={"ordering": ["-processed_at"]},
        ),
        migrations.AddConstraint(
            model_name="webhookevent",
            constraint=models.UniqueConstraint(
                fields=("payment_id", "request_id"), name="unique_webhook_delivery"
            ),
        ),
    ]
