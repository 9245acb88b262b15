from django.db import migrations, models
import django.db.models.deletion


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        ("professionals", "0001_initial"),
    ]

    operations = [
        migrations.CreateModel(
            name="SlotHold",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("date", models.DateField()),
                ("start_time", models.TimeField()),
                ("session_id", models.CharField(max_length=100)),
                ("renewals", models.PositiveIntegerField(default=0)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("expires_at", models.DateTimeField(db_index=True)),
                (
                    "professional",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="slot_holds",
                        to="professionals.professional",
                    ),
                ),
            ],
            options={"ordering": ["date", "start_time"]},
        ),
        migrations.AddConstraint(
            model_name="slothold",
            constraint=models.UniqueConstraint(
                fields=("professional", "date", "start_time"), name="unique_slot_hold_per_key"
            ),
        ),
    ]
