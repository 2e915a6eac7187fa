from django.db import migrations, models


class Migration(migrations.Migration):
    dependencies = [
        ("payments", "0002_add_auto_release_schedule"),
    ]

    operations = [
        migrations.AddField(
            model_name="escrowhold",
            name="transfer_attempts",
            field=models.PositiveIntegerField(default=1),
        ),
    ]
