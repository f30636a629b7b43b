from django.db import migrations, models


class Migration(migrations.Migration):

    dependencies = [
        ("checkout", "0001_initial"),
    ]

    operations = [
        migrations.AddField(
            model_name="checkoutsession",
            name="awaiting_outcome",
            field=models.BooleanField(
                default=False,
                help_text="A gateway call went unanswered; resubmits replay it",
            ),
        ),
    ]
