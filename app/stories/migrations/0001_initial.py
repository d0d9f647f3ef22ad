import uuid

import django.db.models.deletion
from django.conf import settings
from django.db import migrations, models

UUID_PK = (
    "id",
    models.UUIDField(
        default=uuid.uuid4,
        editable=False,
        help_text="Unique identifier for this record",
        primary_key=True,
        serialize=False,
    ),
)


def timestamps():
    return [
        (
            "created_at",
            models.DateTimeField(
                auto_now_add=True,
                db_index=True,
                help_text="Timestamp when this record was created",
            ),
        ),
        (
            "updated_at",
            models.DateTimeField(auto_now=True, help_text="Timestamp when this record was last modified"),
        ),
    ]


MOOD_CHOICES = [("nyugodt", "Nyugodt"), ("vidam", "Vidám"), ("kalandos", "Kalandos")]


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name="Child",
            fields=[
                UUID_PK,
                *timestamps(),
                ("name", models.CharField(max_length=100)),
                ("age", models.PositiveSmallIntegerField()),
                ("learning_goal", models.CharField(blank=True, default="", max_length=255)),
                ("mood", models.CharField(blank=True, choices=MOOD_CHOICES, default="", max_length=20)),
                (
                    "user",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="children",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
            ],
            options={
                "db_table": "children",
                "ordering": ["name"],
            },
        ),
        migrations.CreateModel(
            name="Story",
            fields=[
                UUID_PK,
                *timestamps(),
                (
                    "status",
                    models.CharField(
                        choices=[
                            ("queued", "Queued"),
                            ("generating_text", "Generating text"),
                            ("extracting_meta", "Extracting metadata"),
                            ("generating_cover", "Generating cover"),
                            ("uploading_cover", "Uploading cover"),
                            ("ready", "Ready"),
                            ("failed", "Failed"),
                        ],
                        db_index=True,
                        default="queued",
                        max_length=20,
                    ),
                ),
                ("credit_cost", models.PositiveIntegerField()),
                ("theme", models.CharField(max_length=100)),
                ("mood", models.CharField(choices=MOOD_CHOICES, max_length=20)),
                (
                    "length",
                    models.CharField(
                        choices=[("short", "Rövid"), ("medium", "Közepes"), ("long", "Hosszú")],
                        max_length=10,
                    ),
                ),
                ("lesson", models.CharField(blank=True, default="", max_length=255)),
                ("title", models.CharField(blank=True, default="", max_length=255)),
                ("summary", models.TextField(blank=True, default="")),
                ("text", models.TextField(blank=True, default="")),
                ("setting", models.CharField(blank=True, default="", max_length=100)),
                ("conflict", models.CharField(blank=True, default="", max_length=100)),
                ("tone", models.CharField(blank=True, default="", max_length=20)),
                ("model", models.CharField(blank=True, default="", max_length=100)),
                ("preview_url", models.URLField(blank=True, default="", max_length=500)),
                ("cover_url", models.URLField(blank=True, default="", max_length=500)),
                ("cover_square_url", models.URLField(blank=True, default="", max_length=500)),
                ("ready_at", models.DateTimeField(blank=True, null=True)),
                ("error_message", models.TextField(blank=True, default="")),
                (
                    "audio_status",
                    models.CharField(
                        choices=[
                            ("none", "None"),
                            ("queued", "Queued"),
                            ("generating", "Generating"),
                            ("ready", "Ready"),
                            ("failed", "Failed"),
                        ],
                        default="none",
                        max_length=20,
                    ),
                ),
                ("audio_url", models.URLField(blank=True, default="", max_length=500)),
                ("audio_error", models.TextField(blank=True, default="")),
                ("audio_hash", models.CharField(blank=True, default="", max_length=64)),
                ("audio_voice_id", models.CharField(blank=True, default="", max_length=64)),
                ("audio_updated_at", models.DateTimeField(blank=True, null=True)),
                (
                    "child",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="stories",
                        to="stories.child",
                    ),
                ),
                (
                    "user",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="stories",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
            ],
            options={
                "db_table": "stories",
                "ordering": ["-created_at"],
                "verbose_name_plural": "stories",
                "indexes": [
                    models.Index(fields=["child", "-created_at"], name="story_child_created_idx"),
                    models.Index(fields=["user", "-created_at"], name="story_user_created_idx"),
                ],
            },
        ),
        migrations.CreateModel(
            name="StoryTransaction",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                *timestamps(),
                (
                    "operation_type",
                    models.CharField(
                        choices=[
                            ("story_generation", "Story generation"),
                            ("meta_extraction", "Meta extraction"),
                        ],
                        default="story_generation",
                        max_length=32,
                    ),
                ),
                ("model", models.CharField(max_length=100)),
                ("input_tokens", models.PositiveIntegerField(default=0)),
                ("output_tokens", models.PositiveIntegerField(default=0)),
                ("total_tokens", models.PositiveIntegerField(default=0)),
                ("prompt_tokens", models.PositiveIntegerField(blank=True, null=True)),
                ("completion_tokens", models.PositiveIntegerField(blank=True, null=True)),
                ("request_id", models.CharField(blank=True, default="", max_length=255)),
                ("response_id", models.CharField(blank=True, default="", max_length=255)),
                (
                    "story",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="transactions",
                        to="stories.story",
                    ),
                ),
            ],
            options={
                "db_table": "story_transactions",
                "ordering": ["created_at"],
            },
        ),
    ]
