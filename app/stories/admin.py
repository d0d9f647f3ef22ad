"""
Django admin configuration for stories app.

Children are editable. Stories and their token usage are read-only:
story state is owned by the generation pipeline.
"""

from django.contrib import admin

from .models import Child, Story, StoryTransaction


@admin.register(Child)
class ChildAdmin(admin.ModelAdmin):
    list_display = ["name", "age", "user", "mood", "created_at"]
    list_filter = ["mood"]
    search_fields = ["name", "user__email"]
    readonly_fields = ["id", "created_at", "updated_at"]


class StoryTransactionInline(admin.TabularInline):
    model = StoryTransaction
    extra = 0
    can_delete = False
    fields = ["operation_type", "model", "input_tokens", "output_tokens", "total_tokens", "created_at"]
    readonly_fields = fields

    def has_add_permission(self, request, obj=None) -> bool:
        return False


@admin.register(Story)
class StoryAdmin(admin.ModelAdmin):
    list_display = [
        "id",
        "title",
        "user",
        "child",
        "status",
        "audio_status",
        "credit_cost",
        "created_at",
    ]
    list_filter = ["status", "audio_status", "length", "mood", "created_at"]
    search_fields = ["id", "title", "user__email", "child__name"]
    date_hierarchy = "created_at"
    ordering = ["-created_at"]
    inlines = [StoryTransactionInline]
    fieldsets = [
        ("Request", {"fields": ["id", "user", "child", "theme", "mood", "length", "lesson", "credit_cost"]}),
        ("Status", {"fields": ["status", "error_message", "ready_at", "created_at", "updated_at"]}),
        ("Content", {"fields": ["title", "summary", "text", "setting", "conflict", "tone", "model"]}),
        ("Images", {"fields": ["preview_url", "cover_url", "cover_square_url"]}),
        (
            "Narration",
            {
                "fields": [
                    "audio_status",
                    "audio_url",
                    "audio_error",
                    "audio_hash",
                    "audio_voice_id",
                    "audio_updated_at",
                ]
            },
        ),
    ]

    def get_readonly_fields(self, request, obj=None):
        return [field for fieldset in self.fieldsets for field in fieldset[1]["fields"]]

    def has_add_permission(self, request) -> bool:
        return False

    def has_change_permission(self, request, obj=None) -> bool:
        return False

    def has_delete_permission(self, request, obj=None) -> bool:
        return False


@admin.register(StoryTransaction)
class StoryTransactionAdmin(admin.ModelAdmin):
    list_display = ["id", "story", "operation_type", "model", "total_tokens", "created_at"]
    list_filter = ["operation_type", "model"]
    search_fields = ["story__id", "request_id", "response_id"]
    readonly_fields = [
        "id",
        "story",
        "operation_type",
        "model",
        "input_tokens",
        "output_tokens",
        "total_tokens",
        "prompt_tokens",
        "completion_tokens",
        "request_id",
        "response_id",
        "created_at",
        "updated_at",
    ]

    def has_add_permission(self, request) -> bool:
        return False

    def has_change_permission(self, request, obj=None) -> bool:
        return False

    def has_delete_permission(self, request, obj=None) -> bool:
        return False
