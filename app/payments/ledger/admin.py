"""
Django admin configuration for ledger models.

Ledger rows are read-only here: no add, change or delete. Operator
corrections are recorded as new MANUAL entries through LedgerService.
"""

from django.contrib import admin

from .models import AudioStarTransaction, CreditTransaction, LedgerAccount
from .services import LedgerService


@admin.register(LedgerAccount)
class LedgerAccountAdmin(admin.ModelAdmin):
    """Lock rows, shown with the derived balance."""

    list_display = ["id", "user", "kind", "balance_display", "created_at"]
    list_filter = ["kind"]
    search_fields = ["id", "user__email"]
    readonly_fields = ["id", "user", "kind", "created_at", "balance_display"]
    ordering = ["-created_at"]

    @admin.display(description="Balance")
    def balance_display(self, obj: LedgerAccount) -> int:
        return LedgerService.balance(obj.user, obj.kind)

    def has_add_permission(self, request) -> bool:
        return False

    def has_delete_permission(self, request, obj=None) -> bool:
        return False


class LedgerEntryAdmin(admin.ModelAdmin):
    """
    Shared admin for both entry tables.

    Entries are immutable; corrections are new entries.
    """

    list_display = [
        "id",
        "created_at",
        "user",
        "type",
        "amount",
        "reason",
        "source",
        "order",
        "story",
    ]
    list_filter = ["type", "reason", "source", "created_at"]
    search_fields = ["id", "user__email", "reason", "source"]
    readonly_fields = [
        "id",
        "created_at",
        "user",
        "order",
        "story",
        "type",
        "amount",
        "reason",
        "source",
    ]
    date_hierarchy = "created_at"
    ordering = ["-created_at"]

    def has_delete_permission(self, request, obj=None) -> bool:
        return False

    def has_change_permission(self, request, obj=None) -> bool:
        return False

    def has_add_permission(self, request) -> bool:
        return False


admin.site.register(CreditTransaction, LedgerEntryAdmin)
admin.site.register(AudioStarTransaction, LedgerEntryAdmin)
