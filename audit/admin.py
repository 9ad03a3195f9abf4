from django.contrib import admin
from .models import AuditLog


@admin.register(AuditLog)
class AuditLogAdmin(admin.ModelAdmin):
    list_display = ("timestamp", "username", "action", "resource", "severity")
    list_filter = ("severity", "action")
    search_fields = ("username", "resource", "details")
    readonly_fields = ("timestamp", "username", "action", "resource", "severity", "details", "changes", "ip_address")

    def has_add_permission(self, request):
        return False

    def has_change_permission(self, request, obj=None):
        return False
