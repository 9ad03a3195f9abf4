from django.contrib import admin
from notifications.models import Notification

@admin.register(Notification)
class NotificationAdmin(admin.ModelAdmin):
    list_display = ('user', 'type', 'priority', 'sent', 'is_read', 'created_at')
    list_filter = ('type', 'priority', 'sent', 'is_read', 'created_at')
    search_fields = ('user__username', 'message')
