# parking_system/urls.py
#
# Purpose:
# - Project URL router.
# - Only the Django admin is exposed; facility managers and operators use it
#   to maintain facilities/slots and to resolve overdue bookings.
#
from django.contrib import admin
from django.urls import path
from django.conf import settings
from django.conf.urls.static import static


urlpatterns = [
    path("admin/", admin.site.urls),
]

# Static files in DEBUG (dev only). In production, serve via web server / CDN.
if settings.DEBUG:
    urlpatterns += static(settings.STATIC_URL, document_root=settings.STATIC_ROOT)
