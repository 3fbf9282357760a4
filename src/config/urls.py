"""
URL configuration for the Email Archive project.

- /admin/ - Django admin (runs, emails, claims)
- /health/, /health/ready/ - Infrastructure checks
- /migration/status/ - JSON migration status for monitoring
"""
from django.contrib import admin
from django.urls import path, include

urlpatterns = [
    path('admin/', admin.site.urls),

    path('health/', include('apps.core.urls_health')),

    path('migration/', include('apps.migration.urls')),
]

# Customize admin site
admin.site.site_header = 'Email Archive'
admin.site.site_title = 'Email Archive Admin'
admin.site.index_title = 'Archive Migration'
