from django.urls import path

from . import views

app_name = 'migration'

urlpatterns = [
    path('status/', views.migration_status, name='status'),
]
