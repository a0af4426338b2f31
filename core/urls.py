# core/urls.py
from django.urls import path

from . import views

app_name = "core"

urlpatterns = [
    path("activity/", views.activity_list, name="activity_list"),
    path("notifications/", views.notification_list, name="notification_list"),
    path(
        "notifications/<uuid:public_id>/read/",
        views.notification_read,
        name="notification_read",
    ),
]
