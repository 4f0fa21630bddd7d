from django.contrib import admin
from django.urls import include, path

admin.site.site_header = "Print Shop Administration"
admin.site.site_title = "Print Shop"

urlpatterns = [
    path("health/", include("apps.health.urls")),
    path("api/v1/", include("apps.api_urls")),
    path("admin/", admin.site.urls),
]
