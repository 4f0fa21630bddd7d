from django.contrib import admin
from django.contrib.auth.admin import UserAdmin as DjangoUserAdmin

from .models import User


@admin.register(User)
class UserAdmin(DjangoUserAdmin):
    fieldsets = DjangoUserAdmin.fieldsets + (("Print shop", {"fields": ("role", "branch")}),)
    add_fieldsets = DjangoUserAdmin.add_fieldsets + (("Print shop", {"fields": ("role", "branch")}),)
    list_display = ("username", "email", "role", "branch", "is_active", "is_staff")
    list_filter = ("role", "branch", "is_active", "is_staff")
    list_select_related = ("branch",)
    autocomplete_fields = ("branch",)
