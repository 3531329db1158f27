# students/admin.py

from django.contrib import admin
from .models import Student


@admin.register(Student)
class StudentAdmin(admin.ModelAdmin):
    list_display = ['enrollment_number', 'full_name', 'gender', 'status', 'created_at']
    list_filter = ['status', 'gender']
    search_fields = ['enrollment_number', 'first_name', 'middle_name', 'last_name', 'email']
    readonly_fields = ['id', 'created_at', 'updated_at', 'created_by_id', 'updated_by_id']
    ordering = ['enrollment_number']
