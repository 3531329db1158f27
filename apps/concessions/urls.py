# concessions/urls.py

from django.urls import path
from . import ajax_views, views

app_name = 'concessions'

urlpatterns = [
    # Booklets
    path('booklets/', ajax_views.booklet_list, name='booklet_list'),
    path('booklets/allocatable/', ajax_views.allocatable_booklets, name='allocatable_booklets'),
    path('booklets/create/', ajax_views.booklet_create, name='booklet_create'),
    path('booklets/<uuid:booklet_id>/update/', ajax_views.booklet_update, name='booklet_update'),
    path('booklets/<uuid:booklet_id>/delete/', ajax_views.booklet_delete, name='booklet_delete'),
    path('booklets/<uuid:booklet_id>/damaged-pages/', ajax_views.booklet_damaged_pages, name='booklet_damaged_pages'),
    path('booklets/<uuid:booklet_id>/pages/', ajax_views.booklet_pages, name='booklet_pages'),
    path('booklets/<uuid:booklet_id>/export/excel/', views.export_booklet_register_excel, name='booklet_export_excel'),

    # Applications
    path('applications/submit/', ajax_views.application_submit, name='application_submit'),
    path('applications/<uuid:application_id>/approve/', ajax_views.application_approve, name='application_approve'),
    path('applications/<uuid:application_id>/reject/', ajax_views.application_reject, name='application_reject'),
    path('applications/<uuid:application_id>/certificate/', ajax_views.application_certificate, name='application_certificate'),
    path('applications/<uuid:application_id>/current-pass/', ajax_views.application_current_pass, name='application_current_pass'),
]
