# expenses/urls.py

from django.urls import path
from . import views

app_name = 'expenses'

urlpatterns = [
    path('', views.history_view, name='history'),
    path('new/', views.new_expense_view, name='new'),
    path('validate/', views.validate_field_view, name='validate_field'),
    path('<str:expense_id>/edit/', views.edit_expense_view, name='edit'),
    path('<str:expense_id>/delete/', views.delete_expense_view, name='delete'),
]
