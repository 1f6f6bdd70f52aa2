from django.urls import path
from . import views

app_name = 'categories'

urlpatterns = [
    path('', views.categories_view, name='list'),
    path('<str:category_id>/edit/', views.edit_category_view, name='edit'),
    path('<str:category_id>/delete/', views.delete_category_view, name='delete'),
]
