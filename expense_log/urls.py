from django.urls import include, path

urlpatterns = [
    path('', include('dashboard.urls')),
    path('expenses/', include('expenses.urls')),
    path('categories/', include('categories.urls')),
]
