from django.urls import path

from . import views

urlpatterns = [
    path('', views.home, name='home'),
    path('quote/', views.quote_form_view, name='quote_form'),
    path('calculate/', views.calculate_view, name='calculate'),
    path('options/<str:configuration_name>/<str:kind_name>/', views.options_view, name='component_options'),
    path('reference-table/', views.reference_upload_view, name='reference_upload'),
]
