"""
URL routing for sale and analytics API endpoints.
"""
from django.urls import path
from . import views

app_name = 'sales'

urlpatterns = [
    path('sales/', views.SaleListCreateView.as_view(), name='sale-list'),
    path('sales/<int:pk>/', views.SaleDetailView.as_view(), name='sale-detail'),
    path('analytics/summary/', views.SalesSummaryView.as_view(), name='analytics-summary'),
    path('analytics/trends/', views.SalesTrendsView.as_view(), name='analytics-trends'),
]
