"""
URL routing for the recurring schedule API.
"""

from django.urls import path
from .views import (
    TemplateListCreateView,
    TemplateDetailView,
    TemplateGenerateView,
    TemplateExclusionListView,
    TemplateExclusionDetailView,
    InstanceListView,
    InstanceDetailView,
    InstanceCompleteView,
)

urlpatterns = [
    path('templates/', TemplateListCreateView.as_view(), name='template-list-create'),
    path('templates/<uuid:pk>/', TemplateDetailView.as_view(), name='template-detail'),
    path('templates/<uuid:pk>/generate/', TemplateGenerateView.as_view(), name='template-generate'),
    path('templates/<uuid:pk>/exclusions/', TemplateExclusionListView.as_view(), name='template-exclusion-list'),
    path(
        'templates/<uuid:pk>/exclusions/<str:excluded_date>/',
        TemplateExclusionDetailView.as_view(),
        name='template-exclusion-detail'
    ),
    path('instances/', InstanceListView.as_view(), name='instance-list'),
    path('instances/<uuid:pk>/', InstanceDetailView.as_view(), name='instance-detail'),
    path('instances/<uuid:pk>/complete/', InstanceCompleteView.as_view(), name='instance-complete'),
]
