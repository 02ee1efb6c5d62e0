from django.urls import path
from .views import prioritization_view
from .views import ranking_status_view

urlpatterns=[
    # GET aggregate view, POST own ranking
    path('<int:workgroup_id>/prioritization/',prioritization_view,name="prioritization"),

    path('<int:workgroup_id>/prioritization/status/',ranking_status_view,name="ranking-status"),
]
