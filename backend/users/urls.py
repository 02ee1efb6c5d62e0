from django.urls import path
from rest_framework_simplejwt.views import TokenObtainPairView, TokenRefreshView

from .serializers import EmailTokenObtainPairSerializer


urlpatterns = [
    # Simple JWT login endpoint, customized to use the email field
    path(
        'login/',
        TokenObtainPairView.as_view(serializer_class=EmailTokenObtainPairSerializer),
        name='token_obtain_pair'
    ),
    path('token/refresh/', TokenRefreshView.as_view(), name='token_refresh'),
]
