from django.urls import path, include
from rest_framework.routers import DefaultRouter
from dispatch_api.views import TaskDispatchViewSet

router = DefaultRouter()
router.register(r'tasks', TaskDispatchViewSet, basename='task')

urlpatterns = [
    path('api/v1/', include(router.urls)),
]
