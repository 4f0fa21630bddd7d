from rest_framework.routers import DefaultRouter

from apps.orders.views import OrderViewSet, TaskViewSet

router = DefaultRouter()
router.register("orders", OrderViewSet, basename="order")
router.register("tasks", TaskViewSet, basename="task")

urlpatterns = router.urls
