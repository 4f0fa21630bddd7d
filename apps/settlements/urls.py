from rest_framework.routers import DefaultRouter

from apps.settlements.views import DeferredPaymentViewSet

router = DefaultRouter()
router.register("deferred-payments", DeferredPaymentViewSet, basename="deferred-payment")

urlpatterns = router.urls
