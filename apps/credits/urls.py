from rest_framework.routers import DefaultRouter

from apps.credits.views import CreditAccountViewSet

router = DefaultRouter()
router.register("credits", CreditAccountViewSet, basename="credit-account")

urlpatterns = router.urls
