from rest_framework.routers import DefaultRouter

from apps.inventory.views import InventoryItemViewSet, InventoryMovementViewSet

router = DefaultRouter()
router.register("items", InventoryItemViewSet, basename="inventory-item")
router.register("movements", InventoryMovementViewSet, basename="inventory-movement")

urlpatterns = router.urls
