"""URL routes for the fulfillment app."""

from django.urls import include, path
from rest_framework.routers import SimpleRouter

from .views import DocumentViewSet, FulfillmentHealthView, SourceLineRemainingView

router = SimpleRouter()
router.register(r"documents", DocumentViewSet, basename="fulfillment-document")

urlpatterns = [
    path("health/", FulfillmentHealthView.as_view(), name="fulfillment-health"),
    path(
        "source-lines/<int:source_line_id>/remaining/",
        SourceLineRemainingView.as_view(),
        name="fulfillment-source-line-remaining",
    ),
    path("", include(router.urls)),
]
