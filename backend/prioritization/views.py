# prioritization/views.py

import logging

from rest_framework import permissions, status
from rest_framework.response import Response
from rest_framework.views import APIView

from .exceptions import (
    ConcurrentModification,
    IncompleteSubmission,
    InvalidSubmission,
    NotFound,
    PrioritizationError,
    StorageFailure,
)
from .serializers import (
    AggregateViewSerializer,
    RankingStatusSerializer,
    RankingSubmissionSerializer,
)
from .services import PrioritizationService

logger = logging.getLogger(__name__)


def error_response(exc: PrioritizationError) -> Response:
    """Translate an engine error into an HTTP response."""
    body = {"detail": str(exc)}

    if isinstance(exc, InvalidSubmission):
        body["invalid_ids"] = exc.invalid_ids
        body["duplicate_ids"] = exc.duplicate_ids
        return Response(body, status=status.HTTP_400_BAD_REQUEST)
    if isinstance(exc, IncompleteSubmission):
        body["missing_ids"] = exc.missing_ids
        return Response(body, status=status.HTTP_400_BAD_REQUEST)
    if isinstance(exc, NotFound):
        return Response(body, status=status.HTTP_404_NOT_FOUND)
    if isinstance(exc, ConcurrentModification):
        return Response(body, status=status.HTTP_409_CONFLICT)
    if isinstance(exc, StorageFailure):
        return Response(body, status=status.HTTP_503_SERVICE_UNAVAILABLE)

    logger.error(f"Unmapped prioritization error: {exc!r}")
    return Response(body, status=status.HTTP_500_INTERNAL_SERVER_ERROR)


class PrioritizationView(APIView):
    """
    GET: The workgroup's aggregate priority order, with the caller's own ranks.
    POST: Replace the caller's ranking with `ordered_item_ids`.
    """
    permission_classes = [permissions.IsAuthenticated]
    service_class = PrioritizationService

    def get(self, request, workgroup_id):
        try:
            view = self.service_class().get_prioritization_view(workgroup_id, request.user.pk)
        except PrioritizationError as exc:
            return error_response(exc)
        return Response(AggregateViewSerializer(view).data)

    def post(self, request, workgroup_id):
        serializer = RankingSubmissionSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        # Completeness is decided by PRIORITIZATION_REQUIRE_COMPLETE_RANKING, never by the client
        try:
            ranking_status = self.service_class().submit_ranking(
                workgroup_id,
                request.user.pk,
                serializer.validated_data['ordered_item_ids'],
            )
        except PrioritizationError as exc:
            return error_response(exc)
        return Response(RankingStatusSerializer(ranking_status).data, status=status.HTTP_201_CREATED)

prioritization_view=PrioritizationView.as_view()


class RankingStatusView(APIView):
    """
    GET: Whether the caller's ranking is complete, stale or expired.
    """
    permission_classes = [permissions.IsAuthenticated]
    service_class = PrioritizationService

    def get(self, request, workgroup_id):
        try:
            ranking_status = self.service_class().get_ranking_status(workgroup_id, request.user.pk)
        except PrioritizationError as exc:
            return error_response(exc)
        return Response(RankingStatusSerializer(ranking_status).data)

ranking_status_view=RankingStatusView.as_view()
