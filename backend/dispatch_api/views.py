from rest_framework import viewsets, permissions
from rest_framework.decorators import action
from rest_framework.response import Response

from dispatch.dispatcher import Dispatcher, DispatchService
from dispatch.policy import policy_from_env

from .serializers import VisibilityQuerySerializer, VisibilitySerializer
from .store import DjangoTaskStore


def get_dispatch_service() -> DispatchService:
    return DispatchService(DjangoTaskStore(), Dispatcher(policy_from_env()))


class TaskDispatchViewSet(viewsets.ViewSet):
    """
    Read side of dispatch for runner devices.
    Devices only ever *ask*; the decision and its write happen server side.
    """
    permission_classes = [permissions.AllowAny]

    @action(detail=True, methods=['get'])
    def visibility(self, request, pk=None):
        """
        GET /api/v1/tasks/<pk>/visibility/?runner_id=<id>
        Is this task currently offered to this runner? Performs any due
        timeout rotation first.
        """
        query = VisibilityQuerySerializer(data=request.query_params)
        query.is_valid(raise_exception=True)

        runner_id = query.validated_data["runner_id"]
        result = get_dispatch_service().evaluate(str(pk), runner_id, query.validated_data.get("at"))

        payload = VisibilitySerializer({"task_id": str(pk), "runner_id": runner_id, "visible": result["visible"]})
        return Response(payload.data)
