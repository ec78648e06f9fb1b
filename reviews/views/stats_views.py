from rest_framework.decorators import api_view
from rest_framework.response import Response

from ..serializers import StatsSerializer
from .common import get_engine, server_error


@api_view(['GET'])
def stats_overview(request):
    """
    GET /stats - Общая статистика по командам, PR и ревьюверам
    """
    try:
        stats = get_engine().stats.get_review_stats()
        serializer = StatsSerializer(stats)
        return Response(serializer.data)

    except Exception:
        return server_error(request)
