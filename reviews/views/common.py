import logging

from django.apps import apps
from rest_framework import status
from rest_framework.response import Response

logger = logging.getLogger(__name__)

# TEAM_EXISTS отдается как 400, остальные конфликты как 409
CONFLICT_STATUSES = {
    'TEAM_EXISTS': status.HTTP_400_BAD_REQUEST,
    'PR_EXISTS': status.HTTP_409_CONFLICT,
    'PR_MERGED': status.HTTP_409_CONFLICT,
    'NOT_ASSIGNED': status.HTTP_409_CONFLICT,
    'NO_CANDIDATE': status.HTTP_409_CONFLICT,
}


def get_engine():
    return apps.get_app_config('reviews').engine


def error_response(code, message, http_status):
    return Response({
        'error': {
            'code': code,
            'message': message
        }
    }, status=http_status)


def validation_error(message):
    return error_response('VALIDATION_ERROR', message, status.HTTP_400_BAD_REQUEST)


def not_found(message):
    return error_response('NOT_FOUND', message, status.HTTP_404_NOT_FOUND)


def conflict(exc):
    code = getattr(exc, 'code', None) or 'VALIDATION_ERROR'
    message = getattr(exc, 'message', str(exc))
    return error_response(code, message, CONFLICT_STATUSES.get(code, status.HTTP_400_BAD_REQUEST))


def server_error(request):
    logger.exception("Unhandled error on %s %s", request.method, request.path)
    return error_response('SERVER_ERROR', 'Internal server error', status.HTTP_500_INTERNAL_SERVER_ERROR)


def body_error(request):
    if not isinstance(request.data, dict):
        return validation_error('request body must be a JSON object')
    return None
