from rest_framework.decorators import api_view
from rest_framework.response import Response
from django.core.exceptions import ObjectDoesNotExist

from ..serializers import UserSerializer, PullRequestShortSerializer
from .common import get_engine, body_error, validation_error, not_found, server_error


@api_view(['POST'])
def user_set_active(request):
    """POST /users/setIsActive - Установить флаг активности пользователя"""
    try:
        error = body_error(request)
        if error:
            return error

        user_id = request.data.get('user_id')
        is_active = request.data.get('is_active')

        if not user_id or is_active is None:
            return validation_error('user_id and is_active are required')

        if not isinstance(is_active, bool):
            return validation_error('is_active must be a boolean')

        user = get_engine().users.set_user_active_status(user_id, is_active)
        serializer = UserSerializer(user)

        return Response({
            'user': serializer.data
        })

    except ObjectDoesNotExist:
        return not_found('User not found')
    except Exception:
        return server_error(request)


@api_view(['GET'])
def users_get_review(request):
    """GET /users/getReview - Получить PR'ы, где пользователь назначен ревьювером"""
    try:
        user_id = request.query_params.get('user_id')

        if not user_id:
            return validation_error('user_id parameter is required')

        assigned_prs = get_engine().users.get_user_review_assignments(user_id)
        serializer = PullRequestShortSerializer(assigned_prs, many=True)

        return Response({
            'user_id': user_id,
            'pull_requests': serializer.data
        })

    except ObjectDoesNotExist:
        return not_found('User not found')
    except Exception:
        return server_error(request)
