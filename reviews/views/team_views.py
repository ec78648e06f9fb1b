from rest_framework import status
from rest_framework.decorators import api_view
from rest_framework.response import Response
from django.core.exceptions import ValidationError, ObjectDoesNotExist

from ..serializers import TeamSerializer
from .common import get_engine, body_error, validation_error, not_found, conflict, server_error

MEMBER_FIELDS = ('user_id', 'username', 'is_active')


def _member_error(index, member):
    if not isinstance(member, dict) or not all(key in member for key in MEMBER_FIELDS):
        return f'Member at index {index} is missing required fields'
    if not isinstance(member['user_id'], str) or not member['user_id']:
        return f'Member at index {index} has invalid user_id'
    if not isinstance(member['username'], str):
        return f'Member at index {index} has invalid username'
    if not isinstance(member['is_active'], bool):
        return f'Member at index {index} has invalid is_active'
    return None


@api_view(['POST'])
def team_add(request):
    """POST /team/add - Создать команду с участниками"""
    try:
        error = body_error(request)
        if error:
            return error

        team_name = request.data.get('team_name')
        members_data = request.data.get('members', [])

        if not team_name or not isinstance(team_name, str):
            return validation_error('team_name is required')

        if not isinstance(members_data, list):
            return validation_error('members must be a list')

        for i, member in enumerate(members_data):
            message = _member_error(i, member)
            if message:
                return validation_error(message)

        team = get_engine().teams.create_team_with_members(team_name, members_data)
        serializer = TeamSerializer(team)

        return Response({
            'team': serializer.data
        }, status=status.HTTP_201_CREATED)

    except ValidationError as e:
        return conflict(e)
    except Exception:
        return server_error(request)


@api_view(['GET'])
def team_get(request):
    """GET /team/get - Получить команду с участниками"""
    try:
        team_name = request.query_params.get('team_name')

        if not team_name:
            return validation_error('team_name parameter is required')

        team = get_engine().teams.get_team_with_members(team_name)
        serializer = TeamSerializer(team)

        return Response(serializer.data)

    except ObjectDoesNotExist:
        return not_found('Team not found')
    except Exception:
        return server_error(request)
