from rest_framework import status
from rest_framework.decorators import api_view
from rest_framework.response import Response
from django.core.exceptions import ObjectDoesNotExist, ValidationError

from ..serializers import PullRequestSerializer
from .common import get_engine, body_error, validation_error, not_found, conflict, server_error


@api_view(['POST'])
def pullrequest_create(request):
    """POST /pullRequest/create - Создать PR"""
    try:
        error = body_error(request)
        if error:
            return error

        pr_id = request.data.get('pull_request_id')
        pr_name = request.data.get('pull_request_name')
        author_id = request.data.get('author_id')

        if not all([pr_id, pr_name, author_id]):
            return validation_error('pull_request_id, pull_request_name, and author_id are required')

        pr = get_engine().pull_requests.create_pull_request(pr_id, pr_name, author_id)
        serializer = PullRequestSerializer(pr)

        return Response({
            'pr': serializer.data
        }, status=status.HTTP_201_CREATED)

    except ObjectDoesNotExist:
        return not_found('Author not found')
    except ValidationError as e:
        return conflict(e)
    except Exception:
        return server_error(request)


@api_view(['POST'])
def pullrequest_merge(request):
    """POST /pullRequest/merge - Пометить PR как MERGED"""
    try:
        error = body_error(request)
        if error:
            return error

        pr_id = request.data.get('pull_request_id')

        if not pr_id:
            return validation_error('pull_request_id is required')

        pr = get_engine().pull_requests.merge_pull_request(pr_id)
        serializer = PullRequestSerializer(pr)

        return Response({
            'pr': serializer.data
        })

    except ObjectDoesNotExist:
        return not_found('PR not found')
    except Exception:
        return server_error(request)


@api_view(['POST'])
def pullrequest_reassign(request):
    """POST /pullRequest/reassign - Переназначить ревьювера"""
    try:
        error = body_error(request)
        if error:
            return error

        pr_id = request.data.get('pull_request_id')
        old_user_id = request.data.get('old_user_id')

        if not all([pr_id, old_user_id]):
            return validation_error('pull_request_id and old_user_id are required')

        pr, new_reviewer_id = get_engine().pull_requests.reassign_reviewer(pr_id, old_user_id)
        serializer = PullRequestSerializer(pr)

        return Response({
            'pr': serializer.data,
            'replaced_by': new_reviewer_id
        })

    except ObjectDoesNotExist:
        return not_found('PR not found')
    except ValidationError as e:
        return conflict(e)
    except Exception:
        return server_error(request)
