"""
Доменные ошибки сервиса.

NotFound наследуется от ObjectDoesNotExist, остальные от ValidationError
с фиксированным code, поэтому вьюхи ловят их так же, как обычные
исключения Django.
"""
from django.core.exceptions import ObjectDoesNotExist, ValidationError


class NotFound(ObjectDoesNotExist):
    code = 'NOT_FOUND'

    def __init__(self, message='resource not found'):
        super().__init__(message)
        self.message = message


class DomainConflict(ValidationError):
    default_code = None
    default_message = None

    def __init__(self, message=None):
        super().__init__(message or self.default_message, code=self.default_code)


class TeamExists(DomainConflict):
    default_code = 'TEAM_EXISTS'
    default_message = 'team_name already exists'


class PRExists(DomainConflict):
    default_code = 'PR_EXISTS'
    default_message = 'PR id already exists'


class PRMerged(DomainConflict):
    default_code = 'PR_MERGED'
    default_message = 'cannot reassign on merged PR'


class NotAssigned(DomainConflict):
    default_code = 'NOT_ASSIGNED'
    default_message = 'reviewer is not assigned to this PR'


class NoCandidate(DomainConflict):
    default_code = 'NO_CANDIDATE'
    default_message = 'no active replacement candidate in team'
