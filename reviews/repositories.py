"""
Слой доступа к данным поверх Django ORM.

Методы, которые пишут в базу, рассчитаны на вызов внутри
transaction.atomic() сервисного слоя.
"""
from django.db import IntegrityError, transaction
from django.db.models import Prefetch

from .errors import NotFound, PRExists, TeamExists
from .models import PullRequest, ReviewerAssignment, Team, User


class TeamRepository:

    @classmethod
    def create(cls, name: str) -> Team:
        if Team.objects.filter(name=name).exists():
            raise TeamExists()
        try:
            # Savepoint, чтобы гонка на уникальном имени не ломала внешнюю транзакцию
            with transaction.atomic():
                return Team.objects.create(name=name)
        except IntegrityError:
            raise TeamExists()

    @classmethod
    def get_by_name_with_members(cls, name: str) -> Team:
        members = Prefetch('members', queryset=User.objects.order_by('id'))
        try:
            return Team.objects.prefetch_related(members).get(name=name)
        except Team.DoesNotExist:
            raise NotFound(f"Team '{name}' not found")

    @classmethod
    def get_name_by_id(cls, team_id: int) -> str:
        name = Team.objects.filter(pk=team_id).values_list('name', flat=True).first()
        if name is None:
            raise NotFound(f"Team '{team_id}' not found")
        return name


class UserRepository:

    @classmethod
    def create(cls, user_id: str, username: str, is_active: bool, team: Team) -> User:
        return User.objects.create(id=user_id, username=username, is_active=is_active, team=team)

    @classmethod
    def update(cls, user: User, **fields) -> User:
        for name, value in fields.items():
            setattr(user, name, value)
        user.save(update_fields=list(fields))
        return user

    @classmethod
    def get_by_id(cls, user_id: str) -> User:
        try:
            return User.objects.select_related('team').get(id=user_id)
        except User.DoesNotExist:
            raise NotFound(f"User '{user_id}' not found")

    @classmethod
    def exists(cls, user_id: str) -> bool:
        return User.objects.filter(id=user_id).exists()

    @classmethod
    def get_active_team_member_ids(cls, team_id: int, exclude_id: str) -> list:
        return list(
            User.objects
            .filter(team_id=team_id, is_active=True)
            .exclude(id=exclude_id)
            .order_by('id')
            .values_list('id', flat=True)
        )


class PullRequestRepository:

    @staticmethod
    def _with_reviewers(queryset):
        return queryset.prefetch_related(
            Prefetch('assignments', queryset=ReviewerAssignment.objects.order_by('id'))
        )

    @classmethod
    def create(cls, pr_id: str, name: str, author: User) -> PullRequest:
        if PullRequest.objects.filter(id=pr_id).exists():
            raise PRExists()
        try:
            with transaction.atomic():
                return PullRequest.objects.create(id=pr_id, name=name, author=author)
        except IntegrityError:
            raise PRExists()

    @classmethod
    def update(cls, pr: PullRequest) -> PullRequest:
        pr.save(update_fields=['status', 'merged_at'])
        return pr

    @classmethod
    def get_by_id(cls, pr_id: str) -> PullRequest:
        try:
            return cls._with_reviewers(PullRequest.objects.all()).get(id=pr_id)
        except PullRequest.DoesNotExist:
            raise NotFound(f"PR '{pr_id}' not found")

    @classmethod
    def get_by_id_for_update(cls, pr_id: str) -> PullRequest:
        """Загружает PR с эксклюзивной блокировкой строки до конца транзакции."""
        try:
            return cls._with_reviewers(PullRequest.objects.select_for_update()).get(id=pr_id)
        except PullRequest.DoesNotExist:
            raise NotFound(f"PR '{pr_id}' not found")

    @classmethod
    def add_reviewer(cls, pr_id: str, user_id: str) -> None:
        # ON CONFLICT DO NOTHING: повторное назначение не ошибка
        ReviewerAssignment.objects.bulk_create(
            [ReviewerAssignment(pull_request_id=pr_id, reviewer_id=user_id)],
            ignore_conflicts=True,
        )

    @classmethod
    def remove_reviewer(cls, pr_id: str, user_id: str) -> int:
        """
        Удаляет связь PR и ревьювера.

        Returns:
            int: число удаленных строк, 0 если связи уже не было
        """
        deleted, _ = ReviewerAssignment.objects.filter(
            pull_request_id=pr_id, reviewer_id=user_id
        ).delete()
        return deleted

    @classmethod
    def reviewer_ids(cls, pr_id: str) -> list:
        return list(
            ReviewerAssignment.objects
            .filter(pull_request_id=pr_id)
            .order_by('id')
            .values_list('reviewer_id', flat=True)
        )

    @classmethod
    def list_by_reviewer(cls, user_id: str) -> list:
        if not UserRepository.exists(user_id):
            raise NotFound(f"User '{user_id}' not found")
        return list(
            PullRequest.objects
            .filter(assignments__reviewer_id=user_id)
            .order_by('created_at', 'id')
        )
