import logging
from typing import Optional

from django.db import transaction
from django.db.models import Count, Q
from django.utils import timezone

from .config import EngineConfig
from .errors import NoCandidate, NotAssigned, NotFound, PRMerged
from .models import PullRequest, ReviewerAssignment, Team, User
from .repositories import PullRequestRepository, TeamRepository, UserRepository
from .selector import ReviewerSelector

logger = logging.getLogger(__name__)


class TeamService:
    """
    Сервис для управления командами и пользователями
    """

    def create_team_with_members(self, team_name: str, members_data: list) -> Team:
        """
        Создает команду и синхронизирует ее состав

        Args:
            team_name: Название команды
            members_data: Список словарей user_id / username / is_active

        Returns:
            Team: Созданная команда с участниками

        Raises:
            TeamExists: Если команда с таким именем уже есть
        """
        with transaction.atomic():
            team = TeamRepository.create(team_name)

            # Пользователи из других команд переезжают в новую
            for member_data in members_data:
                self._create_or_update_user(team, member_data)

        logger.info("Team %s created with %d members", team_name, len(members_data))
        return TeamRepository.get_by_name_with_members(team_name)

    @staticmethod
    def _create_or_update_user(team: Team, member_data: dict) -> User:
        user_id = member_data['user_id']
        username = member_data['username']
        is_active = member_data['is_active']

        try:
            user = UserRepository.get_by_id(user_id)
        except NotFound:
            return UserRepository.create(user_id, username, is_active, team)

        if user.team_id != team.pk:
            logger.info("User %s moved from team %s to %s", user_id, user.team_id, team.name)
        return UserRepository.update(user, username=username, is_active=is_active, team=team)

    def get_team_with_members(self, team_name: str) -> Team:
        return TeamRepository.get_by_name_with_members(team_name)


class UserService:
    """
    Сервис для управления пользователями
    """

    def set_user_active_status(self, user_id: str, is_active: bool) -> User:
        """
        Устанавливает флаг активности пользователя.

        Уже назначенные ревью не трогаются, флаг влияет только на будущий
        подбор кандидатов.
        """
        with transaction.atomic():
            user = UserRepository.get_by_id(user_id)
            UserRepository.update(user, is_active=is_active)

        logger.info("User %s is_active=%s", user_id, is_active)
        return user

    def get_user_review_assignments(self, user_id: str) -> list:
        return PullRequestRepository.list_by_reviewer(user_id)


class PullRequestService:
    """
    Сервис для управления Pull Request'ами
    """

    def __init__(self, config: EngineConfig, selector: ReviewerSelector):
        self.config = config
        self.selector = selector

    def create_pull_request(self, pr_id: str, pr_name: str, author_id: str) -> PullRequest:
        """
        Создает PR и назначает до max_reviewers ревьюверов из команды автора

        Args:
            pr_id: ID PR
            pr_name: Название PR
            author_id: ID автора

        Returns:
            PullRequest: Созданный PR с ревьюверами

        Raises:
            NotFound: Если автор не найден
            PRExists: Если PR с таким ID уже есть
        """
        reviewer_ids = self.selector.select_reviewers(author_id)

        with transaction.atomic():
            author = UserRepository.get_by_id(author_id)
            pr = PullRequestRepository.create(pr_id, pr_name, author)

            for reviewer_id in reviewer_ids:
                PullRequestRepository.add_reviewer(pr.id, reviewer_id)

        logger.info("PR %s created by %s, reviewers %s", pr_id, author_id, reviewer_ids)
        return PullRequestRepository.get_by_id(pr_id)

    def merge_pull_request(self, pr_id: str) -> PullRequest:
        """
        Помечает PR как MERGED. Идемпотентно: повторный merge возвращает
        PR без изменений, merged_at остается прежним.

        Raises:
            NotFound: Если PR не найден
        """
        with transaction.atomic():
            pr = PullRequestRepository.get_by_id_for_update(pr_id)

            if pr.mark_merged(timezone.now()):
                PullRequestRepository.update(pr)
                logger.info("PR %s merged at %s", pr_id, pr.merged_at.isoformat())
            else:
                logger.debug("PR %s is already merged", pr_id)

        return pr

    def reassign_reviewer(self, pr_id: str, old_user_id: str) -> tuple:
        """
        Заменяет ревьювера на другого активного участника команды автора

        Args:
            pr_id: ID PR
            old_user_id: ID ревьювера, которого снимаем

        Returns:
            tuple: (PullRequest, ID нового ревьювера)

        Raises:
            NotFound: Если PR не найден
            NotAssigned: Если old_user_id не ревьювер этого PR
            PRMerged: Если PR уже смержен
            NoCandidate: Если заменить некем
        """
        with transaction.atomic():
            # Блокировка строки PR сериализует merge и reassign одного PR
            pr = PullRequestRepository.get_by_id_for_update(pr_id)
            current_reviewers = pr.reviewer_ids()

            if old_user_id not in current_reviewers:
                logger.debug("Reassign rejected: %s is not a reviewer of %s", old_user_id, pr_id)
                raise NotAssigned()

            if pr.is_merged:
                logger.debug("Reassign rejected: PR %s is merged", pr_id)
                raise PRMerged()

            # Исключаем всех текущих ревьюверов, а не только заменяемого
            candidates = self.selector.select_reviewers(pr.author_id, exclude_ids=current_reviewers, limit=1)
            if not candidates:
                raise NoCandidate()
            new_reviewer_id = candidates[0]

            if PullRequestRepository.remove_reviewer(pr_id, old_user_id) == 0:
                raise NotAssigned()
            PullRequestRepository.add_reviewer(pr_id, new_reviewer_id)

            pr = PullRequestRepository.get_by_id(pr_id)

        logger.info("PR %s: reviewer %s replaced by %s", pr_id, old_user_id, new_reviewer_id)
        return pr, new_reviewer_id


class StatsService:
    """
    Сервис для сбора статистики
    """

    def get_review_stats(self) -> dict:
        """
        Returns:
            dict: Общие счетчики и список ревьюверов по числу назначений
        """
        pr_counts = PullRequest.objects.aggregate(
            total=Count('id'),
            open=Count('id', filter=Q(status=PullRequest.Status.OPEN)),
            merged=Count('id', filter=Q(status=PullRequest.Status.MERGED)),
        )

        top_reviewers = (
            ReviewerAssignment.objects
            .values('reviewer_id', 'reviewer__username')
            .annotate(
                review_count=Count('id'),
                open_reviews=Count('id', filter=Q(pull_request__status=PullRequest.Status.OPEN)),
                merged_reviews=Count('id', filter=Q(pull_request__status=PullRequest.Status.MERGED)),
            )
            .order_by('-review_count', 'reviewer_id')
        )

        return {
            'total_teams': Team.objects.count(),
            'total_users': User.objects.count(),
            'total_prs': pr_counts['total'],
            'open_prs': pr_counts['open'],
            'merged_prs': pr_counts['merged'],
            'top_reviewers': [
                {
                    'user_id': row['reviewer_id'],
                    'username': row['reviewer__username'],
                    'review_count': row['review_count'],
                    'open_reviews': row['open_reviews'],
                    'merged_reviews': row['merged_reviews'],
                }
                for row in top_reviewers
            ],
        }


class ReviewEngine:
    """Сервисы, собранные из одного EngineConfig при старте приложения."""

    def __init__(self, config: EngineConfig, selector: Optional[ReviewerSelector] = None):
        self.config = config
        self.selector = selector or ReviewerSelector(config)
        self.teams = TeamService()
        self.users = UserService()
        self.pull_requests = PullRequestService(config, self.selector)
        self.stats = StatsService()
