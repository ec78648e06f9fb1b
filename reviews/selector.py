import logging
import random
from typing import Optional

from .config import MAX_REVIEWERS, EngineConfig
from .repositories import UserRepository

logger = logging.getLogger(__name__)


def sample_without_replacement(pool: list, limit: int, rng: random.Random) -> list:
    """
    Равновероятная выборка limit элементов из pool без повторов.

    Если кандидатов не больше limit, возвращаются все.
    """
    if len(pool) <= limit:
        return list(pool)
    return rng.sample(pool, limit)


class ReviewerSelector:
    """
    Подбор кандидатов в ревьюверы из команды автора PR
    """

    def __init__(self, config: EngineConfig, rng: Optional[random.Random] = None):
        self.config = config
        self.rng = rng or random.Random(config.random_seed)

    def select_reviewers(self, author_id: str, exclude_ids=(), limit: Optional[int] = None) -> list:
        """
        Выбирает до limit активных участников команды автора

        Args:
            author_id: ID автора PR
            exclude_ids: ID, которые нельзя выбирать помимо автора
            limit: Сколько ревьюверов нужно, по умолчанию max_reviewers из конфига

        Returns:
            list: ID выбранных пользователей, может быть пустым

        Raises:
            NotFound: Если автора нет
        """
        if limit is None:
            limit = self.config.max_reviewers
        if not 0 <= limit <= MAX_REVIEWERS:
            raise ValueError(f"limit must be between 0 and {MAX_REVIEWERS}, got {limit}")

        author = UserRepository.get_by_id(author_id)
        candidates = UserRepository.get_active_team_member_ids(author.team_id, author.id)

        excluded = set(exclude_ids)
        pool = [user_id for user_id in candidates if user_id not in excluded]

        selected = sample_without_replacement(pool, limit, self.rng)
        logger.debug(
            "Selected %s of %d candidates for author %s", selected, len(pool), author_id
        )
        return selected
