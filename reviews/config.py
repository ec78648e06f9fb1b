from dataclasses import dataclass
from typing import Optional

# Больше двух ревьюверов на один PR не назначается никогда
MAX_REVIEWERS = 2


@dataclass(frozen=True)
class EngineConfig:
    """
    Настройки движка назначения ревьюверов.

    Собирается один раз при старте приложения и передается в конструкторы
    сервисов, сами сервисы в settings не ходят.
    """

    max_reviewers: int = MAX_REVIEWERS
    random_seed: Optional[int] = None

    def __post_init__(self):
        if not 0 <= self.max_reviewers <= MAX_REVIEWERS:
            raise ValueError(
                f"max_reviewers must be between 0 and {MAX_REVIEWERS}, got {self.max_reviewers}"
            )

    @classmethod
    def from_settings(cls, settings) -> 'EngineConfig':
        options = getattr(settings, 'REVIEW_ASSIGNMENT', None) or {}
        max_reviewers = options.get('MAX_REVIEWERS')
        return cls(
            max_reviewers=MAX_REVIEWERS if max_reviewers is None else int(max_reviewers),
            random_seed=options.get('RANDOM_SEED'),
        )
