from django.db import models
from django.db.models import Q


class Team(models.Model):
    name = models.CharField(max_length=100, unique=True)
    created_at = models.DateTimeField(auto_now_add=True)

    def __str__(self):
        return self.name

    class Meta:
        db_table = 'teams'


class User(models.Model):
    id = models.CharField(max_length=50, primary_key=True)
    username = models.CharField(max_length=100)
    team = models.ForeignKey(Team, on_delete=models.CASCADE, related_name='members')
    is_active = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)

    def __str__(self):
        return f"{self.username} ({self.id})"

    class Meta:
        db_table = 'users'
        indexes = [
            models.Index(fields=['team', 'is_active'], name='users_team_active_idx'),
        ]


class PullRequest(models.Model):
    class Status(models.TextChoices):
        OPEN = 'OPEN', 'Open'
        MERGED = 'MERGED', 'Merged'

    id = models.CharField(max_length=100, primary_key=True)
    name = models.CharField(max_length=200)
    author = models.ForeignKey(User, on_delete=models.CASCADE, related_name='authored_prs')
    status = models.CharField(max_length=10, choices=Status.choices, default=Status.OPEN)
    reviewers = models.ManyToManyField(
        User,
        through='ReviewerAssignment',
        related_name='assigned_prs',
        blank=True,
    )
    created_at = models.DateTimeField(auto_now_add=True)
    merged_at = models.DateTimeField(null=True, blank=True)

    @property
    def is_merged(self):
        return self.status == self.Status.MERGED

    def mark_merged(self, when):
        """
        Переводит PR в MERGED. Повторный вызов ничего не меняет.

        Returns:
            bool: True, если статус действительно изменился
        """
        if self.is_merged:
            return False
        self.status = self.Status.MERGED
        self.merged_at = when
        return True

    def reviewer_ids(self):
        return [assignment.reviewer_id for assignment in self.assignments.all()]

    def __str__(self):
        return f"{self.name} ({self.id})"

    class Meta:
        db_table = 'pull_requests'
        constraints = [
            models.CheckConstraint(
                condition=(
                    Q(status='OPEN', merged_at__isnull=True)
                    | Q(status='MERGED', merged_at__isnull=False)
                ),
                name='pr_merged_at_matches_status',
            ),
        ]


class ReviewerAssignment(models.Model):
    """Связь PR и ревьювера. Строки только создаются и удаляются."""

    pull_request = models.ForeignKey(PullRequest, on_delete=models.CASCADE, related_name='assignments')
    reviewer = models.ForeignKey(User, on_delete=models.CASCADE, related_name='review_assignments')
    assigned_at = models.DateTimeField(auto_now_add=True)

    def __str__(self):
        return f"{self.reviewer_id} -> {self.pull_request_id}"

    class Meta:
        db_table = 'pr_reviewers'
        ordering = ['id']
        constraints = [
            models.UniqueConstraint(fields=['pull_request', 'reviewer'], name='unique_pr_reviewer'),
        ]
