import random
from unittest.mock import Mock, patch

from django.db import DatabaseError
from django.test import TestCase
from django.utils import timezone

from reviews.config import EngineConfig
from reviews.errors import NoCandidate, NotAssigned, NotFound, PRExists, PRMerged
from reviews.models import Team, User, PullRequest, ReviewerAssignment
from reviews.repositories import PullRequestRepository
from reviews.selector import ReviewerSelector
from reviews.services import PullRequestService


def make_service(rng=None):
    config = EngineConfig()
    return PullRequestService(config, ReviewerSelector(config, rng=rng or random.Random(0)))


class PullRequestServiceTest(TestCase):
    def setUp(self):
        self.team = Team.objects.create(name="backend")

        self.author = User.objects.create(id="author1", username="Author", is_active=True, team=self.team)
        self.reviewer1 = User.objects.create(id="reviewer1", username="Reviewer 1", is_active=True, team=self.team)
        self.reviewer2 = User.objects.create(id="reviewer2", username="Reviewer 2", is_active=True, team=self.team)
        self.reviewer3 = User.objects.create(id="reviewer3", username="Reviewer 3", is_active=True, team=self.team)
        self.inactive_reviewer = User.objects.create(
            id="inactive1", username="Inactive", is_active=False, team=self.team
        )

        self.service = make_service()

    def assign(self, pr, *reviewers):
        for reviewer in reviewers:
            ReviewerAssignment.objects.create(pull_request=pr, reviewer=reviewer)

    def test_create_pull_request_success(self):
        """Тест успешного создания PR"""
        rng = Mock(spec=random.Random)
        rng.sample.return_value = ["reviewer1", "reviewer2"]

        pr = make_service(rng).create_pull_request("pr-1", "Test PR", "author1")

        self.assertEqual(pr.id, "pr-1")
        self.assertEqual(pr.name, "Test PR")
        self.assertEqual(pr.author, self.author)
        self.assertEqual(pr.status, PullRequest.Status.OPEN)
        self.assertIsNotNone(pr.created_at)
        self.assertIsNone(pr.merged_at)
        self.assertEqual(pr.reviewer_ids(), ["reviewer1", "reviewer2"])
        rng.sample.assert_called_once_with(["reviewer1", "reviewer2", "reviewer3"], 2)

    def test_create_pull_request_never_assigns_author_or_inactive(self):
        for i in range(20):
            pr = self.service.create_pull_request(f"pr-{i}", "Test PR", "author1")
            reviewers = pr.reviewer_ids()

            self.assertEqual(len(reviewers), 2)
            self.assertEqual(len(set(reviewers)), 2)
            self.assertNotIn("author1", reviewers)
            self.assertNotIn("inactive1", reviewers)

    def test_create_pull_request_duplicate(self):
        """Тест создания дубликата PR"""
        self.service.create_pull_request("pr-1", "Test PR", "author1")

        with self.assertRaises(PRExists) as context:
            self.service.create_pull_request("pr-1", "Another PR", "author1")

        self.assertEqual(context.exception.code, 'PR_EXISTS')
        self.assertEqual(PullRequest.objects.get(id="pr-1").name, "Test PR")

    def test_create_pull_request_author_not_found(self):
        """Тест создания PR с несуществующим автором"""
        with self.assertRaises(NotFound):
            self.service.create_pull_request("pr-1", "Test PR", "nonexistent")

        self.assertFalse(PullRequest.objects.filter(id="pr-1").exists())

    def test_create_pull_request_insufficient_reviewers(self):
        """Тест создания PR когда недостаточно ревьюверов"""
        User.objects.filter(id__in=["reviewer2", "reviewer3"]).update(is_active=False)

        pr = self.service.create_pull_request("pr-1", "Test PR", "author1")

        self.assertEqual(pr.reviewer_ids(), ["reviewer1"])

    def test_create_pull_request_no_reviewers(self):
        """Тест создания PR когда нет доступных ревьюверов"""
        User.objects.exclude(id="author1").update(is_active=False)

        pr = self.service.create_pull_request("pr-1", "Test PR", "author1")

        self.assertEqual(pr.reviewer_ids(), [])

    def test_create_pull_request_rolls_back_on_failure(self):
        """Сбой при назначении ревьювера не оставляет PR без ревьюверов"""
        with patch.object(PullRequestRepository, 'add_reviewer', side_effect=DatabaseError("boom")):
            with self.assertRaises(DatabaseError):
                self.service.create_pull_request("pr-1", "Test PR", "author1")

        self.assertFalse(PullRequest.objects.filter(id="pr-1").exists())
        self.assertFalse(ReviewerAssignment.objects.exists())

    def test_add_reviewer_is_idempotent(self):
        pr = PullRequest.objects.create(id="pr-1", name="Test PR", author=self.author)

        PullRequestRepository.add_reviewer("pr-1", "reviewer1")
        PullRequestRepository.add_reviewer("pr-1", "reviewer1")

        self.assertEqual(pr.reviewer_ids(), ["reviewer1"])

    def test_merge_pull_request_success(self):
        """Тест успешного мержа PR"""
        PullRequest.objects.create(id="pr-1", name="Test PR", author=self.author)

        merged_pr = self.service.merge_pull_request("pr-1")

        self.assertEqual(merged_pr.status, PullRequest.Status.MERGED)
        self.assertIsNotNone(merged_pr.merged_at)
        self.assertTrue(merged_pr.merged_at <= timezone.now())
        self.assertEqual(PullRequest.objects.get(id="pr-1").status, PullRequest.Status.MERGED)

    def test_merge_pull_request_idempotent(self):
        """Тест идемпотентности мержа PR"""
        PullRequest.objects.create(id="pr-1", name="Test PR", author=self.author)

        merged_pr1 = self.service.merge_pull_request("pr-1")
        first_merge_time = merged_pr1.merged_at

        merged_pr2 = self.service.merge_pull_request("pr-1")

        self.assertEqual(merged_pr2.status, PullRequest.Status.MERGED)
        self.assertEqual(merged_pr2.merged_at, first_merge_time)

    def test_merge_keeps_reviewers(self):
        pr = PullRequest.objects.create(id="pr-1", name="Test PR", author=self.author)
        self.assign(pr, self.reviewer1, self.reviewer2)

        merged_pr = self.service.merge_pull_request("pr-1")

        self.assertEqual(merged_pr.reviewer_ids(), ["reviewer1", "reviewer2"])

    def test_merge_pull_request_not_found(self):
        """Тест мержа несуществующего PR"""
        with self.assertRaises(NotFound):
            self.service.merge_pull_request("nonexistent")

    def test_reassign_reviewer_success(self):
        """Тест успешного переназначения ревьювера"""
        pr = PullRequest.objects.create(id="pr-1", name="Test PR", author=self.author)
        self.assign(pr, self.reviewer1, self.reviewer2)

        updated_pr, new_reviewer_id = self.service.reassign_reviewer("pr-1", "reviewer1")

        # reviewer3 - единственный подходящий кандидат
        self.assertEqual(new_reviewer_id, "reviewer3")
        self.assertEqual(updated_pr.reviewer_ids(), ["reviewer2", "reviewer3"])

    def test_reassign_excludes_all_current_reviewers(self):
        """Новый ревьювер не может совпадать ни с одним из текущих"""
        User.objects.create(id="reviewer4", username="Reviewer 4", is_active=True, team=self.team)
        pr = PullRequest.objects.create(id="pr-1", name="Test PR", author=self.author)
        self.assign(pr, self.reviewer1, self.reviewer2)

        for _ in range(10):
            updated_pr, new_reviewer_id = self.service.reassign_reviewer("pr-1", first_reviewer(pr))
            reviewers = updated_pr.reviewer_ids()
            self.assertEqual(len(reviewers), 2)
            self.assertEqual(len(set(reviewers)), 2)
            self.assertNotIn("author1", reviewers)
            self.assertNotIn("inactive1", reviewers)

    def test_reassign_reviewer_merged_pr(self):
        """Тест переназначения на мерженом PR"""
        pr = PullRequest.objects.create(id="pr-1", name="Test PR", author=self.author)
        self.assign(pr, self.reviewer1)
        self.service.merge_pull_request("pr-1")

        with self.assertRaises(PRMerged) as context:
            self.service.reassign_reviewer("pr-1", "reviewer1")

        self.assertEqual(context.exception.code, 'PR_MERGED')
        self.assertEqual(pr.reviewer_ids(), ["reviewer1"])

    def test_reassign_reviewer_not_assigned(self):
        """Тест переназначения не назначенного ревьювера"""
        pr = PullRequest.objects.create(id="pr-1", name="Test PR", author=self.author)
        self.assign(pr, self.reviewer1)

        with self.assertRaises(NotAssigned) as context:
            self.service.reassign_reviewer("pr-1", "reviewer2")

        self.assertEqual(context.exception.code, 'NOT_ASSIGNED')
        self.assertEqual(pr.reviewer_ids(), ["reviewer1"])

    def test_reassign_not_assigned_checked_before_merged(self):
        pr = PullRequest.objects.create(id="pr-1", name="Test PR", author=self.author)
        self.assign(pr, self.reviewer1)
        self.service.merge_pull_request("pr-1")

        with self.assertRaises(NotAssigned):
            self.service.reassign_reviewer("pr-1", "reviewer2")

    def test_reassign_reviewer_no_candidates(self):
        """Тест когда нет кандидатов для переназначения"""
        pr = PullRequest.objects.create(id="pr-1", name="Test PR", author=self.author)
        self.assign(pr, self.reviewer1, self.reviewer2)
        User.objects.filter(id="reviewer3").update(is_active=False)

        with self.assertRaises(NoCandidate) as context:
            self.service.reassign_reviewer("pr-1", "reviewer1")

        self.assertEqual(context.exception.code, 'NO_CANDIDATE')
        self.assertEqual(pr.reviewer_ids(), ["reviewer1", "reviewer2"])

    def test_reassign_reviewer_pr_not_found(self):
        """Тест переназначения для несуществующего PR"""
        with self.assertRaises(NotFound):
            self.service.reassign_reviewer("nonexistent", "reviewer1")

    def test_reassign_reviewer_user_not_found(self):
        """Несуществующий пользователь не может быть ревьювером PR"""
        PullRequest.objects.create(id="pr-1", name="Test PR", author=self.author)

        with self.assertRaises(NotAssigned):
            self.service.reassign_reviewer("pr-1", "nonexistent")

    def test_reassign_detects_vanished_assignment(self):
        """Если связь исчезла до удаления, ревьюверы не меняются"""
        pr = PullRequest.objects.create(id="pr-1", name="Test PR", author=self.author)
        self.assign(pr, self.reviewer1, self.reviewer2)

        with patch.object(PullRequestRepository, 'remove_reviewer', return_value=0):
            with self.assertRaises(NotAssigned):
                self.service.reassign_reviewer("pr-1", "reviewer1")

        self.assertEqual(pr.reviewer_ids(), ["reviewer1", "reviewer2"])

    def test_second_reassign_of_same_reviewer_fails(self):
        pr = PullRequest.objects.create(id="pr-1", name="Test PR", author=self.author)
        User.objects.create(id="reviewer4", username="Reviewer 4", is_active=True, team=self.team)
        self.assign(pr, self.reviewer1, self.reviewer2)

        self.service.reassign_reviewer("pr-1", "reviewer1")

        with self.assertRaises(NotAssigned):
            self.service.reassign_reviewer("pr-1", "reviewer1")

    def test_deactivated_reviewer_stays_but_is_not_candidate(self):
        """Деактивированный ревьювер остается на PR, но не попадает в кандидаты"""
        User.objects.create(id="reviewer4", username="Reviewer 4", is_active=True, team=self.team)
        pr = PullRequest.objects.create(id="pr-1", name="Test PR", author=self.author)
        self.assign(pr, self.reviewer1, self.reviewer2)
        User.objects.filter(id="reviewer3").update(is_active=False)

        updated_pr, new_reviewer_id = self.service.reassign_reviewer("pr-1", "reviewer2")

        self.assertEqual(new_reviewer_id, "reviewer4")
        self.assertEqual(updated_pr.reviewer_ids(), ["reviewer1", "reviewer4"])


def first_reviewer(pr):
    return PullRequestRepository.reviewer_ids(pr.id)[0]


class ReviewScenarioTest(TestCase):
    """Сценарии назначения на маленьких командах"""

    def setUp(self):
        self.service = make_service()

    def make_team(self, name, *user_ids):
        team = Team.objects.create(name=name)
        for user_id in user_ids:
            User.objects.create(id=user_id, username=user_id.upper(), team=team)
        return team

    def test_three_members_get_two_reviewers(self):
        self.make_team("backend", "u1", "u2", "u3")

        pr = self.service.create_pull_request("pr-1", "Feature", "u1")

        self.assertEqual(sorted(pr.reviewer_ids()), ["u2", "u3"])

    def test_two_members_get_one_reviewer(self):
        self.make_team("backend", "u1", "u2")

        pr = self.service.create_pull_request("pr-1", "Feature", "u1")

        self.assertEqual(pr.reviewer_ids(), ["u2"])

    def test_reassign_picks_only_remaining_candidate(self):
        team = self.make_team("backend", "u1", "u2", "u3", "u4")
        pr = PullRequest.objects.create(id="pr-1", name="Feature", author_id="u1")
        ReviewerAssignment.objects.create(pull_request=pr, reviewer_id="u2")
        ReviewerAssignment.objects.create(pull_request=pr, reviewer_id="u3")

        updated_pr, new_reviewer_id = self.service.reassign_reviewer("pr-1", "u2")

        self.assertEqual(new_reviewer_id, "u4")
        self.assertEqual(set(updated_pr.reviewer_ids()), {"u3", "u4"})
        self.assertEqual(User.objects.filter(team=team).count(), 4)

    def test_solo_team_gets_no_reviewers(self):
        self.make_team("solo", "s1")

        pr = self.service.create_pull_request("pr-1", "Solo", "s1")

        self.assertEqual(pr.reviewer_ids(), [])

    def test_other_teams_never_selected(self):
        self.make_team("backend", "b1", "b2")
        self.make_team("frontend", "f1", "f2", "f3")

        pr = self.service.create_pull_request("pr-1", "Feature", "b1")

        self.assertEqual(pr.reviewer_ids(), ["b2"])
