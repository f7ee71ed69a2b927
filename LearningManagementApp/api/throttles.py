"""API throttling classes."""

from rest_framework.throttling import UserRateThrottle

class SubmissionRateThrottle(UserRateThrottle):
    """Throttle limiting submission create requests per user."""
    scope = "submission_create"
    rate = "10/hour"

class QuizAnswerRateThrottle(UserRateThrottle):
    """Throttle limiting quiz answer saves (autosave) per user."""
    scope = "quiz_answers"
    rate = "120/minute"
