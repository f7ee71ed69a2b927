"""Serializers for users, courses, content, learning, quizzes, communication, ACL and the dashboard."""
