from django.shortcuts import get_object_or_404
from rest_framework.response import Response

from LearningManagementApp.courses.models import Course


class PaginationMixin:
    """Shared helper to reduce pagination boilerplate."""

    def paginate_and_respond(self, queryset, serializer_cls, many=True, context=None):
        page = self.paginate_queryset(queryset)
        context = context if context is not None else self.get_serializer_context()
        serializer = serializer_cls(page if page is not None else queryset, many=many, context=context)
        if page is not None:
            return self.get_paginated_response(serializer.data)
        return Response(serializer.data)


class CourseScopedMixin:
    """Resolve the parent course of nested ``courses/<course_pk>/...`` routes once per request."""

    def get_course(self) -> Course:
        course = getattr(self, "_resolved_course", None)
        if course is None:
            course = get_object_or_404(Course, pk=self.kwargs["course_pk"])
            self._resolved_course = course
        return course
