from datetime import timedelta
from decimal import Decimal

import pytest
from django.core.files.uploadedfile import SimpleUploadedFile
from django.core.exceptions import ValidationError as DjangoValidationError
from django.core.management import call_command
from django.utils import timezone
from rest_framework.exceptions import NotFound, PermissionDenied, ValidationError

from LearningManagementApp.core.choices import SubmissionState
from LearningManagementApp.core.exceptions import Conflict, UnprocessableEntity
from LearningManagementApp.domain.services import content_service, course_service, learning_service
from LearningManagementApp.learning.models import Grade, Submission

pytestmark = pytest.mark.django_db


@pytest.fixture(autouse=True)
def media_root(settings, tmp_path):
    settings.MEDIA_ROOT = str(tmp_path)


def upload(name="report.pdf", content=b"%PDF-1.4 test"):
    return SimpleUploadedFile(name, content)


def make_assignment(course, instructor, **data):
    payload = {"title": "HW", "due_date": timezone.now() + timedelta(days=2), "points": 10, **data}
    is_published = payload.pop("is_published", True)
    return learning_service.create_assignment(instructor, course, payload, is_published=is_published)


def past_due(assignment, days=2):
    assignment.due_date = timezone.now() - timedelta(days=days)
    assignment.save()
    return assignment


def test_only_instructors_create_assignments(course, assistant, student):
    for user in (assistant, student):
        with pytest.raises(PermissionDenied):
            make_assignment(course, user)


def test_students_see_published_assignments_only(course, instructor, student):
    visible = make_assignment(course, instructor, title="Visible")
    make_assignment(course, instructor, title="Hidden", is_published=False)
    assert list(learning_service.assignments_for(student, course)) == [visible]
    assert learning_service.assignments_for(instructor, course).count() == 2


def test_module_must_belong_to_the_course(course, course_factory, instructor):
    own = content_service.create_module(instructor, course, {"title": "Week 1"})
    foreign = content_service.create_module(instructor, course_factory(), {"title": "Week 1"})
    assignment = make_assignment(course, instructor, module=own)

    with pytest.raises(ValidationError) as exc:
        learning_service.update_assignment(instructor, assignment, {"module": foreign})
    assert "module" in exc.value.detail
    assignment.refresh_from_db()
    assert assignment.module == own

    with pytest.raises(ValidationError):
        make_assignment(course, instructor, module=foreign)


def test_on_time_submission(assignment, student):
    submission = learning_service.submit(student, assignment, content_text="My essay")
    assert submission.status == SubmissionState.SUBMITTED
    assert not submission.is_late


def test_second_submission_conflicts(assignment, student):
    learning_service.submit(student, assignment, content_text="first")
    with pytest.raises(Conflict):
        learning_service.submit(student, assignment, content_text="second")


def test_content_must_match_submission_type(course, instructor, student):
    text = make_assignment(course, instructor, submission_type="TEXT")
    files = make_assignment(course, instructor, submission_type="FILE")
    url = make_assignment(course, instructor, submission_type="URL")
    both = make_assignment(course, instructor, submission_type="BOTH")
    with pytest.raises(ValidationError):
        learning_service.submit(student, text)
    with pytest.raises(ValidationError):
        learning_service.submit(student, files, content_text="no file")
    with pytest.raises(ValidationError):
        learning_service.submit(student, url, content_text="no url")
    with pytest.raises(ValidationError):
        learning_service.submit(student, both)
    assert learning_service.submit(student, url, submission_url="https://github.com/me/repo").pk


def test_late_submission_is_flagged(assignment, student):
    past_due(assignment, days=3)
    submission = learning_service.submit(student, assignment, content_text="sorry")
    assert submission.is_late
    assert submission.status == SubmissionState.LATE
    assert learning_service.days_late(assignment.due_date, submission.submitted_at) == 3


def test_late_submission_refused_when_disallowed(course, instructor, student):
    assignment = make_assignment(course, instructor, allow_late_submissions=False)
    past_due(assignment)
    with pytest.raises(UnprocessableEntity):
        learning_service.submit(student, assignment, content_text="too late")


def test_non_students_cannot_submit(assignment, assistant, outsider):
    for user in (assistant, outsider):
        with pytest.raises(PermissionDenied):
            learning_service.submit(user, assignment, content_text="x")


def test_unpublished_assignment_refuses_submission(course, instructor, student):
    hidden = make_assignment(course, instructor, is_published=False)
    with pytest.raises(PermissionDenied):
        learning_service.submit(student, hidden, content_text="x")


def test_file_submission_and_resubmission(course, instructor, student):
    assignment = make_assignment(course, instructor, submission_type="FILE")
    submission = learning_service.submit(student, assignment, files=[upload()])
    attachment = submission.attachments.get()
    assert attachment.file_name == "report.pdf"

    updated = learning_service.resubmit(
        student, submission, add_files=[upload("notes.txt", b"plain")], remove_attachment_ids=[attachment.pk]
    )
    assert [a.file_name for a in updated.attachments.all()] == ["notes.txt"]
    assert updated.status == SubmissionState.RESUBMITTED


def test_disallowed_file_is_rejected(course, instructor, student):
    assignment = make_assignment(course, instructor, submission_type="FILE")
    with pytest.raises(DjangoValidationError):
        learning_service.submit(student, assignment, files=[upload("virus.exe", b"MZ")])
    assert not Submission.objects.exists()


def test_resubmitting_clears_the_grade(assignment, student, instructor):
    submission = learning_service.submit(student, assignment, content_text="v1")
    learning_service.grade_submission(instructor, submission, Decimal("8"), "ok")
    assert Grade.objects.filter(student=student, assignment=assignment).exists()

    submission = learning_service.resubmit(student, submission, content_text="v2")
    assert submission.grade is None
    assert submission.status == SubmissionState.RESUBMITTED
    assert not Grade.objects.filter(student=student, assignment=assignment).exists()


def test_only_the_author_resubmits(assignment, student, outsider, instructor):
    course_service.add_student(instructor, assignment.course, outsider)
    submission = learning_service.submit(student, assignment, content_text="mine")
    with pytest.raises(PermissionDenied):
        learning_service.resubmit(outsider, submission, content_text="stolen")


def test_grading_bounds_and_roles(assignment, student, assistant):
    submission = learning_service.submit(student, assignment, content_text="done")
    with pytest.raises(ValidationError):
        learning_service.grade_submission(assistant, submission, Decimal("101"))
    with pytest.raises(PermissionDenied):
        learning_service.grade_submission(student, submission, Decimal("5"))

    graded = learning_service.grade_submission(assistant, submission, Decimal("85"), "Nice")
    assert graded.status == SubmissionState.GRADED
    assert graded.graded_by == assistant
    grade = Grade.objects.get(student=student, assignment=assignment)
    assert grade.letter_grade == "B"
    assert grade.comments == "Nice"


def test_grade_history_lists_every_grading(assignment, student, instructor):
    submission = learning_service.submit(student, assignment, content_text="done")
    learning_service.grade_submission(instructor, submission, Decimal("50"), "first pass")
    learning_service.grade_submission(instructor, submission, Decimal("70"), "regraded")
    history = learning_service.grade_history(instructor, submission)
    assert [(entry["grade"], entry["feedback"]) for entry in history] == [
        (Decimal("70"), "regraded"), (Decimal("50"), "first pass"),
    ]


def test_bulk_grade_only_touches_course_submissions(course_factory, assignment, student, instructor):
    submission = learning_service.submit(student, assignment, content_text="done")
    assert learning_service.bulk_grade(instructor, assignment.course, [submission.pk, 999999], Decimal("90")) == 1
    other_course = course_factory()
    with pytest.raises(NotFound):
        learning_service.bulk_grade(instructor, other_course, [submission.pk], Decimal("90"))


def test_course_submission_filters(course, instructor, student, outsider, assignment):
    course_service.add_student(instructor, course, outsider)
    mine = learning_service.submit(student, assignment, content_text="a")
    theirs = learning_service.submit(outsider, assignment, content_text="b")
    learning_service.grade_submission(instructor, theirs, Decimal("40"))

    assert list(learning_service.list_course_submissions(instructor, course, status="pending")) == [mine]
    assert list(learning_service.list_course_submissions(instructor, course, status="graded")) == [theirs]
    assert list(learning_service.list_course_submissions(instructor, course, search="Sam")) == [mine]
    with pytest.raises(PermissionDenied):
        learning_service.list_course_submissions(student, course)


def test_grading_statistics(course, instructor, student, assignment):
    submission = learning_service.submit(student, assignment, content_text="a")
    learning_service.grade_submission(instructor, submission, Decimal("80"))
    stats = learning_service.grading_statistics(instructor, course)
    row = stats["assignment_stats"][0]
    assert row["graded_submissions"] == 1
    assert row["pending_submissions"] == 0
    assert row["average_percentage"] == 80.0
    assert stats["overall_stats"]["total_submissions"] == 1
    assert stats["overall_stats"]["average_grade_overall"] == 80.0


def test_moving_the_due_date_recomputes_lateness(assignment, student):
    submission = learning_service.submit(student, assignment, content_text="on time")
    past_due(assignment)
    submission.refresh_from_db()
    assert submission.is_late and submission.status == SubmissionState.LATE

    assignment.due_date = timezone.now() + timedelta(days=1)
    assignment.save()
    submission.refresh_from_db()
    assert not submission.is_late and submission.status == SubmissionState.SUBMITTED


def test_recalculate_lateness_command(assignment, student, capsys):
    submission = learning_service.submit(student, assignment, content_text="on time")
    Submission.objects.filter(pk=submission.pk).update(submitted_at=assignment.due_date + timedelta(hours=1))
    call_command("recalculate_lateness")
    submission.refresh_from_db()
    assert submission.is_late
    assert submission.status == SubmissionState.LATE
    assert "Updated 1 submissions" in capsys.readouterr().out
