from datetime import timedelta

import pytest
from django.core.files.uploadedfile import SimpleUploadedFile
from django.utils import timezone

from LearningManagementApp.domain.services import course_service, learning_service
from LearningManagementApp.tests.conftest import login, results

pytestmark = pytest.mark.django_db


def submissions_url(assignment):
    return f"/api/v1/courses/{assignment.course_id}/assignments/{assignment.pk}/submissions/"


def course_submissions_url(course):
    return f"/api/v1/courses/{course.pk}/submissions/"


def test_assignment_crud_by_instructor(course, instructor, student):
    client = login(instructor)
    url = f"/api/v1/courses/{course.pk}/assignments/"
    created = client.post(url, {
        "title": "Lab 1", "due_date": (timezone.now() + timedelta(days=7)).isoformat(), "points": "20",
        "submission_type": "FILE", "is_published": False,
    }, format="json")
    assert created.status_code == 201
    assignment_id = created.data["id"]
    assert results(login(student).get(url)) == []

    patched = client.patch(f"{url}{assignment_id}/", {"title": "Lab 1b"}, format="json")
    assert patched.status_code == 200
    assert patched.data["title"] == "Lab 1b"
    assert login(student).post(url, {"title": "x", "due_date": timezone.now().isoformat(), "points": 1}, format="json").status_code == 403
    assert client.delete(f"{url}{assignment_id}/").status_code == 204


def test_submit_then_conflict_then_resubmit(assignment, student):
    client = login(student)
    created = client.post(submissions_url(assignment), {"content_text": "Answer"}, format="json")
    assert created.status_code == 201
    assert created.data["status"] == "SUBMITTED"
    assert created.data["days_late"] == 0

    again = client.post(submissions_url(assignment), {"content_text": "Again"}, format="json")
    assert again.status_code == 409

    resubmitted = client.patch(f"{submissions_url(assignment)}{created.data['id']}/", {"content_text": "Better"}, format="json")
    assert resubmitted.status_code == 200
    assert resubmitted.data["status"] == "RESUBMITTED"
    assert resubmitted.data["content_text"] == "Better"


def test_missing_text_is_400(assignment, student):
    resp = login(student).post(submissions_url(assignment), {"content_text": ""}, format="json")
    assert resp.status_code == 400
    assert "content_text" in resp.data


def test_late_submission_reports_penalty(assignment, student):
    assignment.due_date = timezone.now() - timedelta(days=2, hours=1)
    assignment.save()
    resp = login(student).post(submissions_url(assignment), {"content_text": "late"}, format="json")
    assert resp.status_code == 201
    assert resp.data["is_late"] is True
    assert resp.data["days_late"] == 2
    assert resp.data["penalty_applied"] == 20.0


def test_multipart_file_upload(course, instructor, student, settings, tmp_path):
    settings.MEDIA_ROOT = str(tmp_path)
    assignment = learning_service.create_assignment(instructor, course, {
        "title": "Upload", "due_date": timezone.now() + timedelta(days=1), "points": 10, "submission_type": "FILE",
    })
    client = login(student)
    ok = client.post(
        submissions_url(assignment),
        {"files": [SimpleUploadedFile("essay.pdf", b"%PDF-1.4")]},
        format="multipart",
    )
    assert ok.status_code == 201
    assert ok.data["attachments"][0]["file_name"] == "essay.pdf"


def test_disallowed_upload_is_400(course, instructor, student, settings, tmp_path):
    settings.MEDIA_ROOT = str(tmp_path)
    assignment = learning_service.create_assignment(instructor, course, {
        "title": "Upload", "due_date": timezone.now() + timedelta(days=1), "points": 10, "submission_type": "FILE",
    })
    resp = login(student).post(
        submissions_url(assignment), {"files": [SimpleUploadedFile("run.exe", b"MZ")]}, format="multipart",
    )
    assert resp.status_code == 400
    assert "files" in resp.data


def test_students_only_list_their_own(assignment, instructor, student, outsider):
    course_service.add_student(instructor, assignment.course, outsider)
    learning_service.submit(student, assignment, content_text="mine")
    learning_service.submit(outsider, assignment, content_text="theirs")
    own = results(login(student).get(submissions_url(assignment)))
    assert [row["student"]["id"] for row in own] == [student.pk]
    assert len(results(login(instructor).get(submissions_url(assignment)))) == 2


def test_grade_and_history_endpoints(assignment, assistant, student):
    submission = learning_service.submit(student, assignment, content_text="done")
    staff = login(assistant)
    url = f"{submissions_url(assignment)}{submission.pk}/"

    graded = staff.post(f"{url}grade/", {"grade": "72.5", "feedback": "Solid"}, format="json")
    assert graded.status_code == 200
    assert graded.data["status"] == "GRADED"
    assert float(graded.data["grade"]) == 72.5

    too_high = staff.post(f"{url}grade/", {"grade": "150"}, format="json")
    assert too_high.status_code == 400

    history = staff.get(f"{url}history/")
    assert history.status_code == 200
    assert [float(entry["grade"]) for entry in history.data] == [72.5]

    assert login(student).post(f"{url}grade/", {"grade": "100"}, format="json").status_code == 403


def test_unknown_assignment_is_404(course, student):
    resp = login(student).get(f"/api/v1/courses/{course.pk}/assignments/999999/submissions/")
    assert resp.status_code == 404


def test_course_wide_listing_bulk_grade_and_statistics(assignment, instructor, student, outsider):
    course = assignment.course
    course_service.add_student(instructor, course, outsider)
    first = learning_service.submit(student, assignment, content_text="a")
    second = learning_service.submit(outsider, assignment, content_text="b")
    client = login(instructor)

    pending = results(client.get(course_submissions_url(course), {"status": "pending"}))
    assert {row["id"] for row in pending} == {first.pk, second.pk}

    bulk = client.post(
        f"{course_submissions_url(course)}bulk-grade/",
        {"submission_ids": [first.pk, second.pk], "grade": "90", "feedback": "Batch"},
        format="json",
    )
    assert bulk.status_code == 200
    assert bulk.data == {"graded": 2, "message": "2 submissions graded successfully"}

    missing = client.post(
        f"{course_submissions_url(course)}bulk-grade/", {"submission_ids": [999999], "grade": "1"}, format="json",
    )
    assert missing.status_code == 404

    stats = client.get(f"{course_submissions_url(course)}statistics/")
    assert stats.data["overall_stats"]["total_graded"] == 2
    assert stats.data["assignment_stats"][0]["average_grade"] == 90.0

    assert login(student).get(course_submissions_url(course)).status_code == 403


def test_submission_create_is_throttled(course, instructor, student, monkeypatch):
    from LearningManagementApp.api.throttles import SubmissionRateThrottle

    monkeypatch.setattr(SubmissionRateThrottle, "rate", "2/hour")
    assignments = [
        learning_service.create_assignment(instructor, course, {
            "title": f"A{i}", "due_date": timezone.now() + timedelta(days=1), "points": 10, "submission_type": "TEXT",
        })
        for i in range(3)
    ]
    client = login(student)
    codes = [client.post(submissions_url(a), {"content_text": "x"}, format="json").status_code for a in assignments]
    assert codes == [201, 201, 429]
