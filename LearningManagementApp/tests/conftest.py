import pytest
from django.core.cache import cache
from django.utils import timezone
from model_bakery import baker
from rest_framework.test import APIClient

from LearningManagementApp.core.choices import MemberRole, UserRole

PASSWORD = "pass1234"
TOKEN_URL = "/api/v1/auth/token/"


def make_user(email, role=UserRole.STUDENT, **extra):
    user = baker.make("users.User", email=email, username=email, role=role, **extra)
    user.set_password(PASSWORD)
    user.save()
    return user


def login(user):
    client = APIClient()
    token = client.post(TOKEN_URL, {"email": user.email, "password": PASSWORD}, format="json").data["access"]
    client.credentials(HTTP_AUTHORIZATION=f"Bearer {token}")
    return client


def results(response):
    data = response.data
    if isinstance(data, dict) and "results" in data:
        return data["results"]
    return data


@pytest.fixture(autouse=True)
def _clear_throttle_cache():
    cache.clear()
    yield
    cache.clear()


@pytest.fixture(autouse=True)
def _fake_mime(monkeypatch):
    """Upload sniffing without libmagic: trust the extension."""
    mimes = {"pdf": "application/pdf", "txt": "text/plain", "png": "image/png", "exe": "application/x-dosexec"}

    def probe(file_obj):
        if not file_obj:
            return None
        return mimes.get(file_obj.name.rsplit(".", 1)[-1].lower(), "application/octet-stream")

    monkeypatch.setattr("LearningManagementApp.core.validators._probe_mime", probe)


@pytest.fixture
def admin():
    return make_user("admin@example.com", UserRole.ADMIN)


@pytest.fixture
def instructor():
    return make_user("teacher@example.com", UserRole.INSTRUCTOR, first_name="Ada", last_name="Teacher")


@pytest.fixture
def other_instructor():
    return make_user("teacher2@example.com", UserRole.INSTRUCTOR)


@pytest.fixture
def assistant():
    return make_user("ta@example.com", UserRole.TEACHING_ASSISTANT)


@pytest.fixture
def student():
    return make_user("student@example.com", UserRole.STUDENT, first_name="Sam", last_name="Student")


@pytest.fixture
def outsider():
    return make_user("outsider@example.com", UserRole.STUDENT)


@pytest.fixture
def course_factory(instructor):
    from LearningManagementApp.domain.services import course_service

    counter = {"n": 0}

    def _make(owner=None, is_public=True, is_published=True, **extra):
        counter["n"] += 1
        data = {
            "title": extra.pop("title", f"Course {counter['n']}"),
            "description": "",
            "course_code": extra.pop("course_code", f"C{counter['n']:03d}"),
            "is_public": is_public,
            "is_published": is_published,
            **extra,
        }
        return course_service.create_course(owner or instructor, data)

    return _make


@pytest.fixture
def course(course_factory, instructor, assistant, student):
    course = course_factory()
    baker.make("courses.CourseMembership", course=course, user=assistant, role=MemberRole.TEACHING_ASSISTANT, added_by=instructor)
    baker.make("courses.CourseMembership", course=course, user=student, role=MemberRole.STUDENT, added_by=instructor)
    return course


@pytest.fixture
def assignment(course, instructor):
    from LearningManagementApp.domain.services import learning_service

    return learning_service.create_assignment(instructor, course, {
        "title": "Essay",
        "description": "Write it",
        "due_date": timezone.now() + timezone.timedelta(days=3),
        "points": 100,
        "submission_type": "TEXT",
    })


@pytest.fixture
def quiz_factory(course, instructor):
    """Quiz with one question per objective type plus an optional essay."""
    from LearningManagementApp.domain.services import quiz_service

    def _make(with_essay=False, **settings):
        questions = [
            {
                "question_text": "2 + 2?",
                "question_type": "MULTIPLE_CHOICE",
                "points": 2,
                "options": [
                    {"option_text": "3", "is_correct": False},
                    {"option_text": "4", "is_correct": True},
                ],
            },
            {"question_text": "Sky is blue", "question_type": "TRUE_FALSE", "points": 1, "correct_answer": "true"},
            {
                "question_text": "Primes",
                "question_type": "MULTIPLE_ANSWER",
                "points": 3,
                "options": [
                    {"option_text": "2", "is_correct": True},
                    {"option_text": "3", "is_correct": True},
                    {"option_text": "4", "is_correct": False},
                ],
            },
        ]
        if with_essay:
            questions.append({"question_text": "Explain", "question_type": "ESSAY", "points": 4})
        data = {"title": "Quiz", "description": "", **settings}
        is_published = data.pop("is_published", True)
        return quiz_service.create_quiz(instructor, course, data, questions, is_published=is_published)

    return _make


def correct_answers(quiz):
    """Full-marks answers for every question, free text for essays."""
    answers = {}
    for question in quiz.questions.prefetch_related("options"):
        correct = [o.pk for o in question.options.all() if o.is_correct]
        if question.question_type == "MULTIPLE_CHOICE":
            answers[str(question.pk)] = correct[0]
        elif question.question_type == "TRUE_FALSE":
            answers[str(question.pk)] = "true"
        elif question.question_type == "MULTIPLE_ANSWER":
            answers[str(question.pk)] = correct
        else:
            answers[str(question.pk)] = "Free text answer"
    return answers
