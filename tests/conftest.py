"""
Pytest configuration and shared fixtures for the concession portal.
"""
import itertools

import pytest

from students.models import Student
from concessions.services import BookletService, ApplicationService, AllocationService


# ============================================================================
# USERS
# ============================================================================

@pytest.fixture
def staff_user(django_user_model):
    return django_user_model.objects.create_user(
        username='clerk',
        password='clerk-pass',
        email='clerk@college.test',
        is_staff=True,
    )


@pytest.fixture
def staff_client(client, staff_user):
    client.force_login(staff_user)
    return client


# ============================================================================
# STUDENTS & APPLICATIONS
# ============================================================================

@pytest.fixture
def make_student(db):
    """Factory for students; approved unless told otherwise."""
    counter = itertools.count(1)

    def _make(status='APPROVED', **kwargs):
        number = next(counter)
        defaults = {
            'enrollment_number': f'ENG2024{number:04d}',
            'first_name': f'Student{number}',
            'last_name': 'Kulkarni',
            'gender': 'F' if number % 2 else 'M',
            'status': status,
        }
        defaults.update(kwargs)
        return Student.objects.create(**defaults)

    return _make


@pytest.fixture
def student(make_student):
    return make_student()


@pytest.fixture
def make_application(make_student):
    """Factory for pending applications, one fresh student each by default."""
    def _make(student=None, application_type='NEW', **kwargs):
        student = student or make_student()
        return ApplicationService.submit_application(student, application_type=application_type, **kwargs)

    return _make


# ============================================================================
# BOOKLETS
# ============================================================================

@pytest.fixture
def booklet(db):
    return BookletService.create_booklet('A0807550')


@pytest.fixture
def small_pages(monkeypatch):
    """Shrink booklets to three pages so exhaustion is cheap to reach."""
    monkeypatch.setattr('concessions.serials.BOOKLET_TOTAL_PAGES', 3)
    return 3


@pytest.fixture
def approve(make_application):
    """Approve a fresh application onto ``booklet`` and return the Allocation."""
    def _approve(booklet, **kwargs):
        application = make_application(**kwargs)
        return AllocationService.allocate(application.pk, booklet.pk)

    return _approve
