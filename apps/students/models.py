# students/models.py

from django.db import models
from django.core.exceptions import ValidationError
from utils.models import BaseModel

import logging

logger = logging.getLogger(__name__)


# =============================================================================
# STUDENT MODEL
# =============================================================================

class Student(BaseModel):
    """Student who travels on a railway concession"""

    # -------------------------------------------------------------------------
    # CHOICE FIELDS
    # -------------------------------------------------------------------------

    GENDER_CHOICES = (
        ('M', 'Male'),
        ('F', 'Female'),
        ('O', 'Other'),
    )

    VERIFICATION_STATUS_CHOICES = (
        ('PENDING', 'Pending Verification'),
        ('APPROVED', 'Approved'),
        ('REJECTED', 'Rejected'),
    )

    # -------------------------------------------------------------------------
    # IDENTITY
    # -------------------------------------------------------------------------

    enrollment_number = models.CharField(
        "Enrollment Number",
        max_length=30,
        unique=True,
        help_text="Institution-issued student ID"
    )
    first_name = models.CharField("First Name", max_length=50)
    middle_name = models.CharField("Middle Name", max_length=50, blank=True)
    last_name = models.CharField("Last Name", max_length=50)
    date_of_birth = models.DateField("Date of Birth", null=True, blank=True)
    gender = models.CharField("Gender", max_length=1, choices=GENDER_CHOICES)

    # -------------------------------------------------------------------------
    # CONTACT
    # -------------------------------------------------------------------------

    email = models.EmailField("Email", blank=True)
    phone_number = models.CharField("Phone Number", max_length=20, blank=True)
    home_address = models.TextField("Home Address", blank=True)

    status = models.CharField(
        "Verification Status",
        max_length=10,
        choices=VERIFICATION_STATUS_CHOICES,
        default='PENDING',
        db_index=True,
        help_text="Only approved students may apply for a concession"
    )

    class Meta:
        ordering = ['enrollment_number']
        verbose_name = "Student"
        verbose_name_plural = "Students"
        indexes = [
            models.Index(fields=['first_name', 'last_name'], name='students_st_first_n_5b1c0e_idx'),
        ]

    def __str__(self):
        return f"{self.get_full_name()} ({self.enrollment_number})"

    @property
    def full_name(self):
        return self.get_full_name()

    def get_full_name(self):
        """Get student's full name"""
        if self.middle_name:
            return f"{self.first_name} {self.middle_name} {self.last_name}"
        return f"{self.first_name} {self.last_name}"

    def is_approved(self):
        return self.status == 'APPROVED'

    def save(self, *args, **kwargs):
        if self.enrollment_number:
            self.enrollment_number = self.enrollment_number.strip().upper()
        super().save(*args, **kwargs)

    def clean(self):
        super().clean()
        errors = {}

        if not (self.first_name or '').strip():
            errors['first_name'] = "First name is required"
        if not (self.last_name or '').strip():
            errors['last_name'] = "Last name is required"

        if errors:
            raise ValidationError(errors)
