# utils/models.py

"""
Base models for the concession portal with an audit trail.

Key Features:
- UUID primary keys and creation/update timestamps
- User and IP tracking from the thread-local request context
- Change reason tracking
- Field-level change capture into AuditLog
- Audit rows written to the same database as the record
"""

from django.conf import settings
from django.db import models
from django.utils import timezone
import uuid
import logging

logger = logging.getLogger(__name__)

AUDIT_EXCLUDED_FIELDS = {
    'id', 'created_at', 'updated_at', 'created_by_id',
    'updated_by_id', 'created_from_ip', 'updated_from_ip',
}


# =============================================================================
# BASE MODEL
# =============================================================================

class BaseModel(models.Model):
    """
    Base model with audit trail capabilities.

    Features:
    - Automatic user tracking (who created/updated)
    - IP address tracking (where operations came from)
    - Change reason tracking (why changes were made)
    - AuditLog entry for every create/update/delete
    - Thread-local context integration

    The change reason is not a column: it is recorded on the AuditLog row
    of the next save or delete only.
    """

    # Core identification
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)

    created_at = models.DateTimeField("Created At", db_index=True, editable=False)
    updated_at = models.DateTimeField("Updated At", db_index=True, editable=False)

    # User tracking - CharField to avoid cross-database FK constraints
    created_by_id = models.CharField(
        "Created By ID",
        max_length=50,
        null=True,
        blank=True,
        db_index=True,
        help_text="ID of user who created this record"
    )
    updated_by_id = models.CharField(
        "Updated By ID",
        max_length=50,
        null=True,
        blank=True,
        db_index=True,
        help_text="ID of user who last updated this record"
    )

    created_from_ip = models.GenericIPAddressField("Created From IP", null=True, blank=True)
    updated_from_ip = models.GenericIPAddressField("Updated From IP", null=True, blank=True)

    class Meta:
        abstract = True

    def save(self, *args, **kwargs):
        """
        Override save to:
        1. Set timestamps
        2. Populate audit trail fields (created_by, updated_by, IPs)
        3. Track field changes
        4. Create an audit log entry on the database the row was written to
        """
        from utils.context import get_request_context

        is_new = self._state.adding
        now = timezone.now()

        if is_new:
            if not self.created_at:
                self.created_at = now
            if not self.updated_at:
                self.updated_at = now
        else:
            self.updated_at = now

        context = get_request_context()
        touched = {'updated_at'}

        if context:
            user = context.get('user')
            ip_address = context.get('ip_address')

            if is_new:
                if user and not self.created_by_id:
                    self.created_by_id = str(user.pk)
                if ip_address and not self.created_from_ip:
                    self.created_from_ip = ip_address

            if user:
                self.updated_by_id = str(user.pk)
                touched.add('updated_by_id')
            if ip_address:
                self.updated_from_ip = ip_address
                touched.add('updated_from_ip')

        # Partial saves must still persist the audit columns they touched
        update_fields = kwargs.get('update_fields')
        if update_fields is not None:
            kwargs['update_fields'] = set(update_fields) | touched

        changes = {}
        if not is_new and self.pk:
            changes = self._collect_changes(update_fields, using=kwargs.get('using'))

        result = super().save(*args, **kwargs)

        self._create_audit_log(
            action='CREATE' if is_new else 'UPDATE',
            changes=changes,
        )

        return result

    def delete(self, *args, **kwargs):
        """Log the delete before the row disappears."""
        self._create_audit_log(action='DELETE', changes={})

        return super().delete(*args, **kwargs)

    # -------------------------------------------------------------------------
    # AUDIT TRAIL HELPER METHODS
    # -------------------------------------------------------------------------

    def _collect_changes(self, update_fields=None, using=None):
        """Compare against the stored row and return changed fields."""
        changes = {}
        manager = self.__class__._base_manager.using(using or self._state.db)
        try:
            old_instance = manager.get(pk=self.pk)
        except self.__class__.DoesNotExist:
            return changes

        for field in self._meta.concrete_fields:
            name = field.attname
            if name in AUDIT_EXCLUDED_FIELDS:
                continue
            if update_fields is not None and field.name not in update_fields and name not in update_fields:
                continue

            old_value = getattr(old_instance, name)
            new_value = getattr(self, name)
            if old_value != new_value:
                changes[field.name] = {
                    'old': str(old_value) if old_value is not None else None,
                    'new': str(new_value) if new_value is not None else None,
                }
        return changes

    def _create_audit_log(self, action, changes):
        """
        Create an audit log entry for this change.

        Args:
            action: 'CREATE', 'UPDATE', or 'DELETE'
            changes: Dict of field changes
        """
        reason = getattr(self, '_change_reason', None) or ''
        self._change_reason = None

        if not getattr(settings, 'AUDIT_LOG_ENABLED', True):
            return

        from utils.context import get_request_context

        context = get_request_context() or {}
        user = context.get('user')

        user_id = None
        user_email = ""
        user_name = ""
        if user:
            user_id = str(user.pk)
            user_email = getattr(user, 'email', '') or ''
            user_name = user.get_full_name() if hasattr(user, 'get_full_name') else str(user)

        AuditLog.objects.using(self._state.db or 'default').create(
            content_type=self._meta.label_lower,
            object_id=str(self.pk),
            object_repr=str(self)[:200],
            action=action,
            changes=changes,
            user_id=user_id,
            user_email=user_email,
            user_name=user_name or '',
            ip_address=context.get('ip_address'),
            user_agent=(context.get('user_agent') or '')[:255],
            change_reason=reason,
            request_path=context.get('request_path', ''),
        )

        logger.debug(f"Created audit log for {action} on {self._meta.label} {self.pk}")

    def get_history(self, limit=10):
        """Return the most recent audit entries for this object."""
        return AuditLog.objects.using(self._state.db or 'default').filter(
            content_type=self._meta.label_lower,
            object_id=str(self.pk)
        ).order_by('-timestamp')[:limit]

    def set_change_reason(self, reason):
        """
        Set the reason recorded with the next change to this object.

        Usage:
            booklet.set_change_reason("Cover page torn")
            booklet.save()
        """
        self._change_reason = reason


# =============================================================================
# AUDIT LOG MODEL
# =============================================================================

class AuditLog(models.Model):
    """
    Audit trail for model changes.

    Tracks:
    - What changed (model, object_id, field changes)
    - Who made the change (user)
    - When it happened
    - Where it came from (IP address)
    - Why it was changed (reason)
    """

    ACTION_CHOICES = (
        ('CREATE', 'Created'),
        ('UPDATE', 'Updated'),
        ('DELETE', 'Deleted'),
    )

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    content_type = models.CharField("Model Type", max_length=100, db_index=True)
    object_id = models.CharField("Object ID", max_length=100, db_index=True)
    object_repr = models.CharField("Object Representation", max_length=200)
    action = models.CharField("Action", max_length=10, choices=ACTION_CHOICES, db_index=True)

    changes = models.JSONField(
        "Changes",
        help_text="Dictionary of field changes: {'field_name': {'old': 'value', 'new': 'value'}}",
        default=dict,
        blank=True
    )

    user_id = models.CharField("User ID", max_length=50, db_index=True, null=True, blank=True)
    user_email = models.EmailField("User Email", max_length=255, blank=True)
    user_name = models.CharField("User Name", max_length=255, blank=True)

    timestamp = models.DateTimeField("Timestamp", db_index=True)

    ip_address = models.GenericIPAddressField("IP Address", null=True, blank=True)
    user_agent = models.TextField("User Agent", blank=True)
    change_reason = models.CharField("Change Reason", max_length=255, blank=True)
    request_path = models.CharField("Request Path", max_length=255, blank=True)

    class Meta:
        ordering = ['-timestamp']
        indexes = [
            models.Index(fields=['content_type', 'object_id'], name='utils_audit_content_3f6a1e_idx'),
            models.Index(fields=['user_id', 'timestamp'], name='utils_audit_user_id_8c2d4b_idx'),
        ]
        verbose_name = "Audit Log"
        verbose_name_plural = "Audit Logs"

    def __str__(self):
        return f"{self.action} {self.content_type} {self.object_id} at {self.timestamp}"

    def save(self, *args, **kwargs):
        if not self.timestamp:
            self.timestamp = timezone.now()

        return super().save(*args, **kwargs)

    def get_changes_display(self):
        """Get a human-readable display of changes"""
        if not self.changes:
            return "No field changes recorded"

        lines = []
        for field, change in self.changes.items():
            old_val = change.get('old', 'N/A')
            new_val = change.get('new', 'N/A')
            lines.append(f"{field}: '{old_val}' → '{new_val}'")

        return "\n".join(lines)

    @classmethod
    def get_object_history(cls, obj):
        """Get complete history for a specific object"""
        return cls.objects.filter(
            content_type=obj._meta.label_lower,
            object_id=str(obj.pk)
        ).order_by('-timestamp')
