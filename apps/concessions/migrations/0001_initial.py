from django.db import migrations, models
import django.db.models.deletion
import django.utils.timezone
import uuid


def audit_fields():
    return [
        ('id', models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
        ('created_at', models.DateTimeField(db_index=True, editable=False, verbose_name='Created At')),
        ('updated_at', models.DateTimeField(db_index=True, editable=False, verbose_name='Updated At')),
        ('created_by_id', models.CharField(blank=True, db_index=True, help_text='ID of user who created this record', max_length=50, null=True, verbose_name='Created By ID')),
        ('updated_by_id', models.CharField(blank=True, db_index=True, help_text='ID of user who last updated this record', max_length=50, null=True, verbose_name='Updated By ID')),
        ('created_from_ip', models.GenericIPAddressField(blank=True, null=True, verbose_name='Created From IP')),
        ('updated_from_ip', models.GenericIPAddressField(blank=True, null=True, verbose_name='Updated From IP')),
    ]


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        ('students', '0001_initial'),
    ]

    operations = [
        migrations.CreateModel(
            name='BookletSerialSeries',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('prefix', models.CharField(max_length=16, unique=True, verbose_name='Prefix')),
                ('created_at', models.DateTimeField(default=django.utils.timezone.now, verbose_name='Created At')),
            ],
            options={
                'verbose_name': 'Booklet Serial Series',
                'verbose_name_plural': 'Booklet Serial Series',
            },
        ),
        migrations.CreateModel(
            name='ConcessionBooklet',
            fields=audit_fields() + [
                ('booklet_number', models.PositiveIntegerField(editable=False, help_text='Display sequence, assigned once at registration', unique=True, verbose_name='Booklet Number')),
                ('serial_start_number', models.CharField(max_length=32, unique=True, verbose_name='Serial Start')),
                ('serial_end_number', models.CharField(max_length=32, unique=True, verbose_name='Serial End')),
                ('serial_prefix', models.CharField(db_index=True, editable=False, max_length=16, verbose_name='Serial Prefix')),
                ('serial_start_value', models.BigIntegerField(editable=False, verbose_name='Serial Start Value')),
                ('serial_end_value', models.BigIntegerField(editable=False, verbose_name='Serial End Value')),
                ('serial_width', models.PositiveSmallIntegerField(editable=False, verbose_name='Serial Width')),
                ('total_pages', models.PositiveSmallIntegerField(default=50, editable=False, verbose_name='Total Pages')),
                ('status', models.CharField(choices=[('AVAILABLE', 'Available'), ('IN_USE', 'In Use'), ('EXHAUSTED', 'Exhausted'), ('DAMAGED', 'Damaged')], db_index=True, default='AVAILABLE', editable=False, help_text='Derived from bound pages and the damage flag', max_length=10, verbose_name='Status')),
                ('is_damaged', models.BooleanField(default=False, verbose_name='Damaged')),
                ('applications_count', models.PositiveSmallIntegerField(default=0, editable=False, help_text='Cached count, refreshed on every allocation', verbose_name='Bound Applications')),
                ('next_page_offset', models.PositiveSmallIntegerField(default=0, editable=False, help_text='Allocation cursor; pages before it are never handed out again', verbose_name='Next Page Offset')),
                ('damaged_pages', models.JSONField(blank=True, default=list, help_text='0-based offsets of spoiled pages the allocator skips', verbose_name='Damaged Pages')),
                ('overlay_template_ref', models.CharField(blank=True, max_length=255, verbose_name='Overlay Template')),
                ('overlay_configured', models.BooleanField(default=False, verbose_name='Overlay Configured')),
                ('anchor_x', models.FloatField(default=0, verbose_name='Anchor X')),
                ('anchor_y', models.FloatField(default=0, verbose_name='Anchor Y')),
            ],
            options={
                'verbose_name': 'Concession Booklet',
                'verbose_name_plural': 'Concession Booklets',
                'ordering': ['-booklet_number'],
                'indexes': [models.Index(fields=['serial_prefix', 'serial_start_value'], name='concessions_serial_range_idx')],
                'constraints': [
                    models.CheckConstraint(condition=models.Q(serial_end_value__gte=models.F('serial_start_value')), name='booklet_serial_range_ordered'),
                    models.CheckConstraint(condition=models.Q(next_page_offset__lte=models.F('total_pages')), name='booklet_cursor_within_pages'),
                ],
            },
        ),
        migrations.CreateModel(
            name='ConcessionApplication',
            fields=audit_fields() + [
                ('short_id', models.PositiveIntegerField(editable=False, help_text='Sequential number shown to students and staff', unique=True, verbose_name='Application No.')),
                ('application_type', models.CharField(choices=[('NEW', 'New'), ('RENEWAL', 'Renewal')], default='NEW', max_length=10, verbose_name='Application Type')),
                ('status', models.CharField(choices=[('PENDING', 'Pending'), ('APPROVED', 'Approved'), ('REJECTED', 'Rejected')], db_index=True, default='PENDING', max_length=10, verbose_name='Status')),
                ('station', models.CharField(blank=True, max_length=100, verbose_name='Home Station')),
                ('concession_class', models.CharField(choices=[('FIRST', 'First Class'), ('SECOND', 'Second Class')], default='SECOND', max_length=10, verbose_name='Class')),
                ('concession_period', models.CharField(choices=[('MONTHLY', 'Monthly'), ('QUARTERLY', 'Quarterly')], default='MONTHLY', max_length=10, verbose_name='Period')),
                ('page_offset', models.PositiveSmallIntegerField(blank=True, help_text='0-based page of the booklet; set once at approval', null=True, verbose_name='Page Offset')),
                ('submission_count', models.PositiveSmallIntegerField(default=1, verbose_name='Submissions')),
                ('reviewed_at', models.DateTimeField(blank=True, null=True, verbose_name='Reviewed At')),
                ('reviewed_by_id', models.CharField(blank=True, max_length=50, null=True, verbose_name='Reviewed By ID')),
                ('rejection_reason', models.TextField(blank=True, verbose_name='Rejection Reason')),
                ('concession_booklet', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.PROTECT, related_name='applications', to='concessions.concessionbooklet', verbose_name='Booklet')),
                ('previous_application', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='renewals', to='concessions.concessionapplication', verbose_name='Previous Application')),
                ('student', models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name='concession_applications', to='students.student', verbose_name='Student')),
            ],
            options={
                'verbose_name': 'Concession Application',
                'verbose_name_plural': 'Concession Applications',
                'ordering': ['-created_at'],
                'indexes': [models.Index(fields=['student', 'status'], name='concessions_student_status_idx')],
                'constraints': [
                    models.UniqueConstraint(fields=('concession_booklet', 'page_offset'), name='unique_booklet_page'),
                    models.CheckConstraint(
                        condition=models.Q(
                            models.Q(('concession_booklet__isnull', True), ('page_offset__isnull', True)),
                            models.Q(('concession_booklet__isnull', False), ('page_offset__isnull', False), ('status', 'APPROVED')),
                            _connector='OR'
                        ),
                        name='booklet_page_bound_on_approval'
                    ),
                ],
            },
        ),
    ]
