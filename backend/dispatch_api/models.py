from django.db import models


class CampusUser(models.Model):
    """
    A caller or runner as the dispatch engine sees them.
    Ids are the opaque ids issued by the auth provider.
    """
    class Roles(models.TextChoices):
        CALLER = "CALLER", "Caller"
        RUNNER = "RUNNER", "Runner"

    id = models.CharField(max_length=64, primary_key=True)
    role = models.CharField(max_length=20, choices=Roles.choices, default=Roles.CALLER)

    # Last reported position (callers: the task's reference point)
    latitude = models.FloatField(blank=True, null=True)
    longitude = models.FloatField(blank=True, null=True)
    location_updated_at = models.DateTimeField(blank=True, null=True)

    # Runner presence: is_available toggles visibility for matching,
    # last_seen_at is the app-foreground heartbeat
    is_available = models.BooleanField(default=False)
    last_seen_at = models.DateTimeField(blank=True, null=True)

    average_rating = models.FloatField(blank=True, null=True)

    def __str__(self):
        return f"{self.id} ({self.get_role_display()})"


class DispatchTask(models.Model):
    """
    Errands and commissions in one table; `kind` is the discriminator.
    The dispatch engine writes only notified_runner, notified_at and excluded_runner_ids.
    """
    class Kind(models.TextChoices):
        ERRAND = "errand", "Errand"
        COMMISSION = "commission", "Commission"

    class Status(models.TextChoices):
        PENDING = "pending", "Pending"
        IN_PROGRESS = "in_progress", "In progress"
        COMPLETED = "completed", "Completed"
        CANCELLED = "cancelled", "Cancelled"
        DELIVERED = "delivered", "Delivered"

    kind = models.CharField(max_length=20, choices=Kind.choices, default=Kind.ERRAND)
    status = models.CharField(max_length=20, choices=Status.choices, default=Status.PENDING)

    # Errand: a single label. Commission: comma separated labels ("printing, delivery").
    category = models.CharField(max_length=255, blank=True, default="")

    poster = models.ForeignKey(CampusUser, on_delete=models.CASCADE, related_name='posted_tasks')
    # Set only once a runner accepts
    assigned_runner = models.ForeignKey(
        CampusUser, on_delete=models.SET_NULL, null=True, blank=True, related_name='accepted_tasks'
    )

    notified_runner = models.ForeignKey(
        CampusUser, on_delete=models.SET_NULL, null=True, blank=True, related_name='offered_tasks'
    )
    notified_at = models.DateTimeField(blank=True, null=True)
    excluded_runner_ids = models.JSONField(default=list, blank=True)

    # Commission only
    declined_runner = models.ForeignKey(
        CampusUser, on_delete=models.SET_NULL, null=True, blank=True, related_name='declined_tasks'
    )

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        indexes = [
            models.Index(fields=["status", "notified_at"]),
        ]

    def __str__(self):
        return f"{self.get_kind_display()} #{self.id} - {self.status}"
