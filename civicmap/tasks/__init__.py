"""Background tasks module.

Celery tasks: maintenance jobs over the whole store
- Retroactive approval reconcile after a threshold change

BackgroundTasks: quick fire-and-forget work after a response
- Slack moderator alerts

IMPORTANT: Import notifications directly here, but import celery_tasks
explicitly when needed to avoid circular imports with Celery initialization.
"""

from civicmap.tasks.notifications import notify_issue_reported, notify_lifecycle_transition

# Use: from civicmap.tasks.celery_tasks import reconcile_approvals

__all__ = ["notify_issue_reported", "notify_lifecycle_transition"]
