"""Civic Issue Map.

Crowd-verified map of local infrastructure problems with:
- Vote ledger and threshold-driven issue lifecycle
- Point-in-time map snapshots over the status history
- Wilson-score confidence and near-duplicate clustering
- SQLAlchemy ORM with async support
- Celery maintenance jobs and Slack moderator alerts
"""
