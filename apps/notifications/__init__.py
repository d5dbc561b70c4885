"""Notifications app package.

Outbound guest email. Booking status changes queue an EmailNotification
row; a Celery task renders and delivers it through Django's mail backend
and records the outcome on the row.
"""
