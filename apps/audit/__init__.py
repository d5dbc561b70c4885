"""Audit app package.

Append-only record of staff actions on bookings. Entries are written by
an event handler after the booking change has committed; a failure here
is logged and never undoes the booking change.
"""
