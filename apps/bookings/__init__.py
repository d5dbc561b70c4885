"""Bookings app package.

This app encapsulates the reservation domain: the booking model, the
status state machine, table conflict detection, and the check-in token
service and verifier used at the door. Concurrent writers are kept
apart with conditional updates keyed on the record's version or status.
"""
