"""Venues app package.

Holds the venue's physical table inventory. Tables are reference data
for the booking domain: bookings point at them by id, the conflict
resolver compares those ids, and door staff see the resolved table
numbers and floors when a guest is checked in.
"""
