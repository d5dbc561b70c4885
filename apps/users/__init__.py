"""Users app package.

Venue staff accounts. Each user carries one role (super admin, manager
or door staff) that maps to the capabilities the booking domain checks.
Use ``apps.users.models.CustomUser`` as the AUTH_USER_MODEL throughout
the project.
"""
