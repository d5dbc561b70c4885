"""
Shared Kernel

Domain base classes, the message bus, the unit of work and the API error
handler used by every app in the project.
"""
