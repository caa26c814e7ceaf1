"""taskhub — task management REST API.

Users register, log in with JWT bearer tokens and manage their own tasks.
Admins get a read-only view over every task and user plus aggregate
statistics.
"""

__version__ = "0.1.0"
