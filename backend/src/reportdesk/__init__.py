"""
ReportDesk - report submission and review service

Users submit reports, department admins and superadmins review and
annotate them, and every state change fans out as notifications over
REST and Socket.IO.
"""

__version__ = "0.1.0"
