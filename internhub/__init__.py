"""
Internship lifecycle coordination.

Keeps a student's pipeline status, application, agreement, task
submissions and final report consistent while students, faculty
supervisors and company representatives update them independently.
"""

__version__ = "0.1.0"
