"""
stafind skill extraction and candidate matching.

Mines unstructured text (resumes, job requests, chat messages) for skills,
ranks a pool of people against them, and tracks extraction jobs.
"""

__version__ = "0.1.0"
