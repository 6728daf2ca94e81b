"""
Campus Placement Platform
Backend for students, recruiters and placement admins.

Architecture:
- MongoDB: every document (students with embedded projects, recruiters, jobs,
  notifications, market data, interview sessions)
- GitHub / LeetCode / Adzuna: external data pulled into student and market records
- LLM (OpenAI-compatible): job description help, match reasons, interview feedback,
  always with a deterministic fallback
"""

__version__ = "1.0.0"
__author__ = "Student"
