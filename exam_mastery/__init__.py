"""
Exam Mastery Core - per-skill mastery tracking, verification gates,
grading output validation and daily planning for exam candidates.
"""

__version__ = "1.0.0"
