"""
Engines - pure domain logic for mastery, grading and planning.
"""
