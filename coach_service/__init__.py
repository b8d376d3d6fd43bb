"""
FITSIGHT Coach Service

Exercise form feedback, rep counting and workout sessions.
"""
