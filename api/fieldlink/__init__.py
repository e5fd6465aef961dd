"""
FieldLink API - call recording transcription and analytics backend
"""
__version__ = "1.0.0"
