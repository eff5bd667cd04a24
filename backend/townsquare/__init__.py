"""
Townsquare messaging and moderation backend.
"""
