"""
Firestore persistence for vault state (firebase-admin).
"""
