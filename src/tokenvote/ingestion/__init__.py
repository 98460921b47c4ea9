"""Ingestion boundary.

Everything arriving from a remote source (catalog bodies, Firestore
documents) is decoded here before it reaches the store or the board.
"""
