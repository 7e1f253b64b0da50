"""
Engagement Service - race-safe likes and engagement counters
"""
