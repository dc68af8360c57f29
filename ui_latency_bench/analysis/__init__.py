"""
Analysis Module for Trial Aggregation.

Reduces TrialSets into summary statistics and checks them against
per-trial-class limits.
"""
