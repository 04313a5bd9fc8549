"""
Test case generation with fault-tolerant recovery of model output.
"""
