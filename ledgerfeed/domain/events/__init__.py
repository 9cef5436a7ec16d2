"""Domain Events: records of noteworthy upstream interactions.

Bounded Context: API Resilience
"""
