"""Conversation Pipeline - asynchronous processing for conversation monitoring.

Job queue, dispatcher and batch sentiment coordinator for the
conversation-monitoring platform.
"""

__version__ = "0.1.0"
