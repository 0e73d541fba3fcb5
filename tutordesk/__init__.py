"""tutordesk: account directory query engine for a tutoring business."""

__version__ = "0.1.0"
