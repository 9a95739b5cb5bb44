"""Core bridge logic: routing, conversation, permissions, runtime events."""
