"""
Services layer - Business logic goes here.

DESIGN PRINCIPLE:
- Services contain the merge/dispatch/lifecycle decisions, NOT routes
- Stores and the notifier are collaborators handed in at construction
- Engines hold no persistent state of their own
"""
