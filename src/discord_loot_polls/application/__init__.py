"""
Application Layer

Contains use cases, command handlers, and application services.
This layer orchestrates domain objects and the ballot store to fulfill use cases.

Structure:
- commands/: write operations (RequestVote, RequestUnvote, ResolveReplacement)
- services/: vote commit, per-bucket locking and negotiation bookkeeping
"""
