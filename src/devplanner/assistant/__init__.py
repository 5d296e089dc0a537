"""Natural-language command assistant for the planner.

A command flows through four stages: a dialogue window is built around the
user's message, a priority-ordered chain of model backends is driven until one
answers, the answer is recovered into a structured action, and the action is
executed against the planner store.

Model calls are synchronous and single-shot. Quota errors are the common
failure mode of free-tier model endpoints, so the classifier separates
per-minute limits (worth a short backoff on the same model) from per-day
limits (switch models right away).
"""
