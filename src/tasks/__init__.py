"""Pipeline steps live here.

One module per step; each decorates a planning function with
`@orchestrator.task(name=...)`. The function receives the BuildContext and
returns the commands/checks for the step, it never runs anything itself.
"""
