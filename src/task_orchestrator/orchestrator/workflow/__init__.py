"""Workflow execution concepts.

- Action modules the reasoning agent may invoke
- A registry for externally provided actions
- The task transition table applied after each validated reply
"""

__all__: list[str] = []
