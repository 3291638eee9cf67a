"""Task orchestration components.

- Task, workflow and turn models
- Task store and workflow catalog
- Output schema validation
- The task manager state machine and its reasoning delegate
"""
