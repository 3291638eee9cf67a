"""Prompt templates and composition.

Templates use ``{{name}}`` placeholders. Substitution is plain string work:
placeholders without a value are left in place so an outer layer (for example
the function-call agent adding identity and date) can fill them later.
"""

from __future__ import annotations

import json
import re
from collections.abc import Iterable, Mapping
from datetime import datetime
from typing import Any

from task_orchestrator.orchestrator.models import Copilot, Step, Task, Workflow

_PLACEHOLDER = re.compile(r"\{\{\s*(\w+)\s*\}\}")

CURRENT_TASK_TEMPLATE = """

================
{{copilotPrompt}}
================

### Task Context
Workflow: {{workflow}} ({{workflowDescription}})
Steps in this workflow: {{steps}}

The current task context is:
<context>
{{context}}
</context>

## Your Assignment:
Complete the current task step, then submit it using the 'submit' function.

### Instructions for the current step:
<currentStep>
{{stepName}}: {{stepInstructions}}
</currentStep>

Guidelines:
- Follow the <currentStep></currentStep> instructions strictly; they take priority over the rest of this prompt.

### Submitting the step
Call 'submit' when:
<submitWhen>
{{submitWhen}}
</submitWhen>

### Example
<exampleAssistantMessage>
message: "Updating the task status"
functions: [
    {
        "name": "submit",
        "args": {"data": {"foo": "bar"}},
        "results": {"foo": "bar"},
        "status": "completed"
    }
]
</exampleAssistantMessage>

Guidelines:
- Submit as soon as the `submitWhen` condition is met, not before and not after.
- When submitting, only tell the user that you are updating the status.

================
{{currentDatePrompt}}
================

"""

AVAILABLE_WORKFLOWS_TEMPLATE = """
## Your Assignment:
Start a task from one of the following workflows.

<workflows>
{{workflows}}
</workflows>
Guidelines:
- Workflows are listed as `- [name]: [description]`.
- Start a task as soon as you identify what the user wants; you will then receive instructions for it.
- To start a task, call 'createTask' with the matching workflowName and wait for further instructions.
================
"""

COPILOT_TEMPLATE = """
## YOUR IDENTITY
Your name is {{name}}. Your backstory:
<backstory>
{{backstory}}
</backstory>

Your job:
<job>
Role: {{jobRole}}
Goal: {{jobGoal}}
Description:
{{jobDescription}}
</job>
"""

CURRENT_DATE_TEMPLATE = """
Current Date Time:
<currentDate>
{{currentDate}}
</currentDate>
"""

CHAT_TEMPLATE = """
{{copilotPrompt}}
================
{{instructions}}
{{currentDatePrompt}}
================
"""


def create_prompt(template: str, variables: Mapping[str, Any]) -> str:
    def _sub(match: re.Match[str]) -> str:
        key = match.group(1)
        if key not in variables or variables[key] is None:
            return match.group(0)
        return str(variables[key])

    return _PLACEHOLDER.sub(_sub, template)


def compose_task_instructions(*, workflow: Workflow, step: Step, task: Task) -> str:
    """Step-focused prefix used while a task is active."""

    return create_prompt(
        CURRENT_TASK_TEMPLATE,
        {
            "workflow": workflow.name,
            "workflowDescription": workflow.description,
            "steps": ", ".join(s.name for s in workflow.steps),
            "stepName": step.name,
            "stepInstructions": step.instructions,
            "context": json.dumps(task.context, ensure_ascii=False, default=str),
            "submitWhen": step.submit_when,
        },
    )


def compose_workflow_selection(workflows: Iterable[Workflow]) -> str:
    """Prefix used when the conversation has no active task."""

    lines = [f"- {wf.name}: {wf.description}" for wf in workflows]
    return create_prompt(AVAILABLE_WORKFLOWS_TEMPLATE, {"workflows": "\n".join(lines)})


def compose_chat_instructions(
    *, copilot: Copilot, instructions: str, now: datetime | None = None
) -> str:
    """Wrap instructions with the copilot identity and the current date."""

    job = copilot.job
    identity = create_prompt(
        COPILOT_TEMPLATE,
        {
            "name": copilot.name,
            "backstory": copilot.backstory,
            "jobRole": job.role if job else "",
            "jobGoal": job.goal if job else "",
            "jobDescription": job.description if job else "",
        },
    )
    date_prompt = create_prompt(
        CURRENT_DATE_TEMPLATE, {"currentDate": (now or datetime.now()).isoformat()}
    )
    variables = {"copilotPrompt": identity, "currentDatePrompt": date_prompt}
    # The task prompt carries its own identity/date slots.
    if "{{copilotPrompt}}" in instructions:
        return create_prompt(instructions, variables)
    return create_prompt(CHAT_TEMPLATE, {**variables, "instructions": instructions})
