"""Read-mostly catalog of workflow definitions.

Definitions are authored as a single JSON document::

    {
      "copilot": {"name": "...", "backstory": "...", "job": "job-id",
                  "workflows": ["wf-id"], "actions": [...]},
      "jobs": [{"id": "job-id", "role": "...", "workflows": ["wf-id"], "actions": [...]}],
      "workflows": [{"id": "wf-id", "name": "...", "firstStep": "s1",
                     "steps": [{"id": "s1", "name": "...", "next": "s2"}, ...]}]
    }

Steps are declared inline, in order, inside their workflow.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any

from task_orchestrator.orchestrator.models import ActionBinding, Copilot, Job, Step, Workflow

logger = logging.getLogger(__name__)


def _ids(value: object) -> list[str]:
    if not isinstance(value, list):
        return []
    return [v for v in value if isinstance(v, str)]


class WorkflowCatalog:
    def __init__(
        self,
        *,
        workflows: list[Workflow],
        jobs: list[Job] | None = None,
        copilot: Copilot | None = None,
    ) -> None:
        self._workflows = {wf.id: wf for wf in workflows}
        self._steps = {step.id: step for wf in workflows for step in wf.steps}
        self._jobs = {job.id: job for job in jobs or []}
        self._copilot = copilot or Copilot(workflows=list(workflows))

    @classmethod
    def from_dict(cls, raw: dict[str, Any]) -> WorkflowCatalog:
        workflows = [Workflow.model_validate(item) for item in raw.get("workflows") or []]
        by_id = {wf.id: wf for wf in workflows}

        jobs: list[Job] = []
        for item in raw.get("jobs") or []:
            job_raw = dict(item)
            job_raw["workflows"] = [by_id[i] for i in _ids(job_raw.get("workflows")) if i in by_id]
            jobs.append(Job.model_validate(job_raw))
        jobs_by_id = {job.id: job for job in jobs}

        copilot_raw = raw.get("copilot")
        copilot: Copilot | None = None
        if isinstance(copilot_raw, dict):
            job_ref = copilot_raw.get("job")
            copilot = Copilot(
                name=str(copilot_raw.get("name") or "Assistant"),
                backstory=str(copilot_raw.get("backstory") or ""),
                job=jobs_by_id.get(job_ref) if isinstance(job_ref, str) else None,
                workflows=[by_id[i] for i in _ids(copilot_raw.get("workflows")) if i in by_id],
                actions=[
                    ActionBinding.model_validate(a) for a in copilot_raw.get("actions") or []
                ],
            )
        return cls(workflows=workflows, jobs=jobs, copilot=copilot)

    @classmethod
    def from_file(cls, path: Path) -> WorkflowCatalog:
        if not path.exists():
            logger.warning(
                "Definitions file not found; catalog is empty", extra={"path": str(path)}
            )
            return cls(workflows=[])
        raw = json.loads(path.read_text(encoding="utf-8"))
        if not isinstance(raw, dict):
            raise ValueError(f"Definitions file must contain a JSON object: {path}")
        return cls.from_dict(raw)

    @property
    def copilot(self) -> Copilot:
        return self._copilot

    def workflows(self) -> list[Workflow]:
        return list(self._workflows.values())

    def get_workflow(self, workflow_id: str) -> Workflow | None:
        return self._workflows.get(workflow_id)

    def get_step(self, step_id: str | None) -> Step | None:
        if step_id is None:
            return None
        return self._steps.get(step_id)

    def get_job(self, job_id: str) -> Job | None:
        return self._jobs.get(job_id)
