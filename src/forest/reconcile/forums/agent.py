"""AI-backed forum that asks one planning agent per planner for desired plants."""

from __future__ import annotations

import json
import logging
import threading
from typing import Any, Iterable, List, Optional, Sequence

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, ValidationError, field_validator, model_validator

from ...memory.schema import Plant
from ...models.chat_client import ChatClient, ChatClientError, ChatRequest, ChatResponse
from ...utils.slug import plant_key, slugify
from ..context import DesiredPlant, ReconcileContext, ReconciliationStrategy, raise_if_cancelled
from ..errors import PlannerProposalError

LOGGER = logging.getLogger(__name__)

PLANT_LIST_FIELDS = ("desiredPlants", "plants")
MAX_PROPOSALS_HINT = 10


class ProposedPlant(BaseModel):
    """Raw plant proposal as parsed from an agent response.

    Non-string scalars become ``None`` and blank or non-string planters are
    dropped instead of failing validation.
    """

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    slug: Optional[str] = None
    title: Optional[str] = None
    description: Optional[str] = None
    assigned_planters: List[str] = Field(default_factory=list, alias="assignedPlanters")

    @field_validator("slug", "title", "description", mode="before")
    @classmethod
    def _strings_only(cls, value: Any) -> Optional[str]:
        return value if isinstance(value, str) else None

    @field_validator("assigned_planters", mode="before")
    @classmethod
    def _clean_planters(cls, value: Any) -> List[str]:
        if not isinstance(value, list):
            return []
        return [entry.strip() for entry in value if isinstance(entry, str) and entry.strip()]


class PlannerProposal(BaseModel):
    """Everything one planner returned."""

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    plants: List[ProposedPlant] = Field(alias="desiredPlants")
    summary: Optional[str] = None

    @model_validator(mode="before")
    @classmethod
    def _pick_plant_list(cls, data: Any) -> Any:
        """Take the first list under ``desiredPlants`` or ``plants``; skip non-objects."""
        if not isinstance(data, dict):
            return data
        picked: dict[str, Any] = {"summary": data.get("summary")}
        for field_name in PLANT_LIST_FIELDS:
            candidate = data.get(field_name)
            if isinstance(candidate, list):
                picked["desiredPlants"] = [item for item in candidate if isinstance(item, dict)]
                break
        return picked

    @field_validator("summary", mode="before")
    @classmethod
    def _summary_string(cls, value: Any) -> Optional[str]:
        return value if isinstance(value, str) else None


_PROPOSAL_ADAPTER: TypeAdapter[PlannerProposal] = TypeAdapter(PlannerProposal)


class AgentForum:
    """Query planners sequentially and merge their proposals.

    Planners are visited in ``plan.planners`` order and a slug claimed by an
    earlier planner is never taken over by a later one. A planner whose call
    fails or whose reply cannot be parsed is recorded in the strategy metadata
    and skipped.
    """

    name = "ai"

    def __init__(
        self,
        client: ChatClient,
        *,
        model: Optional[str] = None,
        temperature: float = 0.0,
    ) -> None:
        self._client = client
        self._model = model
        self._temperature = temperature

    def run(
        self,
        context: ReconcileContext,
        *,
        cancel_event: Optional[threading.Event] = None,
    ) -> ReconciliationStrategy:
        plan_id = (context.plan_id or "").strip()
        if not plan_id:
            return ReconciliationStrategy(summary="ai:empty-plan-id")

        planners = list(context.plan.planners or [])
        if not planners:
            return ReconciliationStrategy(summary="ai:no-planners")

        snapshot = build_existing_snapshot(context.existing_plants)
        used_slugs: set[str] = set()
        desired: list[DesiredPlant] = []
        summaries: list[str] = []
        metadata: dict[str, str] = {"forum": self.name, "plannerCount": str(len(planners))}

        for raw_planner in planners:
            planner_id = (raw_planner or "").strip()
            if not planner_id:
                continue
            raise_if_cancelled(cancel_event, f"planner request '{planner_id}'")

            request = ChatRequest(
                agent_id=planner_id,
                system_prompt=build_system_prompt(planner_id),
                user_prompt=build_user_prompt(plan_id, planner_id, context.repository, snapshot),
                temperature=self._temperature,
                model=self._model,
                metadata={"planId": plan_id, "plannerId": planner_id, "forum": self.name},
            )
            try:
                response = self._client.chat(request)
            except ChatClientError as error:
                LOGGER.warning("Planner %s request failed: %s", planner_id, error)
                metadata[f"planner.{planner_id}.status"] = "error"
                metadata[f"planner.{planner_id}.error"] = type(error).__name__
                continue

            try:
                proposal = parse_planner_response(response)
            except PlannerProposalError as error:
                LOGGER.warning("Planner %s returned an invalid proposal: %s", planner_id, error)
                metadata[f"planner.{planner_id}.status"] = "invalid"
                metadata[f"planner.{planner_id}.error"] = error.code
                if error.summary and error.summary.strip():
                    summaries.append(f"{planner_id}:{error.summary}".strip())
                continue

            if proposal.summary and proposal.summary.strip():
                summaries.append(f"{planner_id}:{proposal.summary}".strip())
            metadata[f"planner.{planner_id}.status"] = "ok"

            for slug, item in _dedupe_proposals(proposal.plants):
                if slug in used_slugs:
                    continue
                used_slugs.add(slug)
                desired.append(
                    DesiredPlant(
                        key=plant_key(plan_id, slug),
                        slug=slug,
                        title=item.title,
                        description=item.description,
                        planner_id=planner_id,
                        assigned_planters=item.assigned_planters,
                    )
                )

        summary = " | ".join(summaries) if summaries else "ai:ok"
        return ReconciliationStrategy(desired_plants=tuple(desired), summary=summary, metadata=metadata)


def _dedupe_proposals(proposals: Iterable[ProposedPlant]) -> list[tuple[str, DesiredPlant]]:
    """Normalize one planner's proposals, first slug wins, sorted by slug."""
    results: dict[str, DesiredPlant] = {}
    for proposal in proposals:
        raw_slug = (proposal.slug or "").strip() or (proposal.title or "").strip()
        slug = slugify(raw_slug, fallback="")
        if not slug or slug in results:
            continue
        planters: list[str] = []
        for planter in proposal.assigned_planters:
            value = planter.strip()
            if value and value not in planters:
                planters.append(value)
        results[slug] = DesiredPlant(
            slug=slug,
            title=(proposal.title or "").strip() or slug,
            description=(proposal.description or "").strip(),
            assigned_planters=tuple(planters),
        )
    return sorted(results.items(), key=lambda entry: entry[0])


def parse_planner_response(response: Optional[ChatResponse]) -> PlannerProposal:
    """Parse a planner reply into proposals or raise ``PlannerProposalError``."""
    raw = ""
    if response is not None:
        raw = response.json or response.raw_content or ""
    if not raw.strip():
        raise PlannerProposalError("empty_response")

    text = extract_json_object(raw)
    if not text:
        raise PlannerProposalError("no_json_found")

    try:
        root = json.loads(text)
    except json.JSONDecodeError as error:
        raise PlannerProposalError("invalid_json", str(error)) from error
    if not isinstance(root, dict):
        raise PlannerProposalError("root_not_object")

    try:
        return _PROPOSAL_ADAPTER.validate_python(root)
    except ValidationError as error:
        summary = root.get("summary")
        raise PlannerProposalError(
            "missing_desiredPlants",
            str(error),
            summary=summary if isinstance(summary, str) else None,
        ) from error


def extract_json_object(raw: str) -> str:
    """Strip one code fence, then slice out the outermost ``{...}`` if needed."""
    text = raw.strip()
    if text.startswith("```"):
        newline = text.find("\n")
        if newline >= 0:
            text = text[newline + 1 :]
        end_fence = text.rfind("```")
        if end_fence >= 0:
            text = text[:end_fence]
        text = text.strip()

    if text.startswith("{") and text.endswith("}"):
        return text

    start = text.find("{")
    end = text.rfind("}")
    if start >= 0 and end > start:
        return text[start : end + 1].strip()
    return ""


def build_system_prompt(planner_id: str) -> str:
    return (
        "You are a git-forest planner agent.\n"
        "Your job is to propose desired plants for a plan reconcile.\n"
        f"You are plannerId='{planner_id}'.\n"
        "Return JSON only (no Markdown), matching the requested schema.\n"
        "Be deterministic: do not use randomness."
    )


def build_user_prompt(
    plan_id: str,
    planner_id: str,
    repository: Optional[str],
    existing_snapshot: str,
) -> str:
    repo = (repository or "").strip()
    lines = [
        "Reconcile plan into desired plants.",
        f"planId: {plan_id}",
    ]
    if repo:
        lines.append(f"repository: {repo}")
    lines.extend(
        [
            f"plannerId: {planner_id}",
            "",
            "Existing plants snapshot (for context; do not duplicate slugs if avoidable):",
            existing_snapshot.rstrip("\n"),
            "",
            "Output JSON object with this schema:",
            "{",
            '  "desiredPlants": [',
            "    {",
            '      "slug": "kebab-case-slug",',
            '      "title": "Short title",',
            '      "description": "Optional longer description",',
            '      "assignedPlanters": ["optional-planter-id"]',
            "    }",
            "  ],",
            '  "summary": "optional short summary"',
            "}",
            "",
            "Rules:",
            f"- Provide 0..{MAX_PROPOSALS_HINT} desiredPlants.",
            "- Each slug must be unique within the response.",
            "- Use deterministic slugs; avoid timestamps, hashes, or random suffixes.",
        ]
    )
    return "\n".join(lines) + "\n"


def build_existing_snapshot(existing_plants: Sequence[Plant]) -> str:
    """Render ``- key [status] title`` lines sorted by key, or ``(none)``."""
    lines: list[str] = []
    for plant in sorted(existing_plants, key=lambda item: item.key or ""):
        key = (plant.key or "").strip()
        if not key:
            continue
        title = (plant.title or "").strip()
        lines.append(f"- {key} [{plant.status.value}] {title}".rstrip())
    if not lines:
        return "(none)\n"
    return "\n".join(lines) + "\n"
